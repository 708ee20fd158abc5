#!/usr/bin/env python3

from ducops.resources.base import BaseResource


class ResourceDeliveryUnits(BaseResource):
    endpoint = 'delivery-units'
    table = 'delivery_units'
    label = 'Delivery unit'
    order_by = 'name ASC'

    required = (('id', 'Delivery Unit ID and Name are required'),
                ('name', 'Delivery Unit ID and Name are required'))
    insert_columns = ('id', 'name', 'address', 'contact_email')
    update_columns = ('name', 'address', 'contact_email')

    duplicate_message = 'A delivery unit with this ID already exists.'
    dependencies = (
        ('sub_depots', 'delivery_unit_id',
         'This delivery unit is referenced by existing sub depots.'),
        ('parcel_scan_entries', 'misrouted_du_id',
         'This delivery unit is referenced in parcel scan entries '
         '(misrouted).'),
    )
