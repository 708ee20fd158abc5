#!/usr/bin/env python3

from ducops.resources.base import BaseResource


class ResourceClients(BaseResource):
    endpoint = 'clients'
    table = 'clients'
    label = 'Client'
    pk_type = int
    order_by = 'name ASC'

    required = (('name', 'Client Name is required'),)
    insert_columns = ('name', 'code', 'is_high_priority', 'contact_person',
                      'contact_email')
    defaults = {'is_high_priority': False}
    update_columns = insert_columns
    bool_columns = ('is_high_priority',)

    duplicate_message = 'A client with this name or code already exists.'
    dependencies = (
        ('parcel_scan_entries', 'client_id',
         'This client is referenced in parcel scan entries.'),
    )
