#!/usr/bin/env python3

from ducops.resources.base import BaseResource


class ResourcePayPeriods(BaseResource):
    endpoint = 'pay-periods'
    table = 'pay_periods'
    label = 'Pay period'
    pk_generator = 'uuid'
    order_by = 'year DESC, period_number DESC'

    required = tuple((field, 'Missing required fields for pay period')
                     for field in ('period_number', 'year', 'start_date',
                                   'end_date', 'status'))
    insert_columns = ('period_number', 'year', 'start_date', 'end_date',
                      'status')
    update_columns = insert_columns

    dependencies = (
        ('forecasts', 'pay_period_id',
         'This pay period is linked to existing forecasts.'),
        ('invoices', 'pay_period_id',
         'This pay period is linked to existing invoices.'),
    )
