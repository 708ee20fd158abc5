#!/usr/bin/env python3

from ducops.resources.base import BaseResource


class ResourceEmailTriggers(BaseResource):
    """Scheduled e-mails of the operational reports."""
    endpoint = 'email-triggers'
    table = 'email_triggers'
    label = 'Email Trigger'
    noun = 'email trigger'
    pk_type = int
    order_by = 'name ASC'

    required = tuple(
        (field, 'Name, Report Type, Frequency, Send Time, and Recipients are '
                'required')
        for field in ('name', 'report_type', 'frequency', 'send_time',
                      'recipients'))
    insert_columns = ('name', 'report_type', 'frequency', 'day_of_week',
                      'day_of_month', 'send_time', 'recipients',
                      'sub_depot_id_filter', 'is_enabled',
                      'created_by_team_member_id')
    defaults = {'is_enabled': False}
    update_columns = insert_columns + ('last_sent_at', 'last_run_status',
                                       'last_error_message')
    json_columns = ('recipients',)
    bool_columns = ('is_enabled',)

    reference_message = 'Invalid Sub Depot or Team Member ID.'
