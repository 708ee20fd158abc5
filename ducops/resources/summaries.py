#!/usr/bin/env python3

import datetime

from ducops.resources.base import BaseResource


class SummaryReport(BaseResource):
    """Reports whose breakdowns are stored as JSON documents alongside the
    totals they add up to."""
    pk_type = int
    noun = 'report'
    record_name = 'Report'
    total_column: str = None

    def insert_values(self, body: dict) -> dict:
        values = super().insert_values(body)
        values['submitted_at'] = datetime.datetime.now()

        return values

    def row(self, raw):
        record = super().row(raw)
        if record is not None:
            for col in self.json_columns:
                if record.get(col) is None:
                    record[col] = []
            if record.get(self.total_column) is not None:
                record[self.total_column] = int(record[self.total_column])

        return record


class ResourceDailyMissortSummaryReports(SummaryReport):
    """Daily count of missorted parcels, broken down by client and round."""
    endpoint = 'daily-missort-summary-reports'
    table = 'duc_daily_missort_summary_reports'
    label = 'Daily Missort Summary Report'
    alias = 'dmsr'
    select_sql = ('SELECT dmsr.*, tm.name AS submitted_by_name, '
                  'sd.name AS sub_depot_name_filter '
                  'FROM duc_daily_missort_summary_reports dmsr '
                  'LEFT JOIN team_members tm '
                  'ON dmsr.submitted_by_team_member_id = tm.id '
                  'LEFT JOIN sub_depots sd ON dmsr.sub_depot_id = sd.id')
    order_by = 'dmsr.date DESC, dmsr.submitted_at DESC'
    total_column = 'total_missorts'

    required = tuple((field, 'Missing required fields for daily missort '
                             'summary report.')
                     for field in ('date', 'submitted_by_team_member_id',
                                   'total_missorts', 'missorts_by_client',
                                   'missorts_by_round'))
    insert_columns = ('date', 'sub_depot_id', 'total_missorts',
                      'missorts_by_client', 'missorts_by_round', 'notes',
                      'submitted_by_team_member_id')
    update_columns = insert_columns
    json_columns = ('missorts_by_client', 'missorts_by_round')


class ResourceWeeklyMissingSummaryReports(SummaryReport):
    """Weekly roundup of the parcels that went missing."""
    endpoint = 'weekly-missing-summary-reports'
    table = 'duc_weekly_missing_summary_reports'
    label = 'Weekly Missing Summary Report'
    alias = 'wmsr'
    select_sql = ('SELECT wmsr.*, wmsr.submitted_at AS generated_at, '
                  'wmsr.submitted_by_team_member_id AS generated_by, '
                  'tm.name AS submitted_by_team_member_id_name '
                  'FROM duc_weekly_missing_summary_reports wmsr '
                  'LEFT JOIN team_members tm '
                  'ON wmsr.submitted_by_team_member_id = tm.id')
    order_by = 'wmsr.submitted_at DESC'
    total_column = 'total_missing'

    required = tuple((field, 'Missing required fields for weekly missing '
                             'summary report.')
                     for field in ('week_start_date', 'week_end_date',
                                   'total_missing', 'missing_by_client',
                                   'parcels_summary',
                                   'submitted_by_team_member_id'))
    insert_columns = ('week_start_date', 'week_end_date', 'total_missing',
                      'missing_by_client', 'parcels_summary', 'notes',
                      'submitted_by_team_member_id')
    update_columns = insert_columns
    json_columns = ('missing_by_client', 'parcels_summary')
