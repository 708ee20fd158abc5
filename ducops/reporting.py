#!/usr/bin/env python3

import datetime
import re
from typing import Optional

from ducops import database
from ducops.database import Connection
from ducops.exceptions import InvalidParameter

GB_DATE_PATTERN = re.compile(r'^\d{2}/\d{2}/\d{4}$')
ISO_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
ISO_WEEK_PATTERN = re.compile(r'^(\d{4})-W(\d{1,2})$')


def parse_date(value: str) -> Optional[str]:
    """Converts a DD/MM/YYYY or YYYY-MM-DD date into YYYY-MM-DD. Returns None
    if the date isn't in either format or doesn't exist in the calendar."""
    try:
        if GB_DATE_PATTERN.match(value):
            date = datetime.datetime.strptime(value, '%d/%m/%Y').date()
        elif ISO_DATE_PATTERN.match(value):
            date = datetime.date.fromisoformat(value)
        else:
            return None
    except ValueError:
        return None

    return date.isoformat()


def gb_date(date: str) -> str:
    """Converts a YYYY-MM-DD date into the DD/MM/YYYY used around the
    depot."""
    return datetime.date.fromisoformat(date).strftime('%d/%m/%Y')


def recovery_rate(total: int, recovered: int) -> int:
    """Percentage of parcels that were recovered, rounded."""
    if total == 0:
        return 0

    return round(recovered / total * 100)


def missing_parcels_summary(entries: list[dict], date: str) -> dict:
    """Summarizes the parcels that were logged as missing on a given day, in
    the shape stored along with the DUC final report."""
    day = gb_date(date)
    parcels = []
    for entry in entries:
        if entry.get('dateAdded') != day or not entry.get('barcode'):
            continue

        parcels.append({
            'scan_entry_id': entry.get('id'),
            'barcode': entry['barcode'],
            'courier_id': entry.get('courier_id') or 'N/A_COURIER',
            'round_id': entry.get('round_id'),
            'drop_number': entry.get('drop_number'),
            'sub_depot_id': entry.get('sub_depot_id'),
            'sorter_id': entry.get('sorter_team_member_id') or 'N/A_SORTER',
            'time_scanned': entry.get('time_scanned'),
            'recovered': bool(entry.get('is_recovered')),
            'client_id': entry.get('client_id'),
            'client_name': entry.get('client_name'),
            'courier_name': entry.get('courier_name'),
            'sorter_name': entry.get('sorter_name'),
        })

    unrecovered = len([p for p in parcels if not p['recovered']])
    return {
        'total_missing': len(parcels),
        'unrecovered': unrecovered,
        'recovery_rate': recovery_rate(len(parcels),
                                       len(parcels) - unrecovered),
        'parcels': parcels,
    }


def courier_stats(couriers: list[dict], entries: list[dict],
                  date: str) -> list[dict]:
    """Ranks the couriers by how many of their parcels went missing on a day
    and are still unrecovered."""
    day = gb_date(date)
    stats = []
    for courier in couriers:
        parcels = [e for e in entries
                   if e.get('courier_id') == courier['id'] and
                   e.get('dateAdded') == day and e.get('barcode')]
        unrecovered = len([p for p in parcels if not p.get('is_recovered')])

        # Keep the rounds in the order they were first seen.
        rounds = []
        for parcel in parcels:
            if parcel.get('round_id') not in rounds:
                rounds.append(parcel.get('round_id'))

        stats.append({
            'id': courier['id'],
            'name': courier.get('name'),
            'rounds': rounds,
            'totalMissing': len(parcels),
            'unrecovered': unrecovered,
            'recovered': len(parcels) - unrecovered,
            'recoveryRate': recovery_rate(len(parcels),
                                          len(parcels) - unrecovered),
        })

    stats.sort(key=lambda s: (s['unrecovered'], s['totalMissing']),
               reverse=True)
    return stats


def iso_week(date: datetime.date) -> str:
    """ISO week of a date, such as 2024-W05."""
    year, week, _ = date.isocalendar()
    return f'{year}-W{week:02d}'


def week_dates(week: str) -> tuple[datetime.date, datetime.date]:
    """First and last day (Monday and Sunday) of an ISO week."""
    match = ISO_WEEK_PATTERN.match(week)
    if match is None:
        raise InvalidParameter('Invalid ISO week.',
                               f'Expected YYYY-Www but got {week}.')

    year, number = int(match.group(1)), int(match.group(2))
    try:
        monday = datetime.date.fromisocalendar(year, number, 1)
    except ValueError:
        raise InvalidParameter('Invalid ISO week.',
                               f'Week {number} does not exist in {year}.')

    return monday, monday + datetime.timedelta(days=6)


def scan_activity(conn: Connection, date: str,
                  user_id: str = None) -> list[dict]:
    """Adds up the scan logs of a day per user and sub depot."""
    stmt = ("SELECT DATE_FORMAT(sl.date, '%d/%m/%Y') AS date, "
            "sl.user_id_team_member AS userId, tm.position AS userType, "
            "tm.name AS userName, sl.sub_depot_id AS subDepot, "
            "sd.name AS subDepotName, "
            "CAST(SUM(sl.total_scanned) AS SIGNED) AS totalScanned, "
            "MAX(sl.scan_end_time) AS timeCompleted, "
            "CAST(SUM(COALESCE(sl.missorts, 0)) AS SIGNED) AS missorts "
            "FROM scan_logs sl "
            "JOIN team_members tm ON sl.user_id_team_member = tm.id "
            "JOIN sub_depots sd ON sl.sub_depot_id = sd.id "
            "WHERE sl.date = %s")
    params = [date]
    if user_id:
        stmt += ' AND sl.user_id_team_member = %s'
        params.append(user_id)
    stmt += (' GROUP BY sl.date, sl.user_id_team_member, tm.position, '
             'tm.name, sl.sub_depot_id, sd.name '
             'ORDER BY sl.date DESC, MAX(sl.scan_end_time) DESC')

    return [database.normalize_row(row)
            for row in database.fetch_all(conn, stmt, params)]
