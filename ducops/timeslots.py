#!/usr/bin/env python3

from typing import Optional

import config
from ducops import database
from ducops.database import Connection

# Templates used when a sub depot doesn't have a default one of its own.
FALLBACK_TEMPLATES = {
    'Edmonton': 'EDM_STANDARD',
    'Barking': 'BRK_STANDARD',
}

SUB_DEPOT_COLORS = {
    'Edmonton': 'blue',
    'Barking': 'green',
}


def _sub_depot(sub_depot_id: int, sub_depots: list[dict]) -> Optional[dict]:
    for sub_depot in sub_depots:
        if sub_depot['id'] == sub_depot_id:
            return sub_depot

    return None


def _by_area(sub_depot: Optional[dict], table: dict) -> Optional[str]:
    """Picks the entry of a table whose key is part of the sub depot name."""
    if sub_depot is None:
        return None

    for area, value in table.items():
        if area in (sub_depot.get('name') or ''):
            return value

    return None


def assignments_for_date(date: str, assignments: list[dict],
                         sub_depot_id: int = None) -> list[dict]:
    """Filters the assignments of a day, optionally for a single sub depot."""
    return [a for a in assignments if a['date'] == date and
            (sub_depot_id is None or a['sub_depot_id'] == sub_depot_id)]


def template_for_sub_depot(sub_depot_id: int, templates: list[dict],
                           sub_depots: list[dict]) -> Optional[dict]:
    """Gets the timeslot template that applies to a sub depot."""
    for template in templates:
        if template.get('sub_depot_id') == sub_depot_id and \
                template.get('is_default'):
            return template

    # Fall back to the standard template of the area.
    template_id = _by_area(_sub_depot(sub_depot_id, sub_depots),
                           FALLBACK_TEMPLATES)
    if template_id is not None:
        for template in templates:
            if template['id'] == template_id:
                return template

    return None


def capacity(date: str, sub_depot_id: int, timeslot: str,
             assignments: list[dict], templates: list[dict],
             sub_depots: list[dict] = None) -> dict:
    """Counts how many rounds are booked in a timeslot against its limit."""
    used = [a for a in assignments
            if a['date'] == date and a['sub_depot_id'] == sub_depot_id and
            a['timeslot'] == timeslot]

    if sub_depots is not None:
        template = template_for_sub_depot(sub_depot_id, templates, sub_depots)
    else:
        template = next((t for t in templates
                         if t.get('sub_depot_id') == sub_depot_id and
                         t.get('is_default')), None)

    limit = None
    if template is not None:
        limit = template.get('max_capacity_per_slot')

    return {
        'used': len(used),
        'max': limit or config.app('default_slot_capacity')
    }


def color_for_sub_depot(sub_depot_id: int, sub_depots: list[dict]) -> str:
    """Colour used to tell the sub depots apart in the timeslot views."""
    return _by_area(_sub_depot(sub_depot_id, sub_depots),
                    SUB_DEPOT_COLORS) or 'gray'


def timeslot_for_round(round_id: str, date: str,
                       assignments: list[dict]) -> Optional[str]:
    """Gets the timeslot a round was booked in on a given day."""
    for assignment in assignments:
        if assignment['round_id'] == round_id and assignment['date'] == date:
            return assignment['timeslot']

    return None


def load(conn: Connection, date: str) -> tuple[list, list, list]:
    """Fetches everything needed to work out the capacity of a day."""
    assignments = [database.normalize_row(r) for r in database.fetch_all(
        conn, 'SELECT * FROM timeslot_assignments WHERE date = %s', (date,))]
    templates = [database.normalize_row(r, json_columns=('slots',),
                                        bool_columns=('is_default',))
                 for r in database.fetch_all(
                     conn, 'SELECT * FROM timeslot_templates')]
    sub_depots = database.fetch_all(conn, 'SELECT id, name FROM sub_depots')

    return assignments, templates, sub_depots


def day_capacity(conn: Connection, date: str, sub_depot_id: int,
                 timeslot: str = None) -> dict:
    """Capacity of one timeslot, or of every timeslot in the template of the
    sub depot, for a given day."""
    assignments, templates, sub_depots = load(conn, date)
    template = template_for_sub_depot(sub_depot_id, templates, sub_depots)

    if timeslot is not None:
        slots = [timeslot]
    elif template is not None:
        slots = template.get('slots') or []
    else:
        slots = sorted({a['timeslot'] for a in assignments_for_date(
            date, assignments, sub_depot_id)})

    return {
        'date': date,
        'sub_depot_id': sub_depot_id,
        'template_id': template['id'] if template is not None else None,
        'color': color_for_sub_depot(sub_depot_id, sub_depots),
        'slots': [dict(timeslot=slot, **capacity(date, sub_depot_id, slot,
                                                 assignments, templates,
                                                 sub_depots))
                  for slot in slots]
    }
