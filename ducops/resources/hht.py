#!/usr/bin/env python3

import hashlib
import hmac
import os

from werkzeug.datastructures import MultiDict

from ducops.exceptions import InvalidParameter, NotEnoughParameters
from ducops.resources.base import BaseResource

PIN_HASH_ITERATIONS = 100_000


def hash_pin(pin: str, salt: bytes = None) -> str:
    """Hashes an HHT login PIN before it's stored. The salt and number of
    iterations are kept alongside the hash."""
    if salt is None:
        salt = os.urandom(16)
    pin_hash = hashlib.pbkdf2_hmac('sha256', str(pin).encode('utf-8'), salt,
                                   PIN_HASH_ITERATIONS)

    return f'pbkdf2_sha256${PIN_HASH_ITERATIONS}${salt.hex()}${pin_hash.hex()}'


def verify_pin(stored: str, pin: str) -> bool:
    """Checks a PIN against its stored hash."""
    try:
        method, iterations, salt, pin_hash = stored.split('$')
    except ValueError:
        return False
    if method != 'pbkdf2_sha256':
        return False

    attempt = hashlib.pbkdf2_hmac('sha256', str(pin).encode('utf-8'),
                                  bytes.fromhex(salt), int(iterations))
    return hmac.compare_digest(attempt.hex(), pin_hash)


class ResourceHHTAssets(BaseResource):
    """Handheld terminals used by the sorters to scan parcels."""
    endpoint = 'hht-assets'
    table = 'hht_assets'
    label = 'HHT Asset'
    noun = 'HHT asset'
    pk = 'serial_number'
    order_by = 'serial_number ASC'

    required = (('serial_number', 'Serial Number and Status are required'),
                ('status', 'Serial Number and Status are required'))
    insert_columns = ('serial_number', 'assigned_to_team_member_id', 'status',
                      'last_service_date', 'purchase_date', 'model_number',
                      'notes')
    update_columns = insert_columns[1:]

    duplicate_message = ('An HHT asset with this serial number already '
                         'exists.')
    reference_message = 'Invalid Team Member ID for assignment.'
    dependencies = (
        ('scan_logs', 'hht_serial', 'This HHT Asset is referenced in scan '
                                    'logs.'),
    )


class ResourceHHTLogins(BaseResource):
    """Logins shared by the sorters on the handheld terminals."""
    endpoint = 'hht-logins'
    table = 'hht_logins'
    label = 'HHT Login'
    noun = 'HHT Login'
    pk = 'login_id'
    select_sql = ('SELECT login_id, sub_depot_id, notes, is_active, '
                  'created_at, updated_at FROM hht_logins')
    order_by = 'login_id ASC'

    required = tuple((field, 'Login ID, PIN, and Sub Depot ID are required')
                     for field in ('login_id', 'pin', 'sub_depot_id'))
    insert_columns = ('login_id', 'pin_hash', 'sub_depot_id', 'notes',
                      'is_active')
    defaults = {'is_active': True}
    update_columns = ('pin_hash', 'sub_depot_id', 'notes', 'is_active')
    bool_columns = ('is_active',)

    duplicate_message = 'An HHT login with this ID already exists.'
    referenced_message = ('This login is referenced by other records (e.g., '
                          'scan logs) and cannot be deleted.')

    def insert_values(self, body: dict) -> dict:
        values = super().insert_values(body)
        values['pin_hash'] = hash_pin(body['pin'])

        return values

    def update(self, record_id: str, body: dict,
               files: MultiDict = None) -> dict:
        if not body:
            raise NotEnoughParameters('No fields provided for update')

        # Only ever accept the PIN in the clear.
        fields = {k: v for k, v in body.items()
                  if k not in ('pin', 'pin_hash')}
        if body.get('pin'):
            fields['pin_hash'] = hash_pin(body['pin'])
        if not fields:
            raise InvalidParameter('No valid fields provided for update')

        return super().update(record_id, fields, files)
