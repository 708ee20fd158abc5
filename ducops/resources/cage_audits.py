#!/usr/bin/env python3

import os

from werkzeug.datastructures import MultiDict

from ducops import database
from ducops.exceptions import InvalidParameter, NotEnoughParameters, \
    RecordNotFound
from ducops.resources.base import (BaseResource, as_int, is_blank,
                                   parse_json_field, uploaded_files)
from ducops.uploads import UploadSession

PARCELS_SQL = ('SELECT mp.id, mp.cage_audit_id, mp.barcode, mp.client_id, '
               'c.name AS client_name, mp.reason '
               'FROM cage_audit_missorted_parcels mp '
               'JOIN clients c ON mp.client_id = c.id')

# Form fields and the columns they end up in.
FORM_FIELDS = {
    'date': 'date',
    'teamMemberId': 'team_member_id',
    'subDepotId': 'sub_depot_id',
    'roundId': 'round_id',
    'drop': 'drop_number',
    'totalParcelsInCage': 'total_parcels_in_cage',
}


class ResourceCageAudits(BaseResource):
    """Checks of the parcels left in a cage looking for missorted ones, with
    photos of what was found."""
    endpoint = 'cage-audits'
    table = 'cage_audits'
    label = 'Cage audit'
    pk_generator = 'uuid'
    order_by = 'created_at DESC'
    multipart = True

    def expand(self, records: list[dict]) -> list[dict]:
        keys = [r['id'] for r in records]
        parcels = self.fetch_children(PARCELS_SQL, 'mp.cage_audit_id', keys,
                                      order_by='mp.id ASC')
        images = self.fetch_children('SELECT * FROM cage_audit_images',
                                     'cage_audit_id', keys, order_by='id ASC')

        for record in records:
            record['missorted_parcels'] = parcels[record['id']]
            record['images'] = images[record['id']]
            record['missortImageUrls'] = [img['image_url']
                                          for img in record['images']]

        return records

    def parse_form(self, body: dict, title: str) -> tuple[dict, list[dict]]:
        """Extracts the audit and its missorted parcels from the form."""
        for field in FORM_FIELDS.keys():
            if is_blank(body.get(field)):
                raise NotEnoughParameters(title)

        values = {col: body[field] for field, col in FORM_FIELDS.items()}
        for col in ('sub_depot_id', 'drop_number', 'total_parcels_in_cage'):
            values[col] = as_int(values[col],
                                 'Invalid numeric value for subDepotId, drop, '
                                 'or totalParcelsInCage.')
        values['notes'] = body.get('notes') or None

        parcels = parse_json_field(body.get('missortedParcels'),
                                   'Invalid missorted parcels.', default=[])
        values['total_missorts_found'] = len(parcels)

        return values, parcels

    def insert_parcels(self, key: str, parcels: list[dict]):
        for parcel in parcels:
            # Parcels may come with the client name rather than its ID.
            client_id = parcel.get('client_id')
            if parcel.get('client'):
                client_id = self.client_id_by_name(parcel['client'])

            database.execute(
                self.conn,
                'INSERT INTO cage_audit_missorted_parcels (cage_audit_id, '
                'barcode, client_id, reason) VALUES (%s, %s, %s, %s)',
                (key, parcel.get('barcode'), client_id, parcel.get('reason')))

    def insert_images(self, key: str, images: list, uploads: UploadSession):
        for image in images:
            stored = uploads.store(image, 'cage_audits', key)
            database.execute(
                self.conn,
                'INSERT INTO cage_audit_images (cage_audit_id, image_url, '
                'description, uploaded_at) VALUES (%s, %s, %s, NOW())',
                (key, stored['public_url'],
                 os.path.basename(image.filename or stored['file_name'])))

    def create(self, body: dict, files: MultiDict = None) -> dict:
        """Creates an audit along with its missorted parcels and photos."""
        values, parcels = self.parse_form(
            body, 'Missing required fields for cage audit.')
        values['id'] = self.generate_key()

        with self.db_errors('create'), \
                UploadSession(self.logger) as uploads, \
                database.transaction(self.conn):
            cols = list(values.keys())
            database.execute(
                self.conn,
                f'INSERT INTO cage_audits ({", ".join(cols)}) '
                f'VALUES ({database.placeholders(len(cols))})',
                [values[col] for col in cols])
            self.insert_parcels(values['id'], parcels)
            self.insert_images(values['id'],
                               uploaded_files(files, 'missortImages'), uploads)

        self.logger.info('cage_audits_created',
                         f'Created cage audit {values["id"]} for round '
                         f'{values["round_id"]}',
                         {'missorts': values['total_missorts_found']})
        return self.find(values['id'])

    def update(self, record_id: str, body: dict,
               files: MultiDict = None) -> dict:
        """Replaces the audit and its parcels. Photos not listed as existing
        are removed and new ones added."""
        key = self.parse_id(record_id)
        values, parcels = self.parse_form(
            body, 'Missing required fields for cage audit update.')
        keep = parse_json_field(body.get('existingImageIds'),
                                'Invalid existing image list.', default=[])
        try:
            keep = [int(image_id) for image_id in keep]
        except (TypeError, ValueError):
            raise InvalidParameter('Invalid existing image list.')

        with self.db_errors('update'), \
                UploadSession(self.logger) as uploads, \
                database.transaction(self.conn):
            _, count = database.execute(
                self.conn,
                f'UPDATE cage_audits SET {database.assignments(values)}, '
                'updated_at = NOW() WHERE id = %s',
                list(values.values()) + [key])
            if count == 0:
                raise RecordNotFound('Cage audit not found')

            database.execute(self.conn,
                             'DELETE FROM cage_audit_missorted_parcels '
                             'WHERE cage_audit_id = %s', (key,))
            self.insert_parcels(key, parcels)

            for image in database.fetch_all(
                    self.conn, 'SELECT id, image_url FROM cage_audit_images '
                               'WHERE cage_audit_id = %s', (key,)):
                if image['id'] not in keep:
                    uploads.delete_later(image['image_url'])
                    database.execute(self.conn,
                                     'DELETE FROM cage_audit_images '
                                     'WHERE id = %s', (image['id'],))
            self.insert_images(key, uploaded_files(files, 'newMissortImages'),
                               uploads)

        self.logger.info('cage_audits_updated', f'Updated cage audit {key}',
                         {'missorts': values['total_missorts_found'],
                          'kept_images': keep})
        return self.find(key)

    def delete(self, record_id: str) -> dict:
        """Deletes an audit along with everything attached to it."""
        key = self.parse_id(record_id)

        with self.db_errors('delete'), \
                UploadSession(self.logger) as uploads, \
                database.transaction(self.conn):
            for image in database.fetch_all(
                    self.conn, 'SELECT image_url FROM cage_audit_images '
                               'WHERE cage_audit_id = %s', (key,)):
                uploads.delete_later(image['image_url'])

            database.execute(self.conn,
                             'DELETE FROM cage_audit_images '
                             'WHERE cage_audit_id = %s', (key,))
            database.execute(self.conn,
                             'DELETE FROM cage_audit_missorted_parcels '
                             'WHERE cage_audit_id = %s', (key,))
            _, count = database.execute(
                self.conn, 'DELETE FROM cage_audits WHERE id = %s', (key,))
            if count == 0:
                raise RecordNotFound('Cage audit not found')

        self.logger.info('cage_audits_deleted', f'Deleted cage audit {key}')
        return {'message': f'Cage audit {key} deleted successfully'}
