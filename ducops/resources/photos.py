#!/usr/bin/env python3

from werkzeug.datastructures import MultiDict

from ducops import database
from ducops.exceptions import InvalidParameter, RecordNotFound
from ducops.resources.base import BaseResource, as_bool, as_int, is_blank
from ducops.uploads import UploadSession


class PhotoResource(BaseResource):
    """Records sent as multipart forms with an optional photo attached to
    them. The photo is kept in the upload folder and referenced by its public
    URL."""
    pk_type = int
    multipart = True

    photo_field: str = None
    photo_column: str = 'photo_url'
    upload_type: str = None

    int_columns: tuple[str, ...] = ()
    nullable_columns: tuple[str, ...] = ()
    invalid_number_message: str = None

    def parse_numbers(self, values: dict, message: str = None):
        """Converts the numeric form fields in place."""
        for col in self.int_columns:
            if col in values:
                values[col] = as_int(values[col],
                                     message or self.invalid_number_message)

    def create(self, body: dict, files: MultiDict = None) -> dict:
        """Creates a record, storing its photo if one was sent."""
        self.check_required(body)
        values = {col: body.get(col) or None for col in self.insert_columns
                  if col != self.photo_column}
        self.parse_numbers(values)

        photo = files.get(self.photo_field) if files is not None else None
        with self.db_errors('create'), \
                UploadSession(self.logger) as uploads:
            if photo:
                values[self.photo_column] = \
                    uploads.store(photo, self.upload_type)['public_url']

            cols = list(values.keys())
            key, _ = database.execute(
                self.conn,
                f'INSERT INTO {self.table} ({", ".join(cols)}) '
                f'VALUES ({database.placeholders(len(cols))})',
                [values[col] for col in cols])
            self.conn.commit()

        self.logger.info(f'{self.table}_created', f'Created {self.noun} {key}',
                         {'photo': values.get(self.photo_column)})
        return self.find(key)

    def update_fields(self, body: dict) -> dict:
        """Picks the fields that were sent in the form."""
        fields = {}
        for col in self.update_columns:
            if col not in body:
                continue

            if col in self.nullable_columns:
                fields[col] = None if is_blank(body[col]) else body[col]
            elif not is_blank(body[col]):
                fields[col] = body[col]

        for col in self.int_columns:
            if col in fields:
                fields[col] = as_int(fields[col],
                                     f'Invalid numeric value for {col}')

        return fields

    def update(self, record_id: str, body: dict,
               files: MultiDict = None) -> dict:
        """Updates the supplied fields, replacing or removing the photo when
        asked to."""
        key = self.parse_id(record_id)
        fields = self.update_fields(body)
        photo = files.get(self.photo_field) if files is not None else None

        with self.db_errors('update'), \
                UploadSession(self.logger) as uploads, \
                database.transaction(self.conn):
            current = database.fetch_one(
                self.conn,
                f'SELECT {self.photo_column} FROM {self.table} '
                f'WHERE {self.pk} = %s FOR UPDATE', (key,))
            if current is None:
                raise RecordNotFound(f'{self.label} not found')

            current_url = current[self.photo_column]
            if as_bool(body.get('remove_photo_url', False)) and current_url:
                uploads.delete_later(current_url)
                fields[self.photo_column] = None
            elif photo:
                uploads.delete_later(current_url)
                fields[self.photo_column] = uploads.store(
                    photo, self.upload_type, key)['public_url']

            if not fields:
                raise InvalidParameter('No valid fields provided for update')

            database.execute(
                self.conn,
                f'UPDATE {self.table} SET {database.assignments(fields)}, '
                f'updated_at = NOW() WHERE {self.pk} = %s',
                list(fields.values()) + [key])

        self.logger.info(f'{self.table}_updated', f'Updated {self.noun} {key}',
                         {'fields': list(fields.keys())})
        return self.find(key)

    def delete(self, record_id: str) -> dict:
        """Deletes a record along with its photo."""
        key = self.parse_id(record_id)

        with self.db_errors('delete'), \
                UploadSession(self.logger) as uploads, \
                database.transaction(self.conn):
            current = database.fetch_one(
                self.conn,
                f'SELECT {self.photo_column} FROM {self.table} '
                f'WHERE {self.pk} = %s', (key,))
            if current is None:
                raise RecordNotFound(f'{self.label} not found')

            uploads.delete_later(current[self.photo_column])
            database.execute(self.conn,
                             f'DELETE FROM {self.table} WHERE {self.pk} = %s',
                             (key,))

        self.logger.info(f'{self.table}_deleted', f'Deleted {self.noun} {key}')
        return {'message': f'{self.label} {key} deleted successfully'}
