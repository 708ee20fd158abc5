#!/usr/bin/env python3

import os
import random
import re
import time
from typing import Optional

from werkzeug.datastructures import FileStorage

import config
from ducops.exceptions import FileUploadError
from ducops.logger import Logger

ALLOWED_MIME_TYPES = ('image/jpeg', 'image/png', 'image/gif',
                      'application/pdf', 'image/webp')

# Top level folders that must survive even when empty.
PROTECTED_DIRS = ('cage_audits', 'invoices', 'duc_reports', 'waves',
                  'scan_logs', 'lost_prevention_reports')

PUBLIC_PREFIX = '/uploads/'


def upload_root() -> str:
    """Directory where every uploaded file ends up."""
    return config.app('upload_dir')


def sanitize_name(name: str) -> str:
    """Makes a file name safe to be stored on disk."""
    return re.sub(r'[^A-Za-z0-9_.-]', '_', name)


def relative_from_url(public_url: str) -> str:
    """Converts a public URL back into a path relative to the upload root."""
    if public_url.startswith(PUBLIC_PREFIX):
        return public_url[len(PUBLIC_PREFIX):]

    return public_url


def store_upload(file: FileStorage, entity_type: str,
                 entity_id: str | int = None,
                 logger: Logger = None) -> dict:
    """Validates an uploaded file and stores it under the folder of the entity
    it belongs to."""
    mime_type = file.mimetype
    if mime_type not in ALLOWED_MIME_TYPES:
        raise FileUploadError(f'Invalid file type: {mime_type}. Allowed: '
                              f'{", ".join(ALLOWED_MIME_TYPES)}',
                              logger=logger)

    data = file.read()
    max_bytes = config.app('max_upload_bytes')
    if len(data) > max_bytes:
        raise FileUploadError(
            f'File too large: {len(data) / (1024 * 1024):.2f}MB. '
            f'Max: {max_bytes // (1024 * 1024)}MB', logger=logger)

    # Figure out where the file is going to live.
    rel_dir = entity_type
    if entity_id is not None:
        rel_dir = os.path.join(entity_type, str(entity_id))
    abs_dir = os.path.join(upload_root(), rel_dir)
    os.makedirs(abs_dir, exist_ok=True)

    # Build a unique file name keeping the original one recognizable.
    original = file.filename or 'upload'
    base, ext = os.path.splitext(sanitize_name(original))
    if not ext:
        ext = '.' + mime_type.split('/')[1]
    file_name = (f'{base}-{round(time.time() * 1000)}-'
                 f'{random.randint(0, 999_999)}{ext}')

    with open(os.path.join(abs_dir, file_name), 'wb') as fh:
        fh.write(data)

    rel_path = os.path.join(rel_dir, file_name).replace(os.sep, '/')
    if logger is not None:
        logger.info('file_uploaded', f'Stored {original} as {rel_path}',
                    {'mime_type': mime_type, 'size': len(data)})

    return {
        'file_name': file_name,
        'file_path': rel_path,
        'public_url': PUBLIC_PREFIX + rel_path,
        'mime_type': mime_type,
        'size': len(data)
    }


def delete_upload(rel_path: Optional[str], logger: Logger = None):
    """Removes an uploaded file and the folders it leaves empty behind. Never
    raises, since a stray file is not worth failing a request over."""
    if not rel_path:
        return
    root = os.path.abspath(upload_root())
    abs_path = os.path.abspath(os.path.join(root, rel_path))

    # Don't let anyone walk out of the upload folder.
    if os.path.commonpath([root, abs_path]) != root:
        if logger is not None:
            logger.warning('upload_delete_outside',
                           f'Refusing to delete {rel_path} outside the '
                           'upload folder')
        return

    try:
        os.remove(abs_path)
        if logger is not None:
            logger.info('upload_deleted', f'Deleted uploaded file {rel_path}')

        # Clean up the entity folder and its parent if they are now empty.
        directory = os.path.dirname(abs_path)
        for _ in range(2):
            if (directory == root or
                    os.path.basename(directory) in PROTECTED_DIRS or
                    os.listdir(directory)):
                break
            os.rmdir(directory)
            directory = os.path.dirname(directory)
    except FileNotFoundError:
        if logger is not None:
            logger.warning('upload_missing',
                           f'Uploaded file {rel_path} was already gone')
    except OSError as e:
        if logger is not None:
            logger.error('upload_delete_failed',
                         f'Failed to delete uploaded file {rel_path}: {e}')


class UploadSession:
    """Keeps track of the files touched while handling a request. New files
    are removed if the request fails and replaced files are only removed once
    it succeeds."""

    def __init__(self, logger: Logger = None):
        self.logger = logger
        self.stored: list[dict] = []
        self.obsolete: list[str] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.commit()
        else:
            self.discard()
        return False

    def store(self, file: FileStorage, entity_type: str,
              entity_id: str | int = None) -> dict:
        """Stores an uploaded file and remembers it."""
        stored = store_upload(file, entity_type, entity_id,
                              logger=self.logger)
        self.stored.append(stored)
        return stored

    def delete_later(self, public_url: Optional[str]):
        """Flags a file to be deleted once everything else went fine."""
        if public_url:
            self.obsolete.append(relative_from_url(public_url))

    def commit(self):
        """Removes the files that were replaced or dropped."""
        for rel_path in self.obsolete:
            delete_upload(rel_path, logger=self.logger)
        self.obsolete = []

    def discard(self):
        """Removes every file stored during this session."""
        for stored in self.stored:
            delete_upload(stored['file_path'], logger=self.logger)
        self.stored = []
        self.obsolete = []


def prune_empty_dirs() -> list[str]:
    """Removes every empty folder below the entity type folders. Returns the
    folders that were removed."""
    removed = []
    root = upload_root()
    if not os.path.isdir(root):
        return removed

    for dirpath, dirnames, filenames in os.walk(root, topdown=False):
        if (os.path.abspath(dirpath) == os.path.abspath(root) or
                os.path.basename(dirpath) in PROTECTED_DIRS):
            continue
        if not os.listdir(dirpath):
            os.rmdir(dirpath)
            removed.append(os.path.relpath(dirpath, root))

    return removed
