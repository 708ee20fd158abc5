#!/usr/bin/env python3

import io
import os
import re

import pytest
from werkzeug.datastructures import FileStorage

import config
from ducops import uploads
from ducops.exceptions import FileUploadError


def make_file(name: str = 'Cage Photo.JPG', mime: str = 'image/jpeg',
              data: bytes = b'jpeg-data') -> FileStorage:
    return FileStorage(stream=io.BytesIO(data), filename=name,
                       content_type=mime)


def test_sanitize_name():
    assert uploads.sanitize_name('Van Search #2') == 'Van_Search__2'


def test_store_upload(upload_dir):
    stored = uploads.store_upload(make_file(), 'cage_audits', 'abc')

    assert re.match(r'^Cage_Photo-\d+-\d+\.JPG$',
                    stored['file_name'])
    assert stored['file_path'] == f'cage_audits/abc/{stored["file_name"]}'
    assert stored['public_url'] == f'/uploads/{stored["file_path"]}'
    assert stored['mime_type'] == 'image/jpeg'
    assert stored['size'] == len(b'jpeg-data')
    with open(os.path.join(upload_dir, stored['file_path']), 'rb') as fh:
        assert fh.read() == b'jpeg-data'


def test_store_upload_extension_from_mime(upload_dir):
    stored = uploads.store_upload(make_file('scan', 'image/png'), 'scan_logs')
    assert stored['file_name'].endswith('.png')
    assert stored['file_path'].startswith('scan_logs/')


def test_store_upload_sanitizes_extension(upload_dir):
    stored = uploads.store_upload(make_file('Scan #1.jp g'), 'scan_logs')

    assert re.match(r'^Scan__1-\d+-\d+\.jp_g$', stored['file_name'])
    assert os.path.exists(os.path.join(upload_dir, stored['file_path']))


def test_store_upload_refuses_type(upload_dir):
    with pytest.raises(FileUploadError) as exc_info:
        uploads.store_upload(make_file('notes.txt', 'text/plain'), 'waves')

    assert exc_info.value.message.startswith('Invalid file type: text/plain.')
    assert exc_info.value.status_code == 400


def test_store_upload_refuses_size(upload_dir, monkeypatch):
    monkeypatch.setitem(config._app, 'max_upload_bytes',
                        1024 * 1024)
    data = b'0' * (1024 * 1024 + 1)
    with pytest.raises(FileUploadError) as exc_info:
        uploads.store_upload(make_file(data=data), 'waves')

    assert exc_info.value.message == 'File too large: 1.00MB. Max: 1MB'


def test_delete_upload_cleans_empty_folders(upload_dir):
    stored = uploads.store_upload(make_file(), 'invoices', 'INV-1')
    uploads.delete_upload(stored['file_path'])

    assert not os.path.exists(os.path.join(upload_dir, 'invoices', 'INV-1'))
    # Entity type folders stay around.
    assert os.path.isdir(os.path.join(upload_dir, 'invoices'))


def test_delete_upload_missing_file_is_harmless(upload_dir, logger):
    uploads.delete_upload('waves/nothing-here.jpg', logger=logger)


def test_delete_upload_stays_inside_root(upload_dir, tmp_path):
    outside = tmp_path / 'keep.txt'
    outside.write_text('keep')
    uploads.delete_upload('../keep.txt')
    assert outside.exists()


def test_session_discards_new_files_on_failure(upload_dir):
    with pytest.raises(RuntimeError):
        with uploads.UploadSession() as session:
            stored = session.store(make_file(), 'waves', 1)
            raise RuntimeError('database went away')

    assert not os.path.exists(os.path.join(upload_dir, stored['file_path']))


def test_session_deletes_replaced_files_on_success(upload_dir):
    old = uploads.store_upload(make_file(), 'waves', 1)
    with uploads.UploadSession() as session:
        session.delete_later(old['public_url'])
        new = session.store(make_file('new.png', 'image/png'), 'waves', 1)

    assert not os.path.exists(os.path.join(upload_dir, old['file_path']))
    assert os.path.exists(os.path.join(upload_dir, new['file_path']))


def test_session_keeps_replaced_files_on_failure(upload_dir):
    old = uploads.store_upload(make_file(), 'waves', 1)
    with pytest.raises(RuntimeError):
        with uploads.UploadSession() as session:
            session.delete_later(old['public_url'])
            raise RuntimeError('rolled back')

    assert os.path.exists(os.path.join(upload_dir, old['file_path']))


def test_prune_empty_dirs(upload_dir):
    os.makedirs(os.path.join(upload_dir, 'cage_audits', 'empty'))
    os.makedirs(os.path.join(upload_dir, 'waves'))

    assert uploads.prune_empty_dirs() == [os.path.join('cage_audits',
                                                       'empty')]
    assert os.path.isdir(os.path.join(upload_dir, 'waves'))
