#!/usr/bin/env python3

import io
import json
import logging
import os
from unittest import mock

import pytest

import app as ducops_app
from conftest import mysql_error
from ducops import status
from ducops.tracking import EvriTracker

BARCODE = 'H01ABC1234567890'
CLIENT_ROW = {'id': 7, 'name': 'Amazon', 'code': 'AMZ', 'is_high_priority': 0,
              'contact_person': None, 'contact_email': None}


def test_index(client):
    assert client.get('/').get_data(as_text=True) == 'DUC Ops'


def test_ping(client):
    resp = client.get('/ping')
    assert resp.get_data(as_text=True) == 'PONG'
    assert resp.headers['X-DUC-Ops-Version'] == '0.1.0'


def test_list_envelope(client, conn):
    conn.on('FROM clients', rows=[CLIENT_ROW])
    resp = client.get('/api/clients')

    assert resp.status_code == 200
    assert resp.json == {'data': [dict(CLIENT_ROW, is_high_priority=False)],
                         'status': 200}

    # The connection goes back to the pool once the request is over.
    assert conn.commits == 1
    assert conn.closed


def test_get_item(client, conn):
    conn.on('FROM clients', rows=[CLIENT_ROW])
    resp = client.get('/api/clients/7')

    assert resp.status_code == 200
    assert resp.json['data']['name'] == 'Amazon'


def test_head_is_treated_as_get(client, conn):
    assert client.head('/api/clients').status_code == 200


def test_unknown_resource(client):
    resp = client.get('/api/parcels')

    assert resp.status_code == 404
    assert resp.json['error'] == 'Unknown resource'
    assert resp.json['message'] == ('There is no resource available at '
                                    '/api/parcels.')
    assert resp.json['status'] == 404
    assert resp.json['reqid']


@pytest.mark.parametrize('method,path', [
    ('delete', '/api/clients'),
    ('put', '/api/clients'),
    ('post', '/api/clients/7'),
    ('delete', '/api/duc-final-reports/DUC-2024-05-01-71-12345'),
    ('put', '/api/worst-round-performance-reports/3'),
    ('get', '/api/availability/TM001__2024-05-01'),
])
def test_method_not_allowed(client, method, path):
    resp = getattr(client, method)(path)

    assert resp.status_code == 405
    assert resp.json['error'] == 'Method not allowed'


def test_create(client, conn):
    conn.on('INSERT INTO clients', lastrowid=7)
    conn.on('FROM clients', rows=[CLIENT_ROW])
    resp = client.post('/api/clients', json={'name': 'Amazon'})

    assert resp.status_code == 201
    assert resp.json['status'] == 201
    assert resp.json['data']['id'] == 7


def test_create_requires_object(client, conn):
    resp = client.post('/api/clients', json=[{'name': 'Amazon'}])

    assert resp.status_code == 400
    assert resp.json['error'] == 'Invalid request body'
    assert conn.executed == []


def test_create_missing_field(client):
    resp = client.post('/api/clients', json={})

    assert resp.status_code == 400
    assert resp.json['error'] == 'Client Name is required'


def test_create_duplicate(client, conn):
    conn.on('INSERT INTO clients', error=mysql_error(1062))
    resp = client.post('/api/clients', json={'name': 'Amazon'})

    assert resp.status_code == 409
    assert resp.json['message'] == ('A client with this name or code already '
                                    'exists.')


def test_batch_create(client, conn):
    conn.on('INSERT INTO parcel_scan_entries', lastrowid=1)
    conn.on('INSERT INTO parcel_scan_entries', lastrowid=2)
    resp = client.post('/api/missing-parcels',
                       json=[{'barcode': 'A1'}, {'barcode': 'A2'}])

    assert resp.status_code == 201
    assert len(conn.statements('INSERT INTO parcel_scan_entries')) == 2


def test_batch_body_only_on_create(client, conn):
    resp = client.put('/api/missing-parcels/1', json=[{'notes': 'Found'}])

    assert resp.status_code == 400
    assert resp.json['error'] == 'Invalid request body'
    assert conn.executed == []


def test_update_and_delete(client, conn):
    conn.on('UPDATE clients', rowcount=1)
    conn.on('FROM clients', rows=[dict(CLIENT_ROW, code='AMZN')])
    resp = client.put('/api/clients/7', json={'code': 'AMZN'})
    assert resp.json['data']['code'] == 'AMZN'

    conn.on('DELETE FROM clients', rowcount=1)
    resp = client.delete('/api/clients/7')
    assert resp.json == {'data': {'message': 'Client 7 deleted successfully'},
                         'status': 200}


def test_update_not_implemented(client):
    resp = client.put('/api/duc-final-reports/DUC-2024-05-01-71-12345',
                      json={'notes': 'Late'})

    assert resp.status_code == 501
    assert resp.json['error'] == 'Update not implemented yet.'


def test_multipart_create(client, conn, upload_dir):
    resp = client.post('/api/waves', data={
        'van_reg': 'AB12 CDE', 'vehicle_type': 'Van', 'date': '2024-05-01',
        'time': '06:00', 'pallet_count': '12',
        'waveImage': (io.BytesIO(b'jpeg'), 'van.jpg', 'image/jpeg')
    }, content_type='multipart/form-data')

    assert resp.status_code == 201
    params = conn.statements('INSERT INTO waves')[0][1]
    assert params[4] == 12
    assert params[-1].startswith('/uploads/waves/van-')
    assert os.path.exists(os.path.join(upload_dir,
                                       params[-1][len('/uploads/'):]))


def test_multipart_refused_file(client, conn, upload_dir):
    resp = client.post('/api/waves', data={
        'van_reg': 'AB12 CDE', 'vehicle_type': 'Van', 'date': '2024-05-01',
        'time': '06:00', 'pallet_count': '12',
        'waveImage': (io.BytesIO(b'text'), 'van.txt', 'text/plain')
    }, content_type='multipart/form-data')

    assert resp.status_code == 400
    assert resp.json['error'] == 'File upload error'
    assert conn.statements('INSERT INTO waves') == []


def test_unknown_route(client):
    resp = client.get('/nowhere')

    assert resp.status_code == 404
    assert resp.json['error'] == 'Not Found'
    assert resp.json['status'] == 404


def test_request_too_large(client, conn, monkeypatch):
    monkeypatch.setitem(ducops_app.app.config, 'MAX_CONTENT_LENGTH', 64)
    resp = client.post('/api/waves', data={
        'van_reg': 'AB12 CDE', 'vehicle_type': 'Van', 'date': '2024-05-01',
        'time': '06:00', 'pallet_count': '12',
        'waveImage': (io.BytesIO(b'x' * 1024), 'van.jpg', 'image/jpeg')
    }, content_type='multipart/form-data')

    assert resp.status_code == 413
    assert resp.json['error'] == 'Request Entity Too Large'
    assert resp.json['status'] == 413
    assert conn.statements('INSERT INTO waves') == []


def test_track_parcel_options(client):
    resp = client.options('/api/track-parcel')

    assert resp.status_code == 204
    assert resp.headers['Access-Control-Allow-Origin'] == '*'
    assert resp.headers['Access-Control-Allow-Methods'] == 'GET, OPTIONS'


def test_track_parcel_invalid_barcode(client):
    resp = client.get('/api/track-parcel?barcode=SHORT')

    assert resp.status_code == 400
    assert resp.json == {'status': 'Invalid barcode'}


@mock.patch('ducops.tracking.requests.head')
def test_track_parcel_rate_limited(head, client, monkeypatch):
    head.return_value = mock.Mock(status_code=200, ok=True)
    monkeypatch.setattr(ducops_app, 'evri_tracker',
                        EvriTracker(rate_limit_ms=5000, clock=lambda: 100.0))

    resp = client.get(f'/api/track-parcel?barcode={BARCODE}')
    assert resp.status_code == 200
    assert resp.json['status'] == 'Click to track manually'

    resp = client.get(f'/api/track-parcel?barcode={BARCODE}')
    assert resp.status_code == 429
    assert resp.json == {'status': 'Rate limited - try again in 5 seconds'}


@pytest.mark.parametrize('query,error', [
    ('', 'Date parameter is required'),
    ('?date=yesterday', 'Invalid date format. Use DD/MM/YYYY or YYYY-MM-DD.'),
])
def test_scan_activity_date(client, query, error):
    resp = client.get(f'/api/scan-activity{query}')

    assert resp.status_code == 400
    assert resp.json['error'] == error


@pytest.mark.parametrize('path', [
    '/api/reports/missing-summary?date=2024-02-30',
    '/api/reports/courier-stats?date=31/02/2024',
    '/api/scan-activity?date=2023-02-29',
    '/api/timeslot-capacity?date=30/02/2024&sub_depot_id=71',
])
def test_impossible_dates(client, conn, path):
    resp = client.get(path)

    assert resp.status_code == 400
    assert resp.json['error'] == ('Invalid date format. Use DD/MM/YYYY or '
                                  'YYYY-MM-DD.')
    assert conn.executed == []


def test_scan_activity(client, conn):
    conn.on('FROM scan_logs', rows=[{'date': '01/05/2024', 'userId': 'TM001',
                                     'totalScanned': 120, 'missorts': 2}])
    resp = client.get('/api/scan-activity?date=01/05/2024&userId=TM001')

    assert resp.json['data'][0]['totalScanned'] == 120
    assert conn.executed[0][1] == ('2024-05-01', 'TM001')


def test_scan_activity_database_error(client, conn):
    conn.on('FROM scan_logs', error=mysql_error(1054, 'Unknown column'))
    resp = client.get('/api/scan-activity?date=2024-05-01')

    assert resp.status_code == 500
    assert resp.json['error'] == 'Server database error'
    assert resp.json['message'] == 'Unknown column'


@pytest.mark.parametrize('query,error', [
    ('date=2024-05-01', 'Sub depot parameter is required'),
    ('date=2024-05-01&sub_depot_id=abc', 'Invalid Sub Depot ID format'),
])
def test_timeslot_capacity_validation(client, query, error):
    resp = client.get(f'/api/timeslot-capacity?{query}')

    assert resp.status_code == 400
    assert resp.json['error'] == error


def test_timeslot_capacity(client, conn):
    resp = client.get('/api/timeslot-capacity?date=2024-05-01&'
                      'sub_depot_id=71&timeslot=09:15')

    assert resp.json['data'] == {
        'date': '2024-05-01',
        'sub_depot_id': 71,
        'template_id': None,
        'color': 'gray',
        'slots': [{'timeslot': '09:15', 'used': 0, 'max': 40}]
    }


def test_missing_summary(client, conn):
    conn.on('FROM parcel_scan_entries', rows=[
        {'id': 1, 'barcode': 'B1', 'dateAdded': '01/05/2024',
         'courier_id': 'C001', 'is_recovered': 0},
        {'id': 2, 'barcode': 'B2', 'dateAdded': '01/05/2024',
         'courier_id': None, 'is_recovered': 1}])
    resp = client.get('/api/reports/missing-summary?date=2024-05-01')

    data = resp.json['data']
    assert data['total_missing'] == 2
    assert data['unrecovered'] == 1
    assert data['recovery_rate'] == 50
    assert data['parcels'][1]['courier_id'] == 'N/A_COURIER'
    assert conn.executed[0][1] == ('2024-05-01',)


def test_courier_stats(client, conn):
    conn.on('FROM couriers', rows=[{'id': 'C001', 'name': 'Bob'},
                                   {'id': 'C002', 'name': 'Amy'}])
    conn.on('FROM parcel_scan_entries', rows=[
        {'id': 1, 'barcode': 'B1', 'dateAdded': '01/05/2024',
         'courier_id': 'C002', 'round_id': '4', 'is_recovered': 0}])
    resp = client.get('/api/reports/courier-stats?date=01/05/2024')

    stats = resp.json['data']
    assert [s['id'] for s in stats] == ['C002', 'C001']
    assert stats[0]['rounds'] == ['4']
    assert stats[0]['recoveryRate'] == 0


def script_counts(conn):
    for table in status.TABLES:
        conn.on(f'FROM {table}', rows=[{'count': 2}])


def test_seed_get(client, conn):
    script_counts(conn)
    resp = client.get('/api/seed')

    assert resp.json['status'] == 200
    assert resp.json['data']['rounds'] == {'count': 2}


def test_seed_post_changes_nothing(client, conn):
    script_counts(conn)
    resp = client.post('/api/seed')

    assert resp.json['message'] == status.SEED_MESSAGE
    assert len(resp.json['data']) == len(status.TABLES)
    assert all(stmt.startswith('SELECT COUNT(*)')
               for stmt, _ in conn.executed)


def test_uploaded_files_are_served(client, upload_dir):
    os.makedirs(os.path.join(upload_dir, 'waves', '4'))
    with open(os.path.join(upload_dir, 'waves', '4', 'van.jpg'), 'wb') as fh:
        fh.write(b'jpeg')

    resp = client.get('/uploads/waves/4/van.jpg')
    assert resp.status_code == 200
    assert resp.data == b'jpeg'
    resp.close()

    assert client.get('/uploads/waves/4/nothing.jpg').status_code == 404


def test_request_log_hides_pins(client, caplog):
    with caplog.at_level(logging.DEBUG, logger='flask'):
        client.post('/api/hht-logins', json={
            'login_id': 'L001', 'pin': '4821', 'sub_depot_id': 71})

    request_logs = [r for r in caplog.records
                    if getattr(r, 'action', None) == 'request']
    context = json.loads(request_logs[0].detail.split('\n', 1)[1])
    assert context['json']['pin'] == '[redacted]'
    assert context['json']['login_id'] == 'L001'
