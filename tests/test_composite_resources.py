#!/usr/bin/env python3

import io
import json
import os
import re

import pytest
from werkzeug.datastructures import FileStorage, MultiDict

from conftest import mysql_error
from ducops.exceptions import (NotEnoughParameters, InvalidParameter,
                               NotImplementedYet, RecordNotFound,
                               DatabaseError)
from ducops.resources.cage_audits import ResourceCageAudits
from ducops.resources.cage_returns import ResourceCageReturnReports
from ducops.resources.duc_reports import ResourceDUCFinalReports, report_id
from ducops.resources.invoices import ResourceInvoices
from ducops.resources.leagues import (ResourceWorstCourierPerformanceReports,
                                      ResourceTopMisroutedDestinationsReports)
from ducops.resources.lost_prevention import ResourceLostPreventionReports
from ducops.resources.summaries import ResourceDailyMissortSummaryReports
from ducops.resources.waves import ResourceWaves


def upload(name: str = 'photo.jpg', mime: str = 'image/jpeg') -> FileStorage:
    return FileStorage(stream=io.BytesIO(b'file-data'), filename=name,
                       content_type=mime)


def existing_upload(upload_dir: str, rel_path: str) -> str:
    """Places a file in the upload folder as if it was sent earlier."""
    path = os.path.join(upload_dir, rel_path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'wb') as fh:
        fh.write(b'old')

    return path


INVOICE_FORM = {
    'pay_period_id': 'pp-1',
    'team_member_id': 'TM001',
    'invoice_date': '2024-05-31',
    'total_hours': '8',
    'total_amount': '96.00',
    'status': 'Draft',
    'lines': json.dumps([{'date': '2024-05-01', 'description': 'Sorting',
                          'hours': '8', 'rate': '12', 'amount': '96',
                          'type': 'Regular'}])
}


def test_report_id():
    assert re.match(r'^CRR-2024-05-01-71-\d{5}$',
                    report_id('CRR', '2024-05-01', 71))


def test_invoice_create_with_attachment(conn, logger, upload_dir):
    conn.on('WHERE i.id', rows=[{'id': 'inv-1', 'total_amount': '96.00'}])
    conn.on('FROM invoice_lines', rows=[{'id': 1, 'invoice_id': 'inv-1',
                                         'hours': '8.00', 'rate': '12.00',
                                         'amount': '96.00'}])

    pdf = upload('inv.pdf', 'application/pdf')
    record = ResourceInvoices(conn, logger).create(
        dict(INVOICE_FORM), MultiDict({'attachment': pdf}))

    assert record['total_amount'] == 96.0
    assert record['lines'][0]['hours'] == 8.0

    params = conn.statements('INSERT INTO invoices')[0][1]
    assert params[-1].startswith('/uploads/invoices/inv-')
    stored = os.path.join(upload_dir, params[-1][len('/uploads/'):])
    assert os.path.exists(stored)

    line = conn.statements('INSERT INTO invoice_lines')[0][1]
    assert line == (params[-2], None, '2024-05-01', 'Sorting', 8.0, 12.0,
                    96.0, 'Regular')
    assert conn.commits == 1


def test_invoice_create_failure_discards_attachment(conn, logger,
                                                    upload_dir):
    conn.on('INSERT INTO invoice_lines', error=mysql_error(1406, 'Too long'))
    with pytest.raises(DatabaseError):
        ResourceInvoices(conn, logger).create(
            dict(INVOICE_FORM), MultiDict({'attachment': upload()}))

    assert os.listdir(os.path.join(upload_dir, 'invoices')) == []
    assert conn.commits == 0


def test_invoice_requires_lines(conn, logger):
    form = dict(INVOICE_FORM)
    del form['lines']
    with pytest.raises(NotEnoughParameters) as exc_info:
        ResourceInvoices(conn, logger).create(form)
    assert exc_info.value.title == 'Missing required fields for invoice.'


def test_invoice_update_removes_attachment(conn, logger, upload_dir):
    old = existing_upload(upload_dir, 'invoices/inv-1/old.pdf')
    conn.on('FOR UPDATE',
            rows=[{'attachment_url': '/uploads/invoices/inv-1/old.pdf'}])

    ResourceInvoices(conn, logger).update(
        'inv-1', dict(INVOICE_FORM, remove_attachment='true'))

    params = conn.statements('UPDATE invoices')[0][1]
    assert params[-2] is None
    assert params[-1] == 'inv-1'
    assert len(conn.statements('INSERT INTO invoice_lines')) == 1
    assert not os.path.exists(old)


def test_invoice_update_missing(conn, logger):
    with pytest.raises(RecordNotFound) as exc_info:
        ResourceInvoices(conn, logger).update('inv-1', dict(INVOICE_FORM))
    assert exc_info.value.title == 'Invoice not found'


AUDIT_FORM = {
    'date': '2024-05-01',
    'teamMemberId': 'TM001',
    'subDepotId': '71',
    'roundId': '1',
    'drop': '3',
    'totalParcelsInCage': '40',
    'missortedParcels': json.dumps([{'barcode': 'X1', 'client': 'Amazon',
                                     'reason': 'Wrong round'}])
}


@pytest.fixture
def audits(conn, logger, monkeypatch) -> ResourceCageAudits:
    resource = ResourceCageAudits(conn, logger)
    monkeypatch.setattr(resource, 'generate_key', lambda: 'audit-1')
    return resource


def test_cage_audit_create(conn, audits, upload_dir):
    conn.on('SELECT id FROM clients', rows=[{'id': 7}])
    conn.on('WHERE cage_audits.id', rows=[{'id': 'audit-1'}])
    conn.on('FROM cage_audit_images', rows=[
        {'id': 1, 'cage_audit_id': 'audit-1',
         'image_url': '/uploads/cage_audits/audit-1/a.jpg'}])

    record = audits.create(dict(AUDIT_FORM), MultiDict([
        ('missortImages[0]', upload('a.jpg')),
        ('missortImages[1]', upload('b.png', 'image/png'))]))

    assert record['missortImageUrls'] == [
        '/uploads/cage_audits/audit-1/a.jpg']
    audit = conn.statements('INSERT INTO cage_audits')[0][1]
    assert audit == ('2024-05-01', 'TM001', 71, '1', 3, 40, None, 1,
                     'audit-1')
    assert conn.statements('INSERT INTO cage_audit_missorted_parcels')[0][1] \
        == ('audit-1', 'X1', 7, 'Wrong round')

    images = conn.statements('INSERT INTO cage_audit_images')
    assert [params[2] for _, params in images] == ['a.jpg', 'b.png']
    assert len(os.listdir(os.path.join(upload_dir, 'cage_audits',
                                       'audit-1'))) == 2


def test_cage_audit_unknown_client(conn, audits, upload_dir):
    with pytest.raises(InvalidParameter) as exc_info:
        audits.create(dict(AUDIT_FORM),
                      MultiDict({'missortImages[0]': upload()}))

    assert exc_info.value.title == ("Client 'Amazon' not found. Please add "
                                    "client first.")
    assert conn.rollbacks == 1


def test_cage_audit_required_fields(audits):
    form = dict(AUDIT_FORM, drop='')
    with pytest.raises(NotEnoughParameters) as exc_info:
        audits.create(form)
    assert exc_info.value.title == 'Missing required fields for cage audit.'


def test_cage_audit_invalid_numbers(audits):
    with pytest.raises(InvalidParameter):
        audits.create(dict(AUDIT_FORM, totalParcelsInCage='lots'))


def test_cage_audit_update_drops_unlisted_images(conn, audits, upload_dir):
    kept = existing_upload(upload_dir, 'cage_audits/audit-1/one.jpg')
    dropped = existing_upload(upload_dir, 'cage_audits/audit-1/two.jpg')
    conn.on('SELECT id FROM clients', rows=[{'id': 7}])
    conn.on('SELECT id, image_url FROM cage_audit_images', rows=[
        {'id': 1, 'image_url': '/uploads/cage_audits/audit-1/one.jpg'},
        {'id': 2, 'image_url': '/uploads/cage_audits/audit-1/two.jpg'}])

    audits.update('audit-1', dict(AUDIT_FORM, existingImageIds='[1]'))

    assert conn.statements('DELETE FROM cage_audit_images WHERE id')[0][1] \
        == (2,)
    assert os.path.exists(kept)
    assert not os.path.exists(dropped)


def test_cage_audit_update_missing(conn, audits):
    conn.on('UPDATE cage_audits', rowcount=0)
    with pytest.raises(RecordNotFound):
        audits.update('audit-1', dict(AUDIT_FORM, missortedParcels='[]'))


DUC_FORM = {
    'date': '2024-05-01',
    'sub_depot_id': '71',
    'submitted_by_team_member_id': 'TM001',
    'total_returns': '12',
    'missing_parcels_summary': json.dumps({'total': 3}),
    'failed_rounds': json.dumps([{'round_id': '1', 'sub_depot_id': 71,
                                  'drop_number': 1,
                                  'comments': 'Van broke down'}]),
    'segregated_parcels': json.dumps([{'barcode': 'S1', 'client': 'ASOS',
                                       'count': 2}])
}


def test_duc_report_create(conn, logger, upload_dir):
    conn.on('SELECT id FROM clients', rows=[{'id': 8}])
    conn.on('WHERE dfr.id', rows=[{'id': 'DUC-x', 'total_returns': '12',
                                   'missing_parcels_summary': '{"total": 3}',
                                   'is_approved': 0}])

    pdf = upload('proof.pdf', 'application/pdf')
    record = ResourceDUCFinalReports(conn, logger).create(
        dict(DUC_FORM), MultiDict({'attachments[0]': pdf}))

    assert record['total_returns'] == 12
    assert record['missing_parcels_summary'] == {'total': 3}
    assert record['is_approved'] is False

    params = conn.statements('INSERT INTO duc_final_reports')[0][1]
    assert re.match(r'^DUC-2024-05-01-71-\d{5}$', params[0])
    assert params[2] == 71
    assert params[-1] == '{"total": 3}'
    assert conn.statements('INSERT INTO duc_failed_rounds')[0][1] == \
        (params[0], '1', 71, 1, 'Van broke down')
    assert conn.statements('INSERT INTO duc_segregated_parcels')[0][1] == \
        (params[0], 'S1', 8, 2)

    attachment = conn.statements('INSERT INTO duc_report_attachments')[0][1]
    assert attachment[2] == f'duc_reports/{params[0]}/{attachment[1]}'
    assert attachment[4:] == ('application/pdf', len(b'file-data'))


def test_duc_report_unknown_segregated_client(conn, logger):
    with pytest.raises(InvalidParameter) as exc_info:
        ResourceDUCFinalReports(conn, logger).create(dict(DUC_FORM))
    assert exc_info.value.title == ("Client 'ASOS' for segregated parcel not "
                                    "found.")


def test_duc_report_update_not_implemented(conn, logger):
    with pytest.raises(NotImplementedYet) as exc_info:
        ResourceDUCFinalReports(conn, logger).update('DUC-x', {})
    assert exc_info.value.status_code == 501
    assert ResourceDUCFinalReports.allowed_methods(True) == ('GET', 'PUT')


def test_cage_return_create(conn, logger):
    ResourceCageReturnReports(conn, logger).create({
        'date': '2024-05-01', 'sub_depot_id': 71,
        'submitted_by_team_member_id': 'TM001',
        'non_returned_cages': [{'round_id': '1', 'courier_id': 'C001',
                                'reason': 'Left at drop',
                                'reported_at': '2024-05-01T18:00:00'}]})

    key = conn.statements('INSERT INTO duc_cage_return_reports')[0][1][0]
    assert key.startswith('CRR-2024-05-01-71-')
    assert conn.statements('INSERT INTO duc_non_returned_cages')[0][1] == \
        (key, '1', 'C001', 'Left at drop', '2024-05-01T18:00:00')


def test_cage_return_update(conn, logger):
    resource = ResourceCageReturnReports(conn, logger)
    with pytest.raises(NotEnoughParameters) as exc_info:
        resource.update('CRR-1', {'date': '2024-05-01'})
    assert exc_info.value.title == 'Missing required fields for update.'

    conn.on('UPDATE duc_cage_return_reports', rowcount=0)
    with pytest.raises(RecordNotFound):
        resource.update('CRR-1', {'date': '2024-05-01', 'sub_depot_id': 71,
                                  'submitted_by_team_member_id': 'TM001'})
    assert conn.statements('DELETE FROM duc_non_returned_cages') == []


LPR_FORM = {
    'date_of_incident': '2024-05-01',
    'submitted_by_team_member_id': 'TM001',
    'courier_id': 'C001',
    'incident_description': 'Parcels missing from van',
    'status': 'Open',
    'cctv_viewed': 'true',
    'round_ids': '["1", "2"]'
}


def test_lost_prevention_create(conn, logger, upload_dir):
    ResourceLostPreventionReports(conn, logger).create(
        dict(LPR_FORM), MultiDict({'cctvFile': upload('cctv.jpg')}))

    params = conn.statements('INSERT INTO duc_lost_prevention_reports ')[0][1]
    assert params[0].startswith('LPR-2024-05-01-C001-')
    assert params[5] is True
    assert params[7] is False
    assert [p[1] for _, p in conn.statements(
        'INSERT INTO duc_lost_prevention_report_rounds')] == ['1', '2']

    attachment = conn.statements(
        'INSERT INTO duc_lost_prevention_report_attachments')[0][1]
    assert attachment[4] == 'CCTV footage'
    assert attachment[3].startswith(
        f'/uploads/lost_prevention_reports/{params[0]}/cctv-')


def test_lost_prevention_update_only_sent_fields(conn, logger):
    conn.on('FROM duc_lost_prevention_reports WHERE id',
            rows=[{'found': 1}])
    ResourceLostPreventionReports(conn, logger).update('LPR-1',
                                                       {'status': 'Closed'})

    assert conn.statements('UPDATE duc_lost_prevention_reports')[0] == (
        'UPDATE duc_lost_prevention_reports SET status = %s, '
        'updated_at = NOW() WHERE id = %s', ('Closed', 'LPR-1'))
    assert conn.statements('duc_lost_prevention_report_rounds ') == []


def test_lost_prevention_update_missing(conn, logger):
    with pytest.raises(RecordNotFound) as exc_info:
        ResourceLostPreventionReports(conn, logger).update(
            'LPR-1', {'status': 'Closed'})
    assert exc_info.value.title == 'Report not found for update.'


def test_wave_photo_replaced(conn, logger, upload_dir):
    old = existing_upload(upload_dir, 'waves/old.jpg')
    conn.on('FOR UPDATE', rows=[{'photo_url': '/uploads/waves/old.jpg'}])

    ResourceWaves(conn, logger).update(
        '4', {'pallet_count': '12', 'notes': ''},
        MultiDict({'waveImage': upload('new.jpg')}))

    stmt, params = conn.statements('UPDATE waves')[0]
    assert stmt.startswith('UPDATE waves SET pallet_count = %s, notes = %s, '
                           'photo_url = %s')
    assert params[:2] == (12, None)
    assert params[2].startswith('/uploads/waves/4/new-')
    assert not os.path.exists(old)


def test_wave_invalid_pallet_count(conn, logger):
    with pytest.raises(InvalidParameter) as exc_info:
        ResourceWaves(conn, logger).create({
            'van_reg': 'AB12 CDE', 'vehicle_type': 'Van',
            'date': '2024-05-01', 'time': '06:00', 'pallet_count': 'ten'})
    assert exc_info.value.title == 'Invalid pallet count.'


def test_daily_summary(conn, logger):
    conn.on('WHERE dmsr.id', rows=[{'id': 2, 'total_missorts': '5',
                                    'missorts_by_client': '[]',
                                    'missorts_by_round': None}])
    record = ResourceDailyMissortSummaryReports(conn, logger).create({
        'date': '2024-05-01', 'submitted_by_team_member_id': 'TM001',
        'total_missorts': 5, 'missorts_by_client': [{'client': 'ASOS',
                                                     'count': 5}],
        'missorts_by_round': [{'round': '1', 'count': 5}]})

    assert record['total_missorts'] == 5
    assert record['missorts_by_round'] == []
    params = conn.statements('INSERT INTO duc_daily_missort')[0][1]
    assert params[3] == '[{"client": "ASOS", "count": 5}]'


def test_league_report(conn, logger):
    conn.on('INSERT INTO duc_worst_courier', lastrowid=3)
    conn.on('FROM duc_worst_courier_performance_reports',
            rows=[{'id': 3, 'couriers': '[{"name": "Bob"}]'}])

    record = ResourceWorstCourierPerformanceReports(conn, logger).create({
        'periodType': 'weekly', 'startDate': '2024-04-29',
        'endDate': '2024-05-05', 'submitted_by_team_member_id': 'TM001',
        'couriers': [{'name': 'Bob'}]})

    assert record['couriers'] == [{'name': 'Bob'}]
    stmt = conn.statements('FROM duc_worst_courier_performance_reports')[0][0]
    assert 'submitted_at AS generated_at' in stmt
    assert ResourceWorstCourierPerformanceReports.allowed_methods(True) == \
        ('GET', 'DELETE')


def test_league_report_requires_payload(conn, logger):
    with pytest.raises(NotEnoughParameters):
        ResourceWorstCourierPerformanceReports(conn, logger).create({
            'periodType': 'weekly', 'startDate': '2024-04-29',
            'endDate': '2024-05-05', 'submitted_by_team_member_id': 'TM001',
            'couriers': []})


def test_top_misrouted_destinations(conn, logger):
    resource = ResourceTopMisroutedDestinationsReports(conn, logger)
    with pytest.raises(NotEnoughParameters):
        resource.create({'startDate': '2024-04-29', 'endDate': '2024-05-05',
                         'destinations': [{'du': 'EDM'}]})

    resource.create({'startDate': '2024-04-29', 'endDate': '2024-05-05',
                     'generatedBy': 'TM001', 'destinations': [{'du': 'EDM'}]})
    assert conn.statements('INSERT INTO duc_top_misrouted')[0][1] == (
        '2024-04-29', '2024-05-05', '[{"du": "EDM"}]', 'TM001', None)
