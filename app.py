#!/usr/bin/env python3

import hashlib
import json
import random
import time
from typing import Optional

import mysql.connector.errors
from flask import Flask, request, g, send_from_directory
from mysql.connector import MySQLConnection
from mysql.connector.pooling import MySQLConnectionPool, PooledMySQLConnection
from werkzeug.datastructures import MultiDict
from werkzeug.exceptions import HTTPException, InternalServerError

import config
import ducops.resources as resources
from ducops import reporting, status, timeslots, uploads
from ducops.exceptions import (NotEnoughParameters, InvalidParameter,
                               ResourceNotFound, MethodNotAllowed,
                               RateLimited, RequestError, TitledException,
                               DatabaseError, TitledInternalServerError)
from ducops.logger import Logger
from ducops.resources.base import BaseResource
from ducops.resources.couriers import ResourceCouriers
from ducops.resources.missing_parcels import ResourceMissingParcels
from ducops.tracking import EvriTracker

# Get our application's logger instance.
root_logger = Logger('flask', 'app')

# Define the global flask application object.
app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = config.app('max_upload_bytes') * 5

# MySQL connection pool, created on the first request that needs it.
db_conn_pool: Optional[MySQLConnectionPool] = None

# Rate limited lookups of Evri's tracking pages.
evri_tracker = EvriTracker()

TRACK_PARCEL_HEADERS = {
    'Allow': 'GET, OPTIONS',
    'Access-Control-Allow-Methods': 'GET, OPTIONS',
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'Content-Type, User-Agent, Accept, '
                                    'Accept-Language, Referer, Origin'
}


def get_logger(subsystem: str) -> Logger:
    """Gets the logger from the request context. Will not override the
    subsystem if a logger is already in the context."""
    if 'logger' not in g:
        g.logger = root_logger.for_subsystem(subsystem)
    return g.logger


def connect_db() -> MySQLConnection | PooledMySQLConnection:
    """Connects to the database and stores the connection in the global
    application context."""
    global db_conn_pool
    if 'db' not in g:
        if db_conn_pool is None:
            db_conn_pool = MySQLConnectionPool(
                pool_name='ducops_main', pool_size=config.db('pool_size'),
                **config.db_conn())
        g.db = db_conn_pool.get_connection()
    return g.db


@app.teardown_appcontext
def app_context_teardown(exception):
    """Event handler when the application context is being torn down."""
    db: MySQLConnection = g.pop('db', None)
    if db is not None and db.is_connected():
        db.commit()
        db.close()


@app.errorhandler(TitledException)
def handle_title_exception(exc: TitledException):
    """Handles uncaught exceptions that were made to provide a response to the
    user."""
    return exc.resp_dict(req_uuid=request_uuid()), exc.status_code


@app.errorhandler(InternalServerError)
def handle_uncaught_exceptions(exc: InternalServerError):
    """Deals with all uncaught exceptions that weren't handled by other error
    handlers."""
    logger = get_logger('internal_server_error')
    return handle_title_exception(TitledInternalServerError(exc,
                                                            logger=logger))


@app.errorhandler(HTTPException)
def handle_http_exception(exc: HTTPException):
    """Wraps the errors raised by Flask itself in our error envelope."""
    return handle_title_exception(RequestError(exc))


@app.errorhandler(mysql.connector.errors.Error)
def handle_mysql_exception(exc: mysql.connector.errors.Error):
    """Handles uncaught database exceptions."""
    logger = get_logger('mysql_exception')
    return handle_title_exception(DatabaseError(exc, context={
        'req_uuid': request_uuid()
    }, logger=logger))


def request_uuid() -> str:
    """Returns a UUID that represents the current request. Will be generated if
    needed."""
    if 'req_uuid' not in g:
        # Generate a meaningful UUID to reference the request in the future.
        g.req_uuid = (hex(round(time.time() * 1000))[2:] + '-' +
                      hashlib.md5(request.path.encode()).hexdigest()[-8:] +
                      '-' + hashlib.md5(json.dumps(dict(request.headers))
                                        .encode()).hexdigest()[-12:] + '-' +
                      random.randbytes(2).hex())

    return g.req_uuid


def log_http_request(logger: Logger = None):
    """Logs everything about an HTTP request."""
    # Ensure the logger has our request UUID.
    logger.uuid = request_uuid()

    # Uploaded files are described rather than dumped.
    files = {field: f'{file.filename} ({file.mimetype})'
             for field, file in request.files.items(multi=True)}

    logger.debug('request',
                 f'{request.method} {request.path} [{request.remote_addr}]',
                 context={
                     'method': request.method,
                     'path': request.path,
                     'query_string': request.query_string.decode(),
                     'args': request.args,
                     'form': request.form,
                     'json': request.get_json(silent=True),
                     'files': files,
                     'remote_addr': request.remote_addr,
                     'req_uuid': request_uuid()
                 })


def envelope(data, status_code: int = 200) -> tuple[dict, int]:
    """Wraps a payload in the response envelope used throughout the API."""
    return {'data': data, 'status': status_code}, status_code


def open_resource(endpoint: str, item: bool) -> BaseResource:
    """Gets the resource behind an endpoint ready to handle the request,
    ensuring it supports the requested method."""
    logger = get_logger(f'api.{endpoint}')
    log_http_request(logger)

    resource_class = resources.from_endpoint(endpoint)
    if resource_class is None:
        raise ResourceNotFound(endpoint)

    method = 'GET' if request.method == 'HEAD' else request.method
    allowed = resource_class.allowed_methods(item)
    if method not in allowed:
        raise MethodNotAllowed(method, allowed)

    return resource_class(connect_db(), logger)


def request_payload(resource: BaseResource) -> tuple[dict | list,
                                                     Optional[MultiDict]]:
    """Gets the body of the request along with any uploaded files."""
    if resource.multipart and not request.is_json:
        return request.form.to_dict(), request.files

    body = request.get_json(silent=True)
    if body is None:
        body = {}
    if isinstance(body, list) and resource.batch and \
            request.method == 'POST':
        return body, None
    if not isinstance(body, dict):
        raise InvalidParameter('Invalid request body',
                               'Expected a JSON object.')

    return body, None


def query_date(name: str = 'date') -> str:
    """Gets a mandatory date from the query string as YYYY-MM-DD."""
    value = request.args.get(name)
    if not value:
        raise NotEnoughParameters('Date parameter is required')

    date = reporting.parse_date(value)
    if date is None:
        raise InvalidParameter('Invalid date format. Use DD/MM/YYYY or '
                               'YYYY-MM-DD.')

    return date


@app.route('/')
def hello_world():
    return 'DUC Ops'


@app.route('/ping')
def ping_pong():
    """Provides a rudimentary way to detect the server and its version."""
    resp = app.make_response('PONG')
    resp.headers['X-DUC-Ops-Version'] = '0.1.0'

    return resp


@app.route('/api/<endpoint>', methods=['GET', 'POST', 'PUT', 'DELETE'])
def resource_collection(endpoint: str):
    """Lists the records of a resource or creates a new one."""
    resource = open_resource(endpoint, item=False)
    if request.method == 'POST':
        body, files = request_payload(resource)
        return envelope(resource.create(body, files), 201)

    return envelope(resource.list(request.args))


@app.route('/api/<endpoint>/<record_id>',
           methods=['GET', 'POST', 'PUT', 'DELETE'])
def resource_item(endpoint: str, record_id: str):
    """Fetches, updates or deletes a single record of a resource."""
    resource = open_resource(endpoint, item=True)
    if request.method == 'PUT':
        body, files = request_payload(resource)
        return envelope(resource.update(record_id, body, files))
    elif request.method == 'DELETE':
        return envelope(resource.delete(record_id))

    return envelope(resource.get(record_id))


@app.route('/api/track-parcel', methods=['GET', 'OPTIONS'])
def track_parcel():
    """Checks a barcode against Evri's tracking website."""
    if request.method == 'OPTIONS':
        return '', 204, TRACK_PARCEL_HEADERS

    logger = get_logger('track_parcel')
    log_http_request(logger)

    try:
        return evri_tracker.lookup(request.args.get('barcode'), logger)
    except InvalidParameter:
        return {'status': 'Invalid barcode'}, 400
    except RateLimited as e:
        logger.info('track_rate_limited',
                    f'Rate limited a lookup of {request.args.get("barcode")}')
        return {
            'status': f'Rate limited - try again in {e.retry_after} seconds'
        }, 429


@app.route('/api/scan-activity')
def scan_activity():
    """Scanning totals of every user on a given day."""
    logger = get_logger('scan_activity')
    log_http_request(logger)

    date = query_date()
    return envelope(reporting.scan_activity(connect_db(), date,
                                            request.args.get('userId')))


@app.route('/api/timeslot-capacity')
def timeslot_capacity():
    """How full the timeslots of a sub depot are on a given day."""
    logger = get_logger('timeslot_capacity')
    log_http_request(logger)

    date = query_date()
    sub_depot_id = request.args.get('sub_depot_id')
    if not sub_depot_id:
        raise NotEnoughParameters('Sub depot parameter is required')
    try:
        sub_depot_id = int(sub_depot_id)
    except ValueError:
        raise InvalidParameter('Invalid Sub Depot ID format')

    return envelope(timeslots.day_capacity(connect_db(), date, sub_depot_id,
                                           request.args.get('timeslot')))


@app.route('/api/reports/missing-summary')
def missing_summary():
    """Missing parcels of a day, as attached to the DUC final report."""
    logger = get_logger('reports.missing_summary')
    log_http_request(logger)

    date = query_date()
    entries = ResourceMissingParcels(connect_db(), logger).list(
        MultiDict({'dateAdded': reporting.gb_date(date)}))
    return envelope(reporting.missing_parcels_summary(entries, date))


@app.route('/api/reports/courier-stats')
def courier_stats():
    """Couriers ranked by how many of their parcels went missing on a day."""
    logger = get_logger('reports.courier_stats')
    log_http_request(logger)

    date = query_date()
    conn = connect_db()
    couriers = ResourceCouriers(conn, logger).list(MultiDict())
    entries = ResourceMissingParcels(conn, logger).list(
        MultiDict({'dateAdded': reporting.gb_date(date)}))
    return envelope(reporting.courier_stats(couriers, entries, date))


@app.route('/api/seed', methods=['GET', 'POST'])
def seed():
    """Row counts of every table. Seeding itself is only done through the
    management script."""
    logger = get_logger('seed')
    log_http_request(logger)

    counts = status.table_counts(connect_db(), logger)
    if request.method == 'POST':
        logger.info('seed_placeholder', 'Seeding requested over HTTP, '
                                        'nothing was changed')
        return {'message': status.SEED_MESSAGE, 'data': counts, 'status': 200}

    return envelope(counts)


@app.route('/uploads/<path:path>')
def uploaded_file(path: str):
    """Serves the files uploaded along with the records."""
    return send_from_directory(uploads.upload_root(), path)


if __name__ == '__main__':
    app.run(debug=True)
