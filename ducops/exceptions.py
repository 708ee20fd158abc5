#!/usr/bin/env python3
import logging
import traceback

import mysql.connector.errors
from werkzeug.exceptions import HTTPException

from ducops.logger import Logger, LoggerNotFound


class TitledException(Exception):
    """An exception that has a title and a message associated with it."""

    def __init__(self, title: str, message: str = None,
                 status_code: int = 500, logger: Logger = None):
        super().__init__(title if message is None else f'{title}: {message}')
        self.title = title
        self.message = message
        self.status_code = status_code
        self.logger = logger

    def log(self, level: int, action_id: str, message: str = None,
            context: dict = None):
        """Logs the occurrence of this exception."""
        if self.logger is None:
            raise LoggerNotFound

        if message is None:
            message = self.title
            if self.message is not None:
                message += f': {self.message}'

        self.logger.log(level, action_id, message, context=context)

    def resp_dict(self, req_uuid: str = None) -> dict:
        """Returns the error envelope sent back to the client."""
        resp = {
            'error': self.title,
            'status': self.status_code
        }

        # Only include a message if there's something to add to the title.
        if self.message is not None:
            resp['message'] = self.message
        if req_uuid is not None:
            resp['reqid'] = req_uuid

        return resp


class NotEnoughParameters(TitledException):
    """Not all the required parameters were passed to us."""

    def __init__(self, title: str, message: str = None,
                 status_code: int = 400, logger: Logger = None):
        super().__init__(title, message, status_code, logger)


class InvalidParameter(TitledException):
    """A parameter was supplied but its value can't be used."""

    def __init__(self, title: str, message: str = None,
                 status_code: int = 400, logger: Logger = None):
        super().__init__(title, message, status_code, logger)


class ResourceNotFound(TitledException):
    """The requested API endpoint doesn't map to any resource."""

    def __init__(self, endpoint: str, logger: Logger = None):
        super().__init__('Unknown resource',
                         f'There is no resource available at /api/{endpoint}.',
                         404, logger)


class MethodNotAllowed(TitledException):
    """The resource doesn't support the requested HTTP method."""

    def __init__(self, method: str, allowed: tuple[str, ...],
                 logger: Logger = None):
        super().__init__('Method not allowed',
                         f'{method} is not supported here. Allowed: '
                         f'{", ".join(allowed)}.', 405, logger)
        self.allowed = allowed


class RecordNotFound(TitledException):
    """The requested record doesn't exist."""

    def __init__(self, title: str, message: str = None,
                 logger: Logger = None):
        super().__init__(title, message, 404, logger)


class RecordConflict(TitledException):
    """The record clashes with a uniqueness constraint."""

    def __init__(self, title: str, message: str = None,
                 logger: Logger = None):
        super().__init__(title, message, 409, logger)


class RecordInUse(TitledException):
    """The record can't be removed since other records still reference it."""

    def __init__(self, title: str, message: str = None,
                 logger: Logger = None):
        super().__init__(title, message, 409, logger)


class InvalidReference(TitledException):
    """The record points to another record that doesn't exist."""

    def __init__(self, title: str, message: str = None,
                 logger: Logger = None):
        super().__init__(title, message, 400, logger)


class RateLimited(TitledException):
    """Too many requests for the same thing in a short period of time."""

    def __init__(self, retry_after: int, logger: Logger = None):
        super().__init__('Rate limited',
                         f'Try again in {retry_after} seconds.', 429, logger)
        self.retry_after = retry_after


class FileUploadError(TitledException):
    """An uploaded file was refused."""

    def __init__(self, message: str, logger: Logger = None):
        super().__init__('File upload error', message, 400, logger)


class RequestError(TitledException):
    """An error raised by Flask or Werkzeug while handling the request."""

    def __init__(self, exc: HTTPException, logger: Logger = None):
        super().__init__(exc.name, exc.description, exc.code or 500, logger)


class NotImplementedYet(TitledException):
    """The operation exists in the API but doesn't do anything yet."""

    def __init__(self, title: str = 'Update not implemented yet.',
                 logger: Logger = None):
        super().__init__(title, None, 501, logger)


class DatabaseError(TitledException):
    """A database error occurred that wasn't translated into anything more
    meaningful."""

    def __init__(self, exc: mysql.connector.errors.Error,
                 title: str = 'Server database error',
                 message: str = None, context: dict = None,
                 logger: Logger = None):
        # Expose the driver message like the rest of the API does.
        if message is None:
            message = exc.msg
        super().__init__(title, message, 500, logger=logger)
        self.errno = exc.errno

        if self.logger is not None:
            self.log(logging.ERROR, 'mysql_error',
                     f'{exc.__class__.__name__}: {exc.msg}',
                     context={
                         'context': context,
                         'errno': exc.errno,
                         'sqlstate': exc.sqlstate,
                         'mysql_msg': str(exc),
                         'traceback': traceback.format_exc()
                     })


class TitledInternalServerError(TitledException):
    """Wraps any exception that escaped every other handler."""

    def __init__(self, exc: HTTPException | Exception, logger: Logger = None):
        super().__init__('Internal server error',
                         'An unexpected error occurred while processing the '
                         'request.', 500, logger=logger)

        # Dig out the exception that caused the server error.
        origin = getattr(exc, 'original_exception', None) or exc
        if self.logger is not None:
            self.log(logging.ERROR, 'internal_server_error',
                     f'{origin.__class__.__name__}: {origin}',
                     context={
                         'traceback': ''.join(
                             traceback.format_exception(origin))
                     })
