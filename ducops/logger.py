#!/usr/bin/env python3

from __future__ import annotations

import json
import logging
import os

from logging.handlers import TimedRotatingFileHandler

import config
from ducops.database import to_json_value

# Context keys whose values never make it into the log files.
REDACTED_KEYS = frozenset(('pin', 'pin_hash', 'password', 'password_hash',
                           'api_key'))
REDACTED = '[redacted]'


def redact(context):
    """Masks the credentials of HHT logins and team members found anywhere in
    a log context."""
    if isinstance(context, dict):
        return {key: REDACTED if str(key).lower() in REDACTED_KEYS
                else redact(value) for key, value in context.items()}
    elif isinstance(context, (list, tuple)):
        return [redact(value) for value in context]

    return context


def _json_default(value):
    converted = to_json_value(value)
    return str(value) if converted is value else converted


class Logger:
    """Tags every message of the back office with the area of the depot
    system it came from, an action identifier and, while handling an API
    call, the request id echoed back in error responses."""

    def __init__(self, system: str, subsystem: str, log_dir: str = None,
                 uuid: str = None):
        self.subsystem = subsystem
        self.log_dir = log_dir
        self.uuid = uuid

        # One logger per system (flask, opm) shared by all its subsystems.
        self.logger = logging.getLogger(system)
        self.logger.setLevel(logging.DEBUG)
        self._setup()

    def for_subsystem(self, subsystem: str) -> Logger:
        """Creates a derived logger for a specific subsystem."""
        return Logger(self.logger.name, subsystem, log_dir=self.log_dir,
                      uuid=self.uuid)

    def log(self, level: int, action_id: str, message: str,
            context: dict = None):
        """Logs a message tagged with an action identifier. Row values in the
        context are written the same way the API renders them."""
        extra = {
            'subsystem': self.subsystem,
            'action': action_id,
            'detail': '' if self.uuid is None else f'({self.uuid}) '
        }
        if context is not None:
            extra['detail'] += '\n' + json.dumps(redact(context), indent=2,
                                                 default=_json_default)

        self.logger.log(level, message, extra=extra)

    def debug(self, action_id: str, message: str, context: dict = None):
        self.log(logging.DEBUG, action_id, message, context=context)

    def info(self, action_id: str, message: str, context: dict = None):
        self.log(logging.INFO, action_id, message, context=context)

    def warning(self, action_id: str, message: str, context: dict = None):
        self.log(logging.WARNING, action_id, message, context=context)

    def error(self, action_id: str, message: str, context: dict = None):
        self.log(logging.ERROR, action_id, message, context=context)

    def critical(self, action_id: str, message: str, context: dict = None):
        self.log(logging.CRITICAL, action_id, message, context=context)

    def _setup(self):
        """Attaches the weekly log file and the console to the system
        logger the first time it's used."""
        if self.logger.hasHandlers():
            return

        if self.log_dir is None:
            self.log_dir = config.app('log_dir')
        os.makedirs(self.log_dir, exist_ok=True)

        base_format = ('%(asctime)s [%(levelname)s] {%(subsystem)s} '
                       '|%(action)s| %(message)s')

        # Log files get everything, contexts included. Rotated every Sunday.
        fh = TimedRotatingFileHandler(
            os.path.join(self.log_dir, f'{self.logger.name}.log'),
            when='W6', utc=True, encoding='utf-8')
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(f'{base_format} %(detail)s'))
        self.logger.addHandler(fh)

        # The console only needs the headline.
        ch = logging.StreamHandler()
        ch.setLevel(config.app('log_level'))
        ch.setFormatter(logging.Formatter(base_format))
        self.logger.addHandler(ch)


class LoggerNotFound(RuntimeError):
    """Exception for when a logger isn't defined and we need one."""
