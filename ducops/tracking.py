#!/usr/bin/env python3

import math
import time
from threading import Lock
from typing import Callable

import requests

import config
from ducops.exceptions import InvalidParameter, RateLimited
from ducops.logger import Logger

TRACKING_URL = 'https://www.evri.com/track/parcel/{barcode}/details'
USER_AGENT = ('Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
              '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36')
BARCODE_LENGTH = 16


class EvriTracker:
    """Checks whether Evri knows about a parcel. Evri has no public API, so
    all we can do is see if its tracking page exists and point the user to
    it."""

    def __init__(self, rate_limit_ms: int = None, timeout: float = None,
                 clock: Callable[[], float] = time.monotonic):
        self.rate_limit_ms: int = rate_limit_ms
        self.timeout: float = timeout
        self.clock = clock
        self._last_requests: dict[str, float] = {}
        self._lock: Lock = Lock()

        # Fall back to the configured limits.
        if self.rate_limit_ms is None:
            self.rate_limit_ms = config.app('tracking')['rate_limit_ms']
        if self.timeout is None:
            self.timeout = config.app('tracking')['timeout']

    @staticmethod
    def validate(barcode: str):
        """Evri barcodes are always 16 characters long."""
        if barcode is None or len(barcode) != BARCODE_LENGTH:
            raise InvalidParameter('Invalid barcode')

    @staticmethod
    def tracking_url(barcode: str) -> str:
        return TRACKING_URL.format(barcode=barcode)

    def throttle(self, barcode: str):
        """Refuses to look up the same barcode more than once per rate limit
        window."""
        window = self.rate_limit_ms / 1000
        with self._lock:
            now = self.clock()

            # Forget about the barcodes whose window has already passed.
            for code, last in list(self._last_requests.items()):
                if now - last >= window:
                    del self._last_requests[code]

            last = self._last_requests.get(barcode)
            if last is not None:
                raise RateLimited(math.ceil(window - (now - last)))

            self._last_requests[barcode] = now

    def pending(self) -> int:
        """Number of barcodes currently being rate limited."""
        with self._lock:
            return len(self._last_requests)

    def lookup(self, barcode: str, logger: Logger = None) -> tuple[dict, int]:
        """Looks up a barcode on Evri's website. Returns the response body
        and its HTTP status code."""
        self.validate(barcode)
        self.throttle(barcode)

        url = self.tracking_url(barcode)
        try:
            resp = requests.head(url, headers={
                'User-Agent': USER_AGENT,
                'Accept': 'text/html',
                'Cache-Control': 'no-store'
            }, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            if logger is not None:
                logger.error('evri_request_failed',
                             f'Failed to check barcode {barcode} with Evri',
                             {'error': str(e)})
            return {
                'status': 'Service temporarily unavailable',
                'note': 'Error during tracking check.',
                'error': str(e)
            }, 500

        if logger is not None:
            logger.info('evri_checked', f'Evri answered {resp.status_code} '
                                        f'for barcode {barcode}')

        if resp.ok:
            return {
                'status': 'Click to track manually',
                'trackingUrl': url,
                'note': 'Auto-tracking unavailable. Evri page is valid.'
            }, 200
        elif resp.status_code == 404:
            return {
                'status': 'Tracking number not found or no details yet on '
                          'Evri.'
            }, 200

        return {
            'status': 'Unable to verify tracking number with Evri.',
            'note': f'Evri returned status {resp.status_code}'
        }, 200
