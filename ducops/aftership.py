#!/usr/bin/env python3

import json
from typing import Optional

import requests

import config
from ducops.logger import Logger

PENDING = {'tag': 'Pending', 'subtag_message': 'Awaiting carrier information'}


class AfterShip:
    """Tiny client for the AfterShip tracking API."""

    def __init__(self, api_key: str = None, slug: str = None,
                 base_url: str = None, logger: Logger = None):
        self.api_key: str = api_key or config.aftership('api_key')
        self.slug: str = slug or config.aftership('slug')
        self.base_url: str = base_url or config.aftership('base_url')
        self.logger: Optional[Logger] = logger
        self.headers = {
            'Content-Type': 'application/json',
            'as-api-key': self.api_key
        }

    def get(self, barcode: str) -> Optional[dict]:
        """Gets the tracking of a parcel, if AfterShip already knows it."""
        try:
            resp = requests.get(
                f'{self.base_url}/trackings/{self.slug}/{barcode}',
                headers=self.headers,
                timeout=config.app('tracking')['timeout'])
        except requests.exceptions.RequestException as e:
            self._warn('aftership_get_failed', barcode, str(e))
            return None

        if resp.status_code == 404:
            return None
        elif not resp.ok:
            self._warn('aftership_get_failed', barcode,
                       f'HTTP status code {resp.status_code}')
            return None

        return resp.json()['data']['tracking']

    def create(self, barcode: str) -> Optional[dict]:
        """Asks AfterShip to start tracking a parcel."""
        try:
            resp = requests.post(
                f'{self.base_url}/trackings', headers=self.headers,
                data=json.dumps({
                    'tracking': {
                        'tracking_number': barcode,
                        'slug': self.slug
                    }
                }), timeout=config.app('tracking')['timeout'])
        except requests.exceptions.RequestException as e:
            self._warn('aftership_create_failed', barcode, str(e))
            return None

        if not resp.ok:
            self._warn('aftership_create_failed', barcode,
                       f'HTTP status code {resp.status_code}')
            return None

        return resp.json()['data']['tracking']

    def status(self, barcode: str) -> Optional[dict]:
        """Gets the status of a parcel, registering it with AfterShip first if
        needed. Returns None if it couldn't be registered."""
        tracking = self.get(barcode)
        if tracking is None:
            if self.create(barcode) is None:
                return None
            tracking = self.get(barcode)

        # Freshly created trackings take a while to show up.
        if tracking is None:
            return dict(PENDING)

        return {
            'tag': tracking.get('tag'),
            'subtag_message': tracking.get('subtag_message')
        }

    def _warn(self, action_id: str, barcode: str, reason: str):
        if self.logger is not None:
            self.logger.warning(action_id, f'AfterShip request for {barcode} '
                                           f'failed: {reason}')
