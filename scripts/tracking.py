#!/usr/bin/env python3

import json
import sys

from ducops.aftership import AfterShip
from ducops.exceptions import TitledException
from ducops.tracking import EvriTracker
from scripts import Command, Argument, Action


class EvriAction(Action):
    name = 'evri'
    description = 'Checks whether Evri has a tracking page for a barcode'
    arguments = [Argument('barcode', True)]

    def __init__(self):
        super().__init__()

    def perform(self, barcode: str):
        try:
            body, status_code = EvriTracker().lookup(barcode,
                                                     self.parent.logger)
        except TitledException as e:
            print(f'{e.title}', file=sys.stderr)
            sys.exit(1)

        print(json.dumps(body, indent=2))
        if status_code >= 400:
            sys.exit(1)


class AfterShipAction(Action):
    name = 'aftership'
    description = 'Gets the status of a parcel through AfterShip'
    arguments = [Argument('barcode', True)]

    def __init__(self):
        super().__init__()

    def perform(self, barcode: str):
        status = AfterShip(logger=self.parent.logger).status(barcode)
        if status is None:
            print(f'AfterShip is not tracking {barcode} and refused to start.',
                  file=sys.stderr)
            sys.exit(1)

        print(f'{status["tag"]}: {status["subtag_message"]}')


class TrackCommand(Command):
    """Parcel tracking from the terminal."""
    name = 'track'
    description = 'Looks up parcels with the carriers'

    def __init__(self, parent=None):
        super().__init__(parent)

        self.add_action(EvriAction())
        self.add_action(AfterShipAction())


if __name__ == '__main__':
    command = TrackCommand()
    command.run()
