#!/usr/bin/env python3

from ducops import uploads
from scripts import Command, Action


class PruneAction(Action):
    name = 'prune'
    description = 'Removes the empty folders left in the upload directory'
    default = True

    def __init__(self):
        super().__init__()

    def perform(self):
        removed = uploads.prune_empty_dirs()
        for path in removed:
            print(f'Removed {path}')

        self.parent.logger.info('uploads_pruned',
                                f'Removed {len(removed)} empty folders')
        print(f'{len(removed)} empty folders removed from '
              f'{uploads.upload_root()}.')


class UploadsCommand(Command):
    """Upload directory housekeeping."""
    name = 'uploads'
    description = 'Maintains the folder of uploaded files'

    def __init__(self, parent=None):
        super().__init__(parent)

        self.add_action(PruneAction())


if __name__ == '__main__':
    command = UploadsCommand()
    command.run()
