#!/usr/bin/env python3

from scripts import Command, Manager


class HelpCommand(Command):
    """Lists every command the manager knows about."""
    name = 'help'
    description = 'Shows the available commands'

    def __init__(self, parent: Manager = None):
        super().__init__(parent)

    def run(self):
        self.parent.usage()


if __name__ == '__main__':
    manager = Manager()
    manager.append_command(HelpCommand(manager))
    manager.run()
