#!/usr/bin/env python3
import atexit
import inspect
import os
import sys
from typing import TextIO, TypeVar, Any, Optional

from mysql.connector import MySQLConnection

import config
from ducops.logger import Logger

# Typing hints.
TCommand = TypeVar('TCommand', bound='Command')
TManager = TypeVar('TManager', bound='Manager')


class Argument:
    """Positional argument of an action."""

    def __init__(self, name: str, required: bool = False):
        self.name = name
        self.required = required
        self.value = None
        self.populated = False

    def set_value(self, value):
        self.value = value
        self.populated = True

    def usage_str(self) -> str:
        """Required arguments are shown between angle brackets and optional
        ones between square brackets."""
        if self.required:
            return f'<{self.name}>'

        return f'[{self.name}]'


class Action:
    """Something a command can do, such as the schema action of the db
    command."""
    name: str
    description: str
    arguments: list[Argument] = None
    default: bool = False

    def __init__(self, parent: TCommand = None):
        self.parent = parent

    def perform(self, *args, **kwargs):
        """Does the actual work of the action."""
        raise NotImplementedError

    def perform_from_cli(self):
        """Performs the action with the arguments typed in the terminal."""
        if self.arguments is None:
            self.perform()
            return

        # Refuse to go on without every required argument.
        num_required = len([arg for arg in self.arguments if arg.required])
        if self.argnum() < num_required:
            print(f'Not enough arguments. The {self.name} action requires '
                  f'at least {num_required}.\n', file=sys.stderr)
            self.parent.usage(out=sys.stderr)
            sys.exit(1)

        self.populate_args()
        self.perform(*self._args_list())

    def populate_args(self):
        """Hands the values typed after the action name to the arguments."""
        first = len(sys.argv) - self.argnum()
        values = sys.argv[first:]
        for index, arg in enumerate(self.arguments):
            if index >= len(values):
                return
            arg.set_value(self.parse_arg(index, values[index]))

    def parse_arg(self, index: int, value: str) -> Any:
        """Converts an argument typed in the terminal into its proper type."""
        return value

    def usage_short(self) -> str:
        usage = f'{self.name} '
        if self.arguments is None:
            return usage

        for arg in self.arguments:
            usage += f'{arg.usage_str()} '

        return usage

    def usage_long(self, padding: int = 0) -> str:
        return (f'    {self.usage_short().ljust(padding)} -  '
                f'{self.description}.')

    def argnum(self) -> int:
        """Number of arguments typed after the action name."""
        return max(self.parent.argnum() - 1, 0)

    def _args_list(self) -> list:
        """Values of the arguments up to the first one that wasn't given."""
        args = []
        for arg in self.arguments or []:
            if not arg.populated:
                break
            args.append(arg.value)

        return args


class HelpAction(Action):
    """Prints the usage of the command it belongs to."""
    name = 'help'
    description = 'Shows this message'

    def __init__(self):
        super().__init__()

    def perform(self):
        self.parent.usage()


class Command:
    """A group of actions that can be called from opm.py."""
    name: str
    description: str

    def __init_subclass__(cls, **kwargs):
        # Make sure _post_init_ runs after the constructor of every subclass.
        def init_decorator(prev_init):
            def new_init(self, *args, **_kwargs):
                prev_init(self, *args, **_kwargs)
                self._post_init_()
            return new_init

        cls.__init__ = init_decorator(cls.__init__)

    def __init__(self, parent: TManager = None):
        self.parent: Manager = parent
        self.actions: list[Action] = []
        self.db_conn: Optional[MySQLConnection] = None
        self.logger: Logger = Logger('opm', self.name)

    def _post_init_(self):
        self.add_action(HelpAction())

    def connect_db(self) -> MySQLConnection:
        """Opens a database connection the first time one is needed, closing
        it automatically when the script exits."""
        if self.db_conn is None:
            self.db_conn = MySQLConnection(**config.db_conn())
            atexit.register(self._close_db)

        return self.db_conn

    def perform_action(self, action_name: str, *args, **kwargs):
        """Performs an action of this command programmatically."""
        for action in self.actions:
            if action.name == action_name:
                return action.perform(*args, **kwargs)

        raise RuntimeError(f'Requested action {action_name} does not exist.')

    def run(self):
        """Runs the action requested in the terminal."""
        if self.argnum() == 0:
            for action in self.actions:
                if action.default:
                    action.perform_from_cli()
                    return

            self.usage(sys.stderr)
            sys.exit(1)

        req_action = self.arg(0).lower()
        for action in self.actions:
            if action.name == req_action:
                action.perform_from_cli()
                return

        print(f'Unknown action {req_action}.\n', file=sys.stderr)
        self.usage(sys.stderr)
        sys.exit(1)

    def add_action(self, action: Action):
        action.parent = self
        self.actions.append(action)

    def usage(self, out: TextIO = sys.stdout):
        """Prints the actions available in this command."""
        command = sys.argv[0]
        if self.parent is not None:
            command = f'{self.parent.name} {self.name}'

        padding = max([len(action.usage_short()) for action in self.actions],
                      default=0)

        print(f'usage: {command} action [options]', file=out)
        print(file=out)
        print('Available actions:', file=out)
        for action in self.actions:
            print(action.usage_long(padding), file=out)

    def usage_short(self) -> str:
        return self.name

    def usage_long(self, padding: int = 0) -> str:
        return (f'    {self.usage_short().ljust(padding)}  -  '
                f'{self.description}.')

    def arg(self, index: int) -> str:
        """Gets an argument counting from the one after the command name."""
        return sys.argv[self._arg_index(index)]

    def argnum(self) -> int:
        """Number of arguments typed after the command name."""
        if self.parent is not None:
            return len(sys.argv) - 2
        return len(sys.argv) - 1

    def _arg_index(self, index: int) -> int:
        return index + (1 if self.parent is None else 2)

    def _close_db(self):
        if self.db_conn is not None:
            self.db_conn.close()
            self.db_conn = None


class Manager:
    """Finds every command in this package and dispatches to them."""
    description: str = 'The DUC Ops management script'

    def __init__(self):
        self.name: str = sys.argv[0]
        self.commands: list[Command] = []

        self.populate_commands()

    def run(self):
        """Runs the command requested in the terminal."""
        if len(sys.argv) == 1:
            self.usage(sys.stderr)
            sys.exit(1)

        req_command = sys.argv[1].lower()
        command = self.command(req_command)
        if command is None:
            print(f'Unknown command {req_command}.\n', file=sys.stderr)
            self.usage(sys.stderr)
            sys.exit(1)

        command.run()

    def command(self, name: str) -> Optional[Command]:
        for cmd in self.commands:
            if cmd.name == name:
                return cmd

        return None

    def append_command(self, command: Command):
        self.commands.append(command)

    def populate_commands(self):
        """Instantiates every command class found in the package modules."""
        self._load_modules()

        for filename, file_obj in inspect.getmembers(sys.modules[__name__]):
            if not inspect.ismodule(file_obj):
                continue

            for class_name, mod_obj in inspect.getmembers(file_obj):
                if (inspect.isclass(mod_obj) and mod_obj is not Command and
                        issubclass(mod_obj, Command) and
                        self.command(mod_obj.name) is None):
                    self.append_command(mod_obj(self))

    def usage(self, out: TextIO = sys.stdout):
        """Prints the commands available."""
        padding = max([len(cmd.usage_short()) for cmd in self.commands],
                      default=0)

        print(f'usage: {sys.argv[0]} command [action] [options]', file=out)
        print(file=out)
        print('Available commands:', file=out)
        for cmd in self.commands:
            print(cmd.usage_long(padding), file=out)

    @staticmethod
    def _load_modules():
        for module in sorted(os.listdir(os.path.dirname(__file__))):
            if module == '__init__.py' or module[-3:] != '.py':
                continue
            __import__(f'{sys.modules[__name__].__name__}.{module[:-3]}',
                       locals(), globals())
