#!/usr/bin/env python3
"""
dbtool - CLI Entry Point
========================
Backup and restore MySQL schemas with the mysql/mysqldump clients:
- Local, ssh or docker exec connections
- Credential discovery from MySQL docker containers
- gzip, bzip2 and xz compressed dumps
- Self-update from GitHub releases
"""

import argparse
import logging
import sys

import yaml

from . import __version__
from .backup import BackupOperation
from .command_builder import CommandBuilder, mysql_quote
from .config import CONNECTION_KEYS, ConfigLoader
from .connection import resolve_connection
from .exceptions import DbToolError
from .executor import MysqlExecutor
from .models import ConnectionSpec, MysqlCredentials
from .restore import RestoreOperation
from .self_update import SelfUpdater, build_client
from .utils import format_table_rows, setup_logging

TABLE_STATUS_QUERY = """
SELECT TABLE_NAME, TABLE_ROWS
FROM INFORMATION_SCHEMA.TABLES
WHERE TABLE_SCHEMA = {schema}
ORDER BY TABLE_NAME
"""

EXIT_INTERRUPTED = 130


def _add_connection_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group('connection')
    group.add_argument('--hostname', help='MySQL server hostname')
    group.add_argument('-P', '--port', help='MySQL server port')
    group.add_argument('-u', '--user', help='MySQL username')
    group.add_argument('-p', '--password', help='MySQL password')
    group.add_argument('--docker', help='Run clients inside this docker container (name, id or compose:<service>)')
    group.add_argument('--ssh', help='Run clients on this host through ssh')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='dbtool',
        description='MySQL backup and restore through the mysql/mysqldump clients'
    )
    parser.add_argument(
        '-c', '--config',
        help='Path to an optional YAML configuration file'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', required=True)

    backup = subparsers.add_parser('backup', help='Dump a schema to a file')
    backup.add_argument('schema', help='Schema')
    backup.add_argument('filename', help='Backup filename (.gz, .bz2 or .xz to compress)')
    _add_connection_arguments(backup)
    backup.set_defaults(handler=run_backup)

    restore = subparsers.add_parser('restore', help='Replace a schema with the contents of a backup file')
    restore.add_argument('schema', help='Schema')
    restore.add_argument('filename', help='Backup filename')
    _add_connection_arguments(restore)
    restore.set_defaults(handler=run_restore)

    tables = subparsers.add_parser('tables', help='List the tables of a schema with row estimates')
    tables.add_argument('schema', help='Schema')
    _add_connection_arguments(tables)
    tables.set_defaults(handler=run_tables)

    self_update = subparsers.add_parser('self-update', help='Update to the latest released version')
    self_update.set_defaults(handler=run_self_update)

    return parser


def connection_options(args: argparse.Namespace, config: ConfigLoader) -> dict:
    """Connection settings from the config file, overridden by flags."""
    options = config.get_connection_settings()
    for key in CONNECTION_KEYS:
        value = getattr(args, key, None)
        if value not in (None, ''):
            options[key] = value
    return options


def create_builder(args: argparse.Namespace, config: ConfigLoader) -> CommandBuilder:
    """Resolve the connection and credentials for a MySQL command."""
    options = connection_options(args, config)
    spec = ConnectionSpec.from_options(ssh=options['ssh'], docker=options['docker'])
    credentials = MysqlCredentials(
        hostname=options['hostname'],
        port=options['port'],
        username=options['user'],
        password=options['password']
    )
    connection, credentials = resolve_connection(spec, credentials)
    return CommandBuilder(credentials, connection)


def run_backup(args: argparse.Namespace, config: ConfigLoader) -> None:
    BackupOperation(create_builder(args, config)).run(args.schema, args.filename)


def run_restore(args: argparse.Namespace, config: ConfigLoader) -> None:
    RestoreOperation(create_builder(args, config)).run(args.schema, args.filename)


def run_tables(args: argparse.Namespace, config: ConfigLoader) -> None:
    executor = MysqlExecutor(create_builder(args, config))
    result = executor.exec_query(None, TABLE_STATUS_QUERY.format(schema=mysql_quote(args.schema)))
    if not len(result):
        logging.warning(f"Schema '{args.schema}' has no tables")
        return
    for line in format_table_rows(result.rows, ['TABLE_NAME', 'TABLE_ROWS']):
        print(line)


def run_self_update(args: argparse.Namespace, config: ConfigLoader) -> None:
    settings = config.get_self_update_settings()
    with build_client(settings.get('token')) as client:
        SelfUpdater(
            organization=settings['organization'],
            repository=settings['repository'],
            asset_template=settings['asset_template'],
            client=client
        ).run()


def main(argv=None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Load configuration
    try:
        config = ConfigLoader(args.config)
    except FileNotFoundError:
        print(f"Error: Configuration file '{args.config}' not found")
        sys.exit(1)
    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in configuration file: {e}")
        sys.exit(1)
    except DbToolError as e:
        print(f"Error: {e}")
        sys.exit(e.exit_code)

    # Setup logging
    log_settings = config.get_logging_settings()
    if args.verbose:
        log_settings['level'] = 'DEBUG'
    setup_logging(log_settings)

    try:
        args.handler(args, config)
    except DbToolError as e:
        logging.error(f"{e}")
        sys.exit(e.exit_code)
    except FileNotFoundError as e:
        logging.error(f"{e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logging.warning("Aborted")
        sys.exit(EXIT_INTERRUPTED)


if __name__ == '__main__':
    main()
