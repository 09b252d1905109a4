"""
Schema restore from a mysqldump file.
"""

import logging
from pathlib import Path

from .command_builder import CommandBuilder, check_schema_name, mysql_identifier
from .connection import Runner
from .executor import MysqlExecutor
from .models import CompressionKind, RestoreResult
from .process import run_command
from .utils import interrupt_handler


class RestoreOperation:
    """Recreates a schema and loads a dump file into it."""

    def __init__(self, builder: CommandBuilder, runner: Runner = run_command):
        self.builder = builder
        self.runner = runner
        self.executor = MysqlExecutor(builder, runner)

    def run(self, schema: str, filename: str) -> RestoreResult:
        """Drop, recreate and load a schema from a dump file.

        Each step must succeed before the next one starts.

        Raises:
            FileNotFoundError: If the dump file does not exist.
        """
        check_schema_name(schema)
        source = Path(filename)
        if not source.is_file():
            raise FileNotFoundError(f"Backup file '{filename}' not found")

        compression = CompressionKind.from_filename(filename)
        if compression != CompressionKind.NONE:
            logging.info(f" - Using {compression.value} compression")

        identifier = mysql_identifier(schema)
        with interrupt_handler():
            logging.info(f"Dropping schema '{schema}'")
            self.executor.exec_statement(None, f"DROP DATABASE IF EXISTS {identifier}")
            logging.info(f"Creating schema '{schema}'")
            self.executor.exec_statement(None, f"CREATE DATABASE {identifier}")

            logging.info(f"Restoring {source} into '{schema}'")
            args = self.builder.restore(schema, compression=compression)
            with open(source, "rb") as handle:
                self.runner(args, stdin=handle)

        tables = self.executor.get_table_list(schema)
        logging.info(f"Restore of '{schema}' finished ({len(tables)} table(s))")
        return RestoreResult(schema=schema, path=str(source), compression=compression, tables=tables)
