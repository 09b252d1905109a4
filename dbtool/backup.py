"""
Schema backup through mysqldump.
"""

import logging
import os
import tempfile
from pathlib import Path

from .command_builder import CommandBuilder, check_schema_name
from .connection import Runner
from .models import BackupResult, CompressionKind
from .process import run_command
from .utils import format_size, interrupt_handler


class BackupOperation:
    """Dumps one schema into a local file."""

    def __init__(self, builder: CommandBuilder, runner: Runner = run_command):
        self.builder = builder
        self.runner = runner

    def run(self, schema: str, filename: str) -> BackupResult:
        """Dump a schema to a file, compressed according to its extension.

        The dump is written to a temporary file next to the target and only
        renamed over it once mysqldump succeeded, so a failed or interrupted
        backup never leaves a truncated file behind.

        Args:
            schema: Name of the schema to dump.
            filename: Destination file; .gz, .bz2 and .xz select compression.

        Returns:
            BackupResult describing the written file.
        """
        check_schema_name(schema)
        target = Path(filename)
        compression = CompressionKind.from_filename(filename)
        if compression != CompressionKind.NONE:
            logging.info(f" - Using {compression.value} compression")

        args = self.builder.mysqldump(schema, compression=compression)

        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
        tmp_path = Path(tmp_name)

        def remove_partial():
            tmp_path.unlink(missing_ok=True)

        logging.info(f"Dumping schema '{schema}' to {target}")
        try:
            with interrupt_handler(remove_partial), os.fdopen(fd, "wb") as handle:
                self.runner(args, stdout=handle)
            os.replace(tmp_path, target)
        except BaseException:
            remove_partial()
            raise

        size = target.stat().st_size
        logging.info(f"Backup of '{schema}' finished ({format_size(size)})")
        return BackupResult(schema=schema, path=str(target), compression=compression, size=size)
