"""
Command line construction for the mysql and mysqldump clients.
"""

import shlex
from typing import Optional, Sequence

from .connection import Connection
from .exceptions import ConfigurationError
from .models import CompressionKind, MysqlCredentials
from .process import register_secret


def mysql_quote(value: str) -> str:
    """Quote a string literal for use inside an SQL statement."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def mysql_identifier(value: str) -> str:
    """Quote a schema or table name for use inside an SQL statement."""
    escaped = value.replace("`", "``")
    return f"`{escaped}`"


def check_schema_name(schema: str) -> str:
    """Reject schema names the clients would parse as options."""
    if not schema or schema.startswith("-"):
        raise ConfigurationError(f"Invalid schema name '{schema}'")
    return schema


def shell_join(tokens: Sequence[str]) -> str:
    return " ".join(shlex.quote(token) for token in tokens)


class CommandBuilder:
    """Builds transport-wrapped mysql, mysqldump and restore commands."""

    MYSQL_BATCH_FLAGS = ("-N", "-B")

    def __init__(self, credentials: MysqlCredentials, connection: Connection):
        self.credentials = credentials
        self.connection = connection
        register_secret(credentials.password)

    def credential_flags(self) -> list[str]:
        """Client flags for every credential field that is set."""
        flags = []
        if self.credentials.hostname:
            flags.append(f"-h{self.credentials.hostname}")
        if self.credentials.port:
            flags.append(f"-P{self.credentials.port}")
        if self.credentials.username:
            flags.append(f"-u{self.credentials.username}")
        if self.credentials.password:
            flags.append(f"-p{self.credentials.password}")
        return flags

    def mysql_tokens(self, *args: str) -> list[str]:
        return ["mysql", *self.MYSQL_BATCH_FLAGS, *self.credential_flags(), *args]

    def mysql(self, *args: str) -> list[str]:
        """Non-interactive mysql invocation for running statements."""
        return self.connection.wrap_command(self.mysql_tokens(*args))

    def mysqldump_script(
        self,
        *args: str,
        compression: CompressionKind = CompressionKind.NONE
    ) -> str:
        script = shell_join([
            "mysqldump", "--single-transaction", *self.credential_flags(), *args
        ])
        return _with_stage(script, after=compression.compress_stage)

    def mysqldump(
        self,
        *args: str,
        compression: CompressionKind = CompressionKind.NONE
    ) -> list[str]:
        """mysqldump pipeline writing the (optionally compressed) dump to stdout."""
        return self.connection.wrap_shell(self.mysqldump_script(*args, compression=compression))

    def restore_script(
        self,
        *args: str,
        compression: CompressionKind = CompressionKind.NONE
    ) -> str:
        script = shell_join(self.mysql_tokens(*args))
        return _with_stage(script, before=compression.decompress_stage)

    def restore(
        self,
        *args: str,
        compression: CompressionKind = CompressionKind.NONE
    ) -> list[str]:
        """mysql pipeline reading the (optionally compressed) dump from stdin."""
        return self.connection.wrap_shell(self.restore_script(*args, compression=compression))


def _with_stage(
    script: str,
    before: Optional[str] = None,
    after: Optional[str] = None
) -> str:
    if before:
        script = f"{before} | {script}"
    if after:
        script = f"{script} | {after}"
    return script
