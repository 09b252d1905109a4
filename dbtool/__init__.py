"""
dbtool
======
Backup and restore MySQL schemas by driving the mysql and mysqldump clients:
- Local, ssh or docker exec connections
- Root credential discovery from MySQL docker containers
- Compression selected by file extension (gzip, bzip2, xz)
- Self-update from GitHub releases
"""

__version__ = "1.0.0"

from .backup import BackupOperation
from .command_builder import CommandBuilder, mysql_identifier, mysql_quote
from .config import ConfigLoader
from .connection import Connection, resolve_connection
from .exceptions import (
    AssetNotFoundError,
    CommandExecutionError,
    ConfigurationError,
    ConnectionResolutionError,
    ContainerNotFoundError,
    DbToolError,
    NetworkError,
    QueryParseError,
    SelfUpdateError,
    UpdateApplyError,
)
from .executor import MysqlExecutor, parse_xml_result
from .main import main
from .models import (
    BackupResult,
    CommandResult,
    CompressionKind,
    ConnectionSpec,
    MysqlCredentials,
    QueryResult,
    Release,
    ReleaseAsset,
    RestoreResult,
    Transport,
)
from .restore import RestoreOperation
from .self_update import SelfUpdater
from .utils import interrupt_handler, setup_logging

__all__ = [
    # Main entry point
    "main",
    # Core classes
    "BackupOperation",
    "CommandBuilder",
    "ConfigLoader",
    "Connection",
    "MysqlExecutor",
    "RestoreOperation",
    "SelfUpdater",
    # Models
    "BackupResult",
    "CommandResult",
    "CompressionKind",
    "ConnectionSpec",
    "MysqlCredentials",
    "QueryResult",
    "Release",
    "ReleaseAsset",
    "RestoreResult",
    "Transport",
    # Errors
    "AssetNotFoundError",
    "CommandExecutionError",
    "ConfigurationError",
    "ConnectionResolutionError",
    "ContainerNotFoundError",
    "DbToolError",
    "NetworkError",
    "QueryParseError",
    "SelfUpdateError",
    "UpdateApplyError",
    # Utilities
    "interrupt_handler",
    "mysql_identifier",
    "mysql_quote",
    "parse_xml_result",
    "resolve_connection",
    "setup_logging",
]
