"""
Data models and enums for dbtool.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterator, Optional

from .exceptions import ConfigurationError

Row = dict[str, Optional[str]]


class Transport(Enum):
    """Where external commands are executed."""
    LOCAL = "local"
    SSH = "ssh"
    DOCKER = "docker"


class CompressionKind(Enum):
    """Compression codec of a dump file, derived from its extension."""
    NONE = "none"
    GZIP = "gzip"
    BZIP2 = "bzip2"
    XZ = "xz"

    @classmethod
    def from_filename(cls, filename: str) -> "CompressionKind":
        name = str(filename).lower()
        for suffix, kind in _SUFFIXES.items():
            if name.endswith(suffix):
                return kind
        return cls.NONE

    @property
    def compress_stage(self) -> Optional[str]:
        """Shell stage appended after mysqldump."""
        return _COMPRESS_STAGES.get(self)

    @property
    def decompress_stage(self) -> Optional[str]:
        """Shell stage placed in front of mysql on restore."""
        return _DECOMPRESS_STAGES.get(self)


_SUFFIXES = {
    ".gz": CompressionKind.GZIP,
    ".bz2": CompressionKind.BZIP2,
    ".xz": CompressionKind.XZ,
}

_COMPRESS_STAGES = {
    CompressionKind.GZIP: "gzip",
    CompressionKind.BZIP2: "bzip2",
    CompressionKind.XZ: "xz --compress --stdout",
}

_DECOMPRESS_STAGES = {
    CompressionKind.GZIP: "gzip -dc",
    CompressionKind.BZIP2: "bzcat",
    CompressionKind.XZ: "xzcat",
}


@dataclass(frozen=True)
class ConnectionSpec:
    """Requested transport for one command invocation."""
    transport: Transport = Transport.LOCAL
    host: Optional[str] = None
    container: Optional[str] = None

    @classmethod
    def from_options(
        cls,
        ssh: Optional[str] = None,
        docker: Optional[str] = None
    ) -> "ConnectionSpec":
        """Build a spec from the --ssh/--docker options.

        Only one indirection may be active at a time.
        """
        if ssh and docker:
            raise ConfigurationError("Options --ssh and --docker cannot be combined")
        if ssh:
            return cls(transport=Transport.SSH, host=ssh)
        if docker:
            return cls(transport=Transport.DOCKER, container=docker)
        return cls()


@dataclass(frozen=True)
class MysqlCredentials:
    """MySQL client credentials. Empty fields are left off the command line."""
    hostname: Optional[str] = None
    port: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def has_user_or_password(self) -> bool:
        return bool(self.username) or bool(self.password)

    def with_docker_root(self, root_password: str) -> "MysqlCredentials":
        """Credentials for the root account of a local container server."""
        return replace(self, username="root", password=root_password, hostname=None)


@dataclass
class QueryResult:
    """Rows of an XML formatted mysql query, in document order."""
    rows: list[Row] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows)

    def column(self, name: str) -> list[Optional[str]]:
        """Values of one column across all rows."""
        return [get_field(row, name) for row in self.rows]


def get_field(row: Row, name: str) -> Optional[str]:
    """Return a field value, raising KeyError if the row has no such field."""
    try:
        return row[name]
    except KeyError:
        raise KeyError(f"Field {name} not found") from None


@dataclass
class CommandResult:
    """Outcome of an external process."""
    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0


@dataclass
class ReleaseAsset:
    """Downloadable file attached to a release."""
    name: str
    browser_download_url: str
    size: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ReleaseAsset":
        return cls(
            name=data.get("name", ""),
            browser_download_url=data.get("browser_download_url", ""),
            size=data.get("size") or 0
        )


@dataclass
class Release:
    """Release metadata as returned by the GitHub releases API."""
    name: str
    tag_name: str
    assets: list[ReleaseAsset] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Release":
        return cls(
            name=data.get("name") or data.get("tag_name", ""),
            tag_name=data.get("tag_name", ""),
            assets=[ReleaseAsset.from_api(a) for a in data.get("assets", [])]
        )

    def find_asset(self, name: str) -> Optional[ReleaseAsset]:
        """Return the asset whose name matches exactly."""
        for asset in self.assets:
            if asset.name == name:
                return asset
        return None


@dataclass
class BackupResult:
    """Outcome of a backup."""
    schema: str
    path: str
    compression: CompressionKind
    size: int = 0


@dataclass
class RestoreResult:
    """Outcome of a restore."""
    schema: str
    path: str
    compression: CompressionKind
    tables: list[str] = field(default_factory=list)
