"""
Self-update from GitHub releases.

The latest release of the configured repository is looked up, the asset
built for this platform is downloaded next to the running executable and
then swapped in place of it.
"""

import logging
import os
import platform
import stat
import sys
from pathlib import Path
from typing import Optional

import httpx

from .exceptions import AssetNotFoundError, NetworkError, UpdateApplyError
from .models import Release, ReleaseAsset

GITHUB_API_URL = "https://api.github.com"
USER_AGENT = "dbtool-self-update"
DEFAULT_TIMEOUT = 30.0

# platform.machine() spellings to Go style architecture names
MACHINE_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
}

OS_TOKENS = {"darwin": "osx"}
ARCH_TOKENS = {"amd64": "x64", "386": "x32"}


def platform_tokens(
    system: Optional[str] = None,
    machine: Optional[str] = None
) -> tuple[str, str]:
    """OS and architecture tokens used in release asset names."""
    os_name = (system or platform.system()).lower()
    arch = (machine or platform.machine()).lower()
    arch = MACHINE_ALIASES.get(arch, arch)
    return OS_TOKENS.get(os_name, os_name), ARCH_TOKENS.get(arch, arch)


def resolve_asset_name(template: str, os_name: str, arch: str) -> str:
    return template.replace("%OS%", os_name).replace("%ARCH%", arch)


def current_executable() -> Path:
    """Path of the running packaged executable.

    Raises:
        UpdateApplyError: If running from a Python installation, where
            there is no single binary to replace.
    """
    if not getattr(sys, "frozen", False):
        raise UpdateApplyError("self-update requires a packaged executable")
    return Path(sys.executable)


def build_client(token: Optional[str] = None) -> httpx.Client:
    """Create an httpx client for the GitHub API."""
    headers = {
        "Accept": "application/vnd.github+json",
        "User-Agent": USER_AGENT,
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.Client(
        base_url=GITHUB_API_URL,
        headers=headers,
        timeout=httpx.Timeout(DEFAULT_TIMEOUT)
    )


def apply_update(new_file: Path, target: Path) -> None:
    """Replace target with new_file.

    The running executable is renamed aside rather than overwritten, which
    is also permitted on Windows while it is open. On failure the original
    file is put back.

    Raises:
        UpdateApplyError: If the swap fails.
    """
    old_file = target.with_name(f".{target.name}.old")

    try:
        os.chmod(new_file, stat.S_IMODE(target.stat().st_mode))
        old_file.unlink(missing_ok=True)
        os.replace(target, old_file)
    except OSError as e:
        new_file.unlink(missing_ok=True)
        raise UpdateApplyError(f"Unable to move {target} aside: {e}") from e

    try:
        os.replace(new_file, target)
    except OSError as e:
        try:
            os.replace(old_file, target)
        except OSError as rollback_error:
            raise UpdateApplyError(
                f"Update failed ({e}) and rollback failed ({rollback_error}); "
                f"previous version is at {old_file}"
            ) from e
        raise UpdateApplyError(f"Unable to install update to {target}: {e}") from e

    try:
        old_file.unlink()
    except OSError:
        # still locked while running on Windows
        logging.debug(f"Previous version left at {old_file}")


class SelfUpdater:
    """Replaces the running executable with the latest released build."""

    def __init__(
        self,
        organization: str,
        repository: str,
        asset_template: str,
        client: Optional[httpx.Client] = None,
        executable: Optional[Path] = None,
        system: Optional[str] = None,
        machine: Optional[str] = None
    ):
        self.organization = organization
        self.repository = repository
        self.asset_template = asset_template
        self.client = client or build_client()
        self.executable = executable
        self.system = system
        self.machine = machine

    @property
    def asset_name(self) -> str:
        os_name, arch = platform_tokens(self.system, self.machine)
        return resolve_asset_name(self.asset_template, os_name, arch)

    def get_latest_release(self) -> Optional[Release]:
        """Fetch the latest release, or None when rate limited.

        Raises:
            NetworkError: If the API request fails.
        """
        url = f"/repos/{self.organization}/{self.repository}/releases/latest"
        try:
            response = self.client.get(url)
            if (response.status_code in (403, 429)
                    and response.headers.get("X-RateLimit-Remaining") == "0"):
                logging.warning("GitHub rate limit, please try again later")
                return None
            response.raise_for_status()
            return Release.from_api(response.json())
        except httpx.HTTPError as e:
            raise NetworkError(f"Unable to look up latest release: {e}") from e

    def download(self, asset: ReleaseAsset, destination: Path) -> None:
        """Stream an asset to destination.

        Raises:
            NetworkError: If the download fails. No partial file is kept.
        """
        logging.info(" - downloading update")
        try:
            with self.client.stream("GET", asset.browser_download_url, follow_redirects=True) as response:
                response.raise_for_status()
                with open(destination, "wb") as handle:
                    for chunk in response.iter_bytes():
                        handle.write(chunk)
        except httpx.HTTPError as e:
            destination.unlink(missing_ok=True)
            raise NetworkError(f"Unable to download {asset.browser_download_url}: {e}") from e

    def run(self) -> Release:
        """Update the running executable to the latest release.

        Returns:
            The release that was installed.

        Raises:
            AssetNotFoundError: If no asset matches this platform.
            NetworkError: If the API or the download fails.
            UpdateApplyError: If the executable cannot be replaced.
        """
        logging.info("Starting self update")
        executable = self.executable or current_executable()
        release = self.get_latest_release()

        asset_name = self.asset_name
        logging.info(f" - searching for asset \"{asset_name}\"")

        asset = release.find_asset(asset_name) if release else None
        if asset is None:
            logging.error(" - unable to download latest version")
            raise AssetNotFoundError(f"No release asset named '{asset_name}' found")

        logging.info(f" - found new update url \"{asset.browser_download_url}\"")
        new_file = executable.with_name(f".{executable.name}.new")
        self.download(asset, new_file)

        logging.info(" - applying update")
        apply_update(new_file, executable)

        logging.info(f" - finished update to version {release.name}")
        return release
