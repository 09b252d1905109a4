"""
Unit tests for self_update.py
"""

import os
import stat
import sys
from pathlib import Path
from unittest import mock

import httpx
import pytest

from dbtool.exceptions import AssetNotFoundError, NetworkError, UpdateApplyError
from dbtool.self_update import (
    GITHUB_API_URL,
    SelfUpdater,
    apply_update,
    build_client,
    current_executable,
    platform_tokens,
    resolve_asset_name,
)

RELEASE_PATH = "/repos/webdevops/dbtool/releases/latest"
DOWNLOAD_URL = "https://github.com/webdevops/dbtool/releases/download/1.2.0/dbtool-linux-x64"
ASSET_URL = "https://objects.example.com/dbtool-linux-x64"

RELEASE = {
    "name": "1.2.0",
    "tag_name": "1.2.0",
    "assets": [
        {"name": "dbtool-osx-x64", "browser_download_url": "https://example.com/osx", "size": 3},
        {"name": "dbtool-linux-x64", "browser_download_url": DOWNLOAD_URL, "size": 11},
    ]
}


def _client(handler):
    return httpx.Client(base_url=GITHUB_API_URL, transport=httpx.MockTransport(handler))


def _github(release=RELEASE, binary=b"new version"):
    """Handler serving the release API and a redirected asset download."""
    def handler(request):
        if request.url.path == RELEASE_PATH:
            return httpx.Response(200, json=release)
        if str(request.url) == DOWNLOAD_URL:
            return httpx.Response(302, headers={"Location": ASSET_URL})
        if str(request.url) == ASSET_URL:
            return httpx.Response(200, content=binary)
        return httpx.Response(404)
    return handler


@pytest.fixture
def executable(tmp_path):
    path = tmp_path / "dbtool"
    path.write_bytes(b"old version")
    path.chmod(0o755)
    return path


def _updater(handler, executable, system="Linux", machine="x86_64"):
    return SelfUpdater(
        organization="webdevops",
        repository="dbtool",
        asset_template="dbtool-%OS%-%ARCH%",
        client=_client(handler),
        executable=executable,
        system=system,
        machine=machine
    )


class TestPlatformTokens:
    """Tests for platform_tokens and resolve_asset_name."""

    @pytest.mark.parametrize("system,machine,expected", [
        ("Darwin", "x86_64", ("osx", "x64")),
        ("darwin", "amd64", ("osx", "x64")),
        ("Linux", "x86_64", ("linux", "x64")),
        ("Linux", "i686", ("linux", "x32")),
        ("Windows", "AMD64", ("windows", "x64")),
        ("Linux", "aarch64", ("linux", "arm64")),
        ("Darwin", "arm64", ("osx", "arm64")),
        ("FreeBSD", "riscv64", ("freebsd", "riscv64")),
    ])
    def test_tokens(self, system, machine, expected):
        assert platform_tokens(system, machine) == expected

    def test_darwin_amd64_template(self):
        os_name, arch = platform_tokens("darwin", "amd64")
        assert resolve_asset_name("tool-%OS%-%ARCH%", os_name, arch) == "tool-osx-x64"

    def test_template_without_placeholders(self):
        assert resolve_asset_name("tool", "linux", "x64") == "tool"

    def test_repeated_placeholders(self):
        assert resolve_asset_name("%OS%/%OS%-%ARCH%", "linux", "x64") == "linux/linux-x64"


class TestBuildClient:
    """Tests for build_client."""

    def test_defaults(self):
        with build_client() as client:
            assert str(client.base_url).rstrip("/") == GITHUB_API_URL
            assert "Authorization" not in client.headers

    def test_token(self):
        with build_client("abc") as client:
            assert client.headers["Authorization"] == "Bearer abc"


class TestCurrentExecutable:
    """Tests for current_executable."""

    def test_frozen(self, monkeypatch):
        monkeypatch.setattr(sys, "frozen", True, raising=False)
        assert current_executable() == Path(sys.executable)

    def test_interpreter_refused(self, monkeypatch):
        """Test that an interpreter run never offers a file to replace."""
        monkeypatch.delattr(sys, "frozen", raising=False)
        with pytest.raises(UpdateApplyError, match="packaged executable"):
            current_executable()


class TestApplyUpdate:
    """Tests for apply_update."""

    def test_replaces_target(self, tmp_path, executable):
        new_file = tmp_path / ".dbtool.new"
        new_file.write_bytes(b"new version")

        apply_update(new_file, executable)

        assert executable.read_bytes() == b"new version"
        assert not new_file.exists()
        assert not (tmp_path / ".dbtool.old").exists()

    def test_keeps_file_mode(self, tmp_path, executable):
        new_file = tmp_path / ".dbtool.new"
        new_file.write_bytes(b"new version")
        new_file.chmod(0o600)

        apply_update(new_file, executable)

        assert stat.S_IMODE(executable.stat().st_mode) == 0o755

    def test_missing_target(self, tmp_path):
        new_file = tmp_path / ".dbtool.new"
        new_file.write_bytes(b"new version")

        with pytest.raises(UpdateApplyError):
            apply_update(new_file, tmp_path / "missing")

        assert not new_file.exists()

    def test_rollback_on_install_failure(self, tmp_path, executable):
        new_file = tmp_path / ".dbtool.new"
        new_file.write_bytes(b"new version")
        real_replace = os.replace

        def flaky_replace(src, dst):
            if str(src) == str(new_file):
                raise PermissionError("denied")
            return real_replace(src, dst)

        with mock.patch('dbtool.self_update.os.replace', side_effect=flaky_replace):
            with pytest.raises(UpdateApplyError) as exc_info:
                apply_update(new_file, executable)

        assert "denied" in str(exc_info.value)
        assert executable.read_bytes() == b"old version"


class TestSelfUpdater:
    """Tests for SelfUpdater."""

    def test_asset_name(self, executable):
        updater = _updater(_github(), executable, system="Darwin", machine="x86_64")
        assert updater.asset_name == "dbtool-osx-x64"

    def test_successful_update(self, executable):
        release = _updater(_github(), executable).run()

        assert release.name == "1.2.0"
        assert executable.read_bytes() == b"new version"
        assert stat.S_IMODE(executable.stat().st_mode) == 0o755
        assert sorted(p.name for p in executable.parent.iterdir()) == ["dbtool"]

    def test_no_matching_asset(self, executable):
        updater = _updater(_github(), executable, system="Windows", machine="x86")

        with pytest.raises(AssetNotFoundError) as exc_info:
            updater.run()

        assert "dbtool-windows-x32" in str(exc_info.value)
        assert executable.read_bytes() == b"old version"

    def test_rate_limit_is_warning(self, executable, caplog):
        def handler(request):
            return httpx.Response(403, headers={"X-RateLimit-Remaining": "0"}, json={})

        updater = _updater(handler, executable)

        assert updater.get_latest_release() is None
        assert "rate limit" in caplog.text

        with pytest.raises(AssetNotFoundError):
            updater.run()

    def test_api_error(self, executable):
        def handler(request):
            return httpx.Response(500)

        with pytest.raises(NetworkError):
            _updater(handler, executable).run()

    def test_forbidden_without_rate_limit_is_error(self, executable):
        def handler(request):
            return httpx.Response(403, headers={"X-RateLimit-Remaining": "12"})

        with pytest.raises(NetworkError):
            _updater(handler, executable).get_latest_release()

    def test_transport_error(self, executable):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError):
            _updater(handler, executable).run()

    def test_download_failure_keeps_executable(self, executable):
        def handler(request):
            if request.url.path == RELEASE_PATH:
                return httpx.Response(200, json=RELEASE)
            return httpx.Response(404)

        with pytest.raises(NetworkError):
            _updater(handler, executable).run()

        assert executable.read_bytes() == b"old version"
        assert sorted(p.name for p in executable.parent.iterdir()) == ["dbtool"]

    def test_unpackaged_run_refused(self, monkeypatch, tmp_path):
        monkeypatch.delattr(sys, "frozen", raising=False)
        handler = mock.MagicMock(side_effect=_github())
        updater = SelfUpdater(
            organization="webdevops",
            repository="dbtool",
            asset_template="dbtool-%OS%-%ARCH%",
            client=_client(handler),
            system="Linux",
            machine="x86_64"
        )

        with pytest.raises(UpdateApplyError):
            updater.run()

        handler.assert_not_called()
        assert list(tmp_path.iterdir()) == []
