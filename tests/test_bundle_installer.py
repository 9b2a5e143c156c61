"""Tests for downloading and installing grammar bundles."""

from __future__ import annotations

import io
import json
import tarfile
from pathlib import Path
from typing import Dict, List, Tuple, Union

import pytest
import requests

from tsgrammars.config import BuildConfig
from tsgrammars.errors import DownloadFailed, ReleaseMetadataError, UnsupportedTarget
from tsgrammars.install.installer import Installer
from tsgrammars.utils.archive_utils import ArchiveSecurityError

VERSION = "0.12.298"
CURRENT_URL = (
    "https://github.com/emacs-tree-sitter/tree-sitter-langs/releases/download/"
    f"{VERSION}/tree-sitter-grammars.x86_64-unknown-linux-gnu.v{VERSION}.tar.gz"
)
LEGACY_URL = (
    "https://github.com/emacs-tree-sitter/tree-sitter-langs/releases/download/"
    f"{VERSION}/tree-sitter-grammars-linux-{VERSION}.tar.gz"
)
LATEST_URL = "https://api.github.com/repos/emacs-tree-sitter/tree-sitter-langs/releases/latest"


def _response(status: int, body: bytes = b"", url: str = "") -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp._content = body
    resp._content_consumed = True
    resp.url = url
    resp.reason = "OK" if status < 400 else "Error"
    return resp


class StubSession:
    """Serves canned responses by URL and records every request."""

    def __init__(self, routes: Dict[str, Union[Tuple[int, bytes], Exception]]) -> None:
        self.routes = routes
        self.requested: List[str] = []

    def get(self, url: str, **kwargs) -> requests.Response:
        self.requested.append(url)
        route = self.routes.get(url, (404, b""))
        if isinstance(route, Exception):
            raise route
        status, body = route
        return _response(status, body, url)


def _bundle(files: Dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def _installer(config: BuildConfig, session: StubSession) -> Installer:
    return Installer(config, session=session, machine="x86_64")


def test_install_extracts_and_writes_marker(config: BuildConfig) -> None:
    body = _bundle({"foo.so": b"foo", "BUNDLE-VERSION": b"stale"})
    session = StubSession({CURRENT_URL: (200, body)})
    installer = _installer(config, session)

    assert installer.install(VERSION) is True

    root = config.artifact_root
    assert (root / "foo.so").read_bytes() == b"foo"
    assert installer.installed_version() == VERSION
    assert session.requested == [CURRENT_URL]
    assert list(root.glob("*.tar.gz")) == []


def test_install_overwrites_same_named_files(config: BuildConfig) -> None:
    root = config.artifact_root
    root.mkdir(parents=True)
    (root / "foo.so").write_bytes(b"old")
    (root / "keep.so").write_bytes(b"untouched")
    session = StubSession({CURRENT_URL: (200, _bundle({"foo.so": b"new"}))})

    _installer(config, session).install(VERSION)

    assert (root / "foo.so").read_bytes() == b"new"
    assert (root / "keep.so").read_bytes() == b"untouched"


def test_skip_if_current_makes_no_requests(config: BuildConfig) -> None:
    config.artifact_root.mkdir(parents=True)
    config.version_marker_path.write_text(VERSION, encoding="utf-8")
    session = StubSession({})

    assert _installer(config, session).install(VERSION, skip_if_current=True) is False
    assert session.requested == []


def test_reinstall_without_skip_downloads_again(config: BuildConfig) -> None:
    config.artifact_root.mkdir(parents=True)
    config.version_marker_path.write_text(VERSION, encoding="utf-8")
    session = StubSession({CURRENT_URL: (200, _bundle({"foo.so": b"foo"}))})

    assert _installer(config, session).install(VERSION) is True
    assert session.requested == [CURRENT_URL]


def test_unsupported_platform_fails_before_io(config: BuildConfig) -> None:
    session = StubSession({})

    with pytest.raises(UnsupportedTarget):
        _installer(config, session).install(VERSION, platform="riscv64-unknown-linux-gnu")
    assert session.requested == []
    assert not config.artifact_root.exists()


def test_server_error_leaves_marker_unchanged(config: BuildConfig) -> None:
    config.artifact_root.mkdir(parents=True)
    config.version_marker_path.write_text("0.12.100", encoding="utf-8")
    session = StubSession({CURRENT_URL: (500, b"oops")})
    installer = _installer(config, session)

    with pytest.raises(DownloadFailed) as excinfo:
        installer.install(VERSION)

    assert excinfo.value.status == 500
    assert session.requested == [CURRENT_URL]
    assert installer.installed_version() == "0.12.100"
    assert list(config.artifact_root.glob("*.tar.gz")) == []


def test_network_error_is_wrapped(config: BuildConfig) -> None:
    session = StubSession({CURRENT_URL: requests.ConnectionError("connection refused")})

    with pytest.raises(DownloadFailed):
        _installer(config, session).install(VERSION)


def test_missing_bundle_falls_back_to_legacy_name(config: BuildConfig) -> None:
    session = StubSession({LEGACY_URL: (200, _bundle({"foo.so": b"legacy"}))})

    assert _installer(config, session).install(VERSION) is True
    assert session.requested == [CURRENT_URL, LEGACY_URL]
    assert (config.artifact_root / "foo.so").read_bytes() == b"legacy"


def test_keep_archive(config: BuildConfig) -> None:
    session = StubSession({CURRENT_URL: (200, _bundle({"foo.so": b"foo"}))})

    _installer(config, session).install(VERSION, keep_archive=True)

    archives = [p.name for p in config.artifact_root.glob("*.tar.gz")]
    assert archives == [f"tree-sitter-grammars.x86_64-unknown-linux-gnu.v{VERSION}.tar.gz"]


def test_hostile_archive_is_rejected(config: BuildConfig) -> None:
    session = StubSession({CURRENT_URL: (200, _bundle({"../escape.so": b"x"}))})
    installer = _installer(config, session)

    with pytest.raises(ArchiveSecurityError):
        installer.install(VERSION)

    assert installer.installed_version() is None
    assert not (config.root_dir / "escape.so").exists()


def test_install_latest_uses_release_tag(config: BuildConfig) -> None:
    latest = "0.12.300"
    url = CURRENT_URL.replace(VERSION, latest)
    session = StubSession(
        {
            LATEST_URL: (200, json.dumps({"tag_name": latest}).encode()),
            url: (200, _bundle({"foo.so": b"foo"})),
        }
    )
    installer = _installer(config, session)

    assert installer.install_latest() is True
    assert session.requested == [LATEST_URL, url]
    assert installer.installed_version() == latest


@pytest.mark.parametrize(
    "body",
    [b"<html>rate limited</html>", b"{}", json.dumps({"tag_name": "nightly"}).encode()],
)
def test_unusable_release_metadata_installs_nothing(config: BuildConfig, body: bytes) -> None:
    session = StubSession({LATEST_URL: (200, body)})

    with pytest.raises(ReleaseMetadataError):
        _installer(config, session).install_latest()
    assert session.requested == [LATEST_URL]
    assert not config.artifact_root.exists()


def test_installed_version_absent_before_first_install(config: BuildConfig) -> None:
    assert Installer(config, session=StubSession({})).installed_version() is None


def test_archive_path_is_relative_to_artifact_root(tmp_path: Path) -> None:
    config = BuildConfig(root_dir=tmp_path, host_os="linux", artifact_dir=tmp_path / "grammars")
    session = StubSession({CURRENT_URL: (200, _bundle({"foo.so": b"foo"}))})

    _installer(config, session).install(VERSION)

    assert (tmp_path / "grammars" / "foo.so").is_file()
    assert (tmp_path / "grammars" / "BUNDLE-VERSION").read_text(encoding="utf-8") == VERSION


def test_owned_session_is_closed_on_exit(
    config: BuildConfig, monkeypatch: pytest.MonkeyPatch
) -> None:
    closed: List[bool] = []

    class RecordingSession(requests.Session):
        def close(self) -> None:
            closed.append(True)
            super().close()

    monkeypatch.setattr(requests, "Session", RecordingSession)

    with Installer(config, machine="x86_64") as installer:
        assert isinstance(installer.session, RecordingSession)
    assert closed == [True]

    borrowed = StubSession({})
    with Installer(config, session=borrowed, machine="x86_64"):
        pass
    assert closed == [True]
