"""Download and install pre-built grammar bundles.

The artifact directory records the installed bundle version in a marker
file. ``install`` compares it with the requested version, downloads the
bundle for the platform triple, extracts it over the artifact directory and
rewrites the marker. There is no rollback: an extraction that fails midway
leaves the directory in a mixed state, and the marker keeps the previous
version, so a reinstall is required.

Download URL and release-metadata endpoint come from the BuildConfig
templates. Bundles published before the triple-based naming are looked up
under the legacy ``<name>-<os>-<version>.tar.gz`` name when the current name
is not found.
"""

from __future__ import annotations

import logging
import tarfile
from pathlib import Path
from typing import Optional, Tuple

import requests
from packaging.version import InvalidVersion, Version

from tsgrammars.build.platform import (
    bundle_file_name,
    legacy_bundle_file_name,
    validate_bundle_triple,
)
from tsgrammars.config import BuildConfig
from tsgrammars.errors import DownloadFailed, GrammarToolError, ReleaseMetadataError
from tsgrammars.utils.archive_utils import safe_extract_tar
from tsgrammars.utils.path_utils import write_text_atomic

_LOG = logging.getLogger("tsgrammars.install.installer")

_CHUNK_SIZE = 64 * 1024


class Installer:
    """Installs grammar bundles into the configured artifact directory."""

    def __init__(
        self,
        config: BuildConfig,
        session: Optional[requests.Session] = None,
        machine: Optional[str] = None,
    ) -> None:
        self.config = config
        self._owns_session = session is None
        self.session = session or requests.Session()
        self._machine = machine

    def close(self) -> None:
        """Close the HTTP session when this installer created it."""
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "Installer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def timeout(self) -> Tuple[float, float]:
        return (self.config.connect_timeout, self.config.read_timeout)

    def installed_version(self) -> Optional[str]:
        """Version recorded in the marker file, or None before the first install."""
        marker = self.config.version_marker_path
        try:
            return marker.read_text(encoding="utf-8").strip() or None
        except FileNotFoundError:
            return None

    def resolve_platform(self, platform: Optional[str] = None) -> str:
        """Bundle triple to install; the host's when ``platform`` is None.

        Raises:
            UnsupportedTarget: When ``platform`` is not a published triple.
            UnsupportedPlatform: When the host has no triple.
        """
        if platform is None:
            return self.config.host_triple(self._machine)
        return validate_bundle_triple(platform)

    def _download(self, url: str, dest: Path) -> None:
        _LOG.info("Downloading %s", url)
        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as resp:
                if resp.status_code >= 400:
                    raise DownloadFailed(
                        url, f"HTTP {resp.status_code}", status=resp.status_code
                    )
                with dest.open("wb") as out:
                    for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                        if chunk:
                            out.write(chunk)
        except requests.RequestException as exc:
            dest.unlink(missing_ok=True)
            status = exc.response.status_code if exc.response is not None else None
            raise DownloadFailed(url, str(exc), status=status) from exc
        except (DownloadFailed, OSError):
            dest.unlink(missing_ok=True)
            raise

    def download_bundle(self, version: str, triple: str) -> Path:
        """Download the bundle archive into the artifact directory.

        Raises:
            DownloadFailed: When neither the current nor the legacy name exists,
                or on any network error.
        """
        root = self.config.artifact_root
        root.mkdir(parents=True, exist_ok=True)

        file_name = bundle_file_name(self.config.bundle_name, version, triple)
        dest = root / file_name
        try:
            self._download(self.config.download_url(version, file_name), dest)
            return dest
        except DownloadFailed as exc:
            if exc.status != 404:
                raise
            _LOG.info("%s not published; trying legacy bundle name", file_name)

        legacy_name = legacy_bundle_file_name(self.config.bundle_name, version, triple)
        legacy_dest = root / legacy_name
        self._download(self.config.download_url(version, legacy_name), legacy_dest)
        return legacy_dest

    def install(
        self,
        version: Optional[str] = None,
        platform: Optional[str] = None,
        skip_if_current: bool = False,
        keep_archive: bool = False,
    ) -> bool:
        """Install bundle ``version`` for ``platform``.

        Args:
            version: Bundle version; defaults to the configured bundle version.
            platform: Bundle platform triple; defaults to the host's.
            skip_if_current: Do nothing when ``version`` is already installed.
            keep_archive: Keep the downloaded archive next to the artifacts.

        Returns:
            True when a bundle was installed, False when skipped.

        Raises:
            UnsupportedTarget: For an unknown ``platform``, before any I/O.
            DownloadFailed: When the bundle could not be fetched.
        """
        version = (version or self.config.bundle_version).strip()
        triple = self.resolve_platform(platform)

        current = self.installed_version()
        if skip_if_current and current == version:
            _LOG.info("Grammar bundle %s already installed; skipping", version)
            return False

        _LOG.info(
            "Installing grammar bundle %s for %s (installed: %s)",
            version,
            triple,
            current or "none",
        )
        archive = self.download_bundle(version, triple)
        try:
            try:
                safe_extract_tar(archive, self.config.artifact_root)
            except tarfile.TarError as exc:
                raise GrammarToolError(
                    f"Could not extract {archive.name}: {exc}; "
                    "the grammar directory is in an unknown state, reinstall recommended"
                ) from exc
            write_text_atomic(self.config.version_marker_path, version)
        finally:
            if not keep_archive:
                archive.unlink(missing_ok=True)

        _LOG.info("Installed grammar bundle %s into %s", version, self.config.artifact_root)
        return True

    def latest_version(self) -> str:
        """Newest published bundle version according to the release metadata.

        Raises:
            ReleaseMetadataError: On network errors or an unusable response.
        """
        url = self.config.release_metadata_url()
        try:
            resp = self.session.get(
                url,
                timeout=self.timeout,
                headers={"Accept": "application/vnd.github+json"},
            )
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as exc:
            raise ReleaseMetadataError(f"Failed to query {url}: {exc}") from exc
        except ValueError as exc:
            raise ReleaseMetadataError(f"Unparseable release metadata from {url}") from exc

        tag = data.get("tag_name") if isinstance(data, dict) else None
        if not isinstance(tag, str) or not tag.strip():
            raise ReleaseMetadataError(f"No tag_name in release metadata from {url}")
        tag = tag.strip()
        try:
            Version(tag.lstrip("v"))
        except InvalidVersion as exc:
            raise ReleaseMetadataError(f"Latest release tag {tag!r} is not a version") from exc
        return tag

    def install_latest(
        self,
        platform: Optional[str] = None,
        skip_if_current: bool = False,
        keep_archive: bool = False,
    ) -> bool:
        """Install the newest published bundle.

        Nothing is downloaded when the latest version cannot be determined.
        """
        version = self.latest_version()
        _LOG.info("Latest grammar bundle: %s", version)
        return self.install(
            version=version,
            platform=platform,
            skip_if_current=skip_if_current,
            keep_archive=keep_archive,
        )


__all__ = ["Installer"]
