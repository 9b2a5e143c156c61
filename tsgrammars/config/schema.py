"""Configuration schema definitions using Pydantic for validation.

A single BuildConfig is constructed at process start and threaded through
every component. It is frozen: CLI overrides produce a new value through
``model_copy(update=...)`` instead of mutating the shared one.
"""

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tsgrammars.build.platform import (
    BUNDLE_TRIPLES,
    bundle_triple,
    detect_host_arch,
    detect_host_os,
)

BUNDLE_VERSION = "0.12.298"
BUNDLE_NAME = "tree-sitter-grammars"
VERSION_MARKER_NAME = "BUNDLE-VERSION"
RELEASE_REPOSITORY = "emacs-tree-sitter/tree-sitter-langs"

_KNOWN_OS = {os_name for os_name, _ in BUNDLE_TRIPLES}


class BuildConfig(BaseModel):
    """Top-level configuration for compiling, bundling and installing grammars.

    Attributes:
        root_dir: Project root holding ``.gitmodules`` and the source trees.
        sources_dir_name: Directory (relative to root) with one checkout per language.
        queries_dir_name: Directory (relative to root) with per-language query files.
        artifact_dir: Where compiled grammars live. Defaults to ``<root>/bin``.
        bundle_dir: Where bundles are written. Defaults to ``<root>/dist``.
        bundle_name: Base name of bundle archives.
        bundle_version: Version stamped into bundles and the version marker.
        release_repository: ``owner/name`` of the repository hosting releases.
        download_url_template: Template with ``{repository}``, ``{version}`` and
            ``{file_name}`` placeholders.
        release_metadata_url_template: Template with a ``{repository}`` placeholder.
        default_base_revision: Revision compared against for change detection.
        c_compiler: Native C compiler.
        cxx_compiler: Native C++ compiler.
        linux_cxx_compiler: C++ compiler for the static Linux build.
        artifact_dir_env: Environment variable exported to every subprocess.
        query_file_name: Query file copied by the query copier.
        command_timeout: Per-subprocess timeout in seconds (None disables it).
        connect_timeout: HTTP connect timeout in seconds.
        read_timeout: HTTP read timeout in seconds.
        max_workers: Number of languages compiled concurrently.
        host_os: Normalized host OS; detected when omitted.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    root_dir: Path = Field(default_factory=Path.cwd)
    sources_dir_name: str = "sources"
    queries_dir_name: str = "queries"
    artifact_dir: Optional[Path] = None
    bundle_dir: Optional[Path] = None
    bundle_name: str = BUNDLE_NAME
    bundle_version: str = BUNDLE_VERSION
    release_repository: str = RELEASE_REPOSITORY
    download_url_template: str = (
        "https://github.com/{repository}/releases/download/{version}/{file_name}"
    )
    release_metadata_url_template: str = (
        "https://api.github.com/repos/{repository}/releases/latest"
    )
    default_base_revision: str = "origin/master"
    c_compiler: str = "cc"
    cxx_compiler: str = "c++"
    linux_cxx_compiler: str = "g++"
    artifact_dir_env: str = "TREE_SITTER_DIR"
    query_file_name: str = "highlights.scm"
    command_timeout: Optional[float] = Field(default=1800.0, gt=0)
    connect_timeout: float = Field(default=10.0, gt=0)
    read_timeout: float = Field(default=300.0, gt=0)
    max_workers: int = Field(default=1, ge=1, le=64)
    host_os: str = Field(default_factory=detect_host_os)

    @field_validator("root_dir", "artifact_dir", "bundle_dir")
    @classmethod
    def validate_absolute_path(cls, v: Optional[Path]) -> Optional[Path]:
        """Compiles run inside each grammar directory, so paths must be absolute."""
        if v is None:
            return v
        return Path(v).expanduser().resolve()

    @field_validator("sources_dir_name", "queries_dir_name")
    @classmethod
    def validate_relative_name(cls, v: str) -> str:
        """Source and query roots are single path segments under the root."""
        if not v or "/" in v or "\\" in v or v in {".", ".."}:
            raise ValueError(f"Directory name must be a single path segment: {v!r}")
        return v

    @field_validator("host_os")
    @classmethod
    def validate_host_os(cls, v: str) -> str:
        if v not in _KNOWN_OS:
            raise ValueError(f"Unknown host OS '{v}'. Valid values: {sorted(_KNOWN_OS)}")
        return v

    @field_validator("bundle_version")
    @classmethod
    def validate_bundle_version(cls, v: str) -> str:
        version = v.strip()
        if not version:
            raise ValueError("bundle_version must not be empty")
        return version

    @property
    def sources_root(self) -> Path:
        return self.root_dir / self.sources_dir_name

    @property
    def queries_root(self) -> Path:
        return self.root_dir / self.queries_dir_name

    @property
    def artifact_root(self) -> Path:
        return self.artifact_dir if self.artifact_dir is not None else self.root_dir / "bin"

    @property
    def bundle_root(self) -> Path:
        return self.bundle_dir if self.bundle_dir is not None else self.root_dir / "dist"

    @property
    def version_marker_path(self) -> Path:
        return self.artifact_root / VERSION_MARKER_NAME

    def host_triple(self, machine: Optional[str] = None) -> str:
        """Bundle platform triple of the host.

        Raises:
            UnsupportedPlatform: When the OS/architecture pair is unmapped.
        """
        return bundle_triple(self.host_os, detect_host_arch(machine))

    def source_path(self, language: str) -> Path:
        return self.sources_root / language

    def download_url(self, version: str, file_name: str) -> str:
        return self.download_url_template.format(
            repository=self.release_repository, version=version, file_name=file_name
        )

    def release_metadata_url(self) -> str:
        return self.release_metadata_url_template.format(
            repository=self.release_repository
        )

    @classmethod
    def default(cls) -> "BuildConfig":
        return cls()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BuildConfig":
        """Create configuration from dictionary.

        Raises:
            ValidationError: If configuration is invalid.
        """
        return cls.model_validate(data)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
