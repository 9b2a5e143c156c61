"""Configuration schema and validation for tsgrammars."""

from .schema import (
    BUNDLE_NAME,
    BUNDLE_VERSION,
    RELEASE_REPOSITORY,
    VERSION_MARKER_NAME,
    BuildConfig,
)

__all__ = [
    "BUNDLE_NAME",
    "BUNDLE_VERSION",
    "RELEASE_REPOSITORY",
    "VERSION_MARKER_NAME",
    "BuildConfig",
]
