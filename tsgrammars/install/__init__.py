"""Installation of pre-built grammar bundles."""

from .installer import Installer

__all__ = ["Installer"]
