"""Load the build configuration from a TOML/JSON file or inline string.

``-c/--config`` accepts either a path or the document itself. A top-level
``[tsgrammars]`` table is unwrapped so the settings can share a file with
other tools.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union
import json
import logging

from tsgrammars.config import BuildConfig

logger = logging.getLogger("tsgrammars.runtime.config_loader")

ConfigSource = Union[str, Path, None]

_SECTION = "tsgrammars"


def _parse_toml(text: str) -> Dict[str, Any]:
    try:
        import tomllib  # type: ignore[attr-defined]
    except ImportError:  # pragma: no cover - Python <3.11 path
        import tomli as tomllib  # type: ignore[import-not-found,no-redef]
    return tomllib.loads(text)


def _read_document(source: Union[str, Path]) -> Dict[str, Any]:
    path = Path(source)
    if path.is_file():
        text = path.read_text(encoding="utf-8")
        is_json = path.suffix.lower() == ".json"
        logger.info("Loading configuration from file: %s", path)
    else:
        text = str(source)
        is_json = text.lstrip().startswith("{")
        logger.info("Loading configuration from inline %s string", "JSON" if is_json else "TOML")

    parsed = json.loads(text) if is_json else _parse_toml(text)
    if not isinstance(parsed, dict):
        raise ValueError("Top-level configuration must be a mapping/dict")
    section = parsed.get(_SECTION)
    return dict(section) if isinstance(section, dict) else parsed


def load_build_config(
    source: ConfigSource, overrides: Optional[Dict[str, Any]] = None
) -> BuildConfig:
    """Load BuildConfig and apply command-line overrides.

    Args:
        source: None for the defaults, else a path to a .toml/.json file or
            an inline TOML/JSON string.
        overrides: Values applied on top of the loaded mapping; entries
            whose value is None are ignored.

    Raises:
        OSError: When the file cannot be read.
        ValueError: When the document does not parse to a mapping.
        ValidationError: When a setting is invalid.
    """
    if source is None:
        data: Dict[str, Any] = {}
    elif isinstance(source, (str, Path)):
        data = _read_document(source)
    else:
        raise TypeError(f"Unsupported config source type: {type(source)!r}")

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    return BuildConfig.from_dict(data)


__all__ = ["load_build_config"]
