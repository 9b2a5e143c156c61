"""Runtime support: subprocess execution, progress display, config loading."""

from .process import ProcessRunner, output_sink, require_tools

__all__ = ["ProcessRunner", "output_sink", "require_tools"]
