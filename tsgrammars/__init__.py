"""tsgrammars - build, bundle and install tree-sitter grammars."""

__version__ = "0.1.0"
