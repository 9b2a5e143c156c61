"""Command implementations for the tsgrammars CLI."""
