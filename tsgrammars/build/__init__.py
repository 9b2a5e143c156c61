"""Grammar compilation, bundling and platform tables."""
