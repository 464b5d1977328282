"""Search for a natural-language spec that reproduces a target code change."""

__version__ = "0.1.0"
