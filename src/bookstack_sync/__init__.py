"""Two-way synchronisation between a local Markdown tree and BookStack."""

__version__ = "0.3.0"
