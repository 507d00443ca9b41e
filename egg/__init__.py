"""egg - source-dependency package manager for Idris2 packages."""

__version__ = "0.1.0"
