"""Audit a directory tree for large, old, likely-disposable files."""

__version__ = "1.0.0"
