"""Content graph: consistent article, comment, like and session storage with two-stage search."""

__version__ = "0.1.0"
