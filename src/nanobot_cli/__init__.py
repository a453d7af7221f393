"""nanobot CLI - terminal client for nanobot agent servers."""

__version__ = "0.1.0"
