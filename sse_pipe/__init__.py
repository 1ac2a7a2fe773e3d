"""Pipe a Server-Sent Events stream into a command, one process per event."""

__version__ = "0.2.0"
