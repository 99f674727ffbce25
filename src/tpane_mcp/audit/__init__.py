"""Command audit log."""

from .logger import CommandLogger, LogEntry, TRUNCATION_MARKER, truncate_output

__all__ = ["CommandLogger", "LogEntry", "TRUNCATION_MARKER", "truncate_output"]
