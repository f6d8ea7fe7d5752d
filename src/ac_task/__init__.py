"""Command-line client for ActiveCollab tasks."""

__version__ = "0.1.0"
