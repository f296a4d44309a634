"""Command-line interface module."""

from solomail.cli.commands import app, inbox, login, logout, main, read, send, status

__all__ = ["app", "login", "logout", "status", "inbox", "read", "send", "main"]
