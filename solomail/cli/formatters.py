"""Rich formatters for CLI output."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from rich.console import Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text


def build_message_table(
    messages: Iterable[Any],
    *,
    title: str,
    include_id: bool = False,
) -> Table:
    """Create a rich table for an inbox listing."""
    table = Table(title=title)
    if include_id:
        table.add_column("ID", style="dim", overflow="fold")
    table.add_column("From", style="magenta")
    table.add_column("Subject", style="white")
    table.add_column("Received", style="cyan")
    table.add_column("Preview", style="dim", overflow="ellipsis", no_wrap=True, max_width=50)

    for message in messages:
        row = []
        if include_id:
            row.append(str(getattr(message, "id", "")))
        row.extend(
            [
                _format_sender(message),
                getattr(message, "subject", None) or "(no subject)",
                _format_datetime(getattr(message, "received_at", None)),
                _single_line(getattr(message, "body_preview", "") or ""),
            ]
        )
        table.add_row(*row)

    return table


def build_message_panel(message: Any) -> Panel:
    """Render one message with headers and body."""
    sender = getattr(message, "sender", None)
    address = getattr(sender, "address", None) or ""
    headers = Table.grid(padding=(0, 1))
    headers.add_column(style="bold")
    headers.add_column()
    sender_text = escape(_format_sender(message))
    if address and address != _format_sender(message):
        sender_text = f"{sender_text} <{escape(address)}>"
    headers.add_row("From", sender_text)
    headers.add_row("Received", _format_datetime(getattr(message, "received_at", None)))

    body = getattr(message, "body", None)
    content = getattr(message, "text", "") or ""
    parts: list[Any] = [headers, Text("")]
    if body is not None and getattr(body, "is_html", False):
        parts.append(Text("[HTML body shown as source]", style="dim italic"))
    parts.append(Text(content))

    subject = getattr(message, "subject", None) or "(no subject)"
    return Panel(Group(*parts), title=escape(subject), border_style="blue")


def build_status_panel(lines: Iterable[tuple[str, str]], *, title: str = "Status") -> Panel:
    """Build a formatted status panel from label/value pairs."""
    table = Table.grid(padding=(0, 1))
    table.add_column(style="bold")
    table.add_column()
    for label, value in lines:
        table.add_row(label, value)
    return Panel.fit(table, title=title, border_style="blue")


def _format_sender(message: Any) -> str:
    sender = getattr(message, "sender", None)
    if sender is not None:
        name = getattr(sender, "name", None)
        if name:
            return str(name)
        address = getattr(sender, "address", None)
        if address:
            return str(address)
    return "Unknown"


def _format_datetime(value: Optional[datetime]) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if value is None:
        return "unknown"
    return str(value)


def _single_line(text: str) -> str:
    return " ".join(text.split())
