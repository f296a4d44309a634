"""Pytest configuration and shared fixtures."""

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Optional

import pytest

from solomail.mail.models import EmailAddress, Message, PaginatedResult


@pytest.fixture
def graph_message() -> SimpleNamespace:
    """Return a mocked Graph message payload."""
    return SimpleNamespace(
        id="msg-1",
        subject="Status update",
        from_=SimpleNamespace(
            email_address=SimpleNamespace(address="sender@example.com", name="Sender"),
        ),
        received_date_time=datetime(2024, 1, 5, 12, 30, tzinfo=timezone.utc),
        body_preview="Preview text",
        body=SimpleNamespace(content="Body text", content_type="text"),
    )


def make_record(username: str, authority: str = "login.microsoftonline.com") -> SimpleNamespace:
    """Build an object shaped like an AuthenticationRecord."""
    return SimpleNamespace(
        username=username,
        authority=authority,
        tenant_id="9188040d-6c67-4c5b-b112-36a304b66dad",
        home_account_id=f"home.{username}",
        client_id="client-id",
        serialize=lambda: f'{{"username": "{username}"}}',
    )


def make_message(index: int) -> Message:
    """Build a cached message with a predictable id."""
    return Message(
        id=f"msg-{index}",
        subject=f"Subject {index}",
        sender=EmailAddress(address=f"sender{index}@example.com", name=f"Sender {index}"),
        received_at=datetime(2024, 1, 5, 12, 0, tzinfo=timezone.utc),
        body_preview=f"Preview {index}",
    )


def make_page(start: int, count: int, next_page_url: Optional[str] = None) -> PaginatedResult:
    """Build a page of ``count`` messages numbered from ``start``."""
    return PaginatedResult(
        messages=[make_message(i) for i in range(start, start + count)],
        next_page_url=next_page_url,
    )


@pytest.fixture
def record_factory():
    """Return a builder for AuthenticationRecord stand-ins."""
    return make_record


@pytest.fixture
def page_factory():
    """Return a builder for inbox pages."""
    return make_page
