"""Pydantic models for mailbox data."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ComposeError(ValueError):
    """Raised when an outgoing message fails validation."""

    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        super().__init__("; ".join(f"{field}: {message}" for field, message in errors.items()))


def _get_attr(source: Any, *names: str, default: Any = None) -> Any:
    """Read attribute or dict key from a source object."""
    if source is None:
        return default
    for name in names:
        if isinstance(source, dict) and name in source:
            return source[name]
        if not isinstance(source, dict) and hasattr(source, name):
            return getattr(source, name)
    return default


def _normalize_datetime(value: Any) -> Any:
    """Normalize ISO timestamps so Pydantic can parse them."""
    if isinstance(value, str) and value.endswith("Z"):
        return value[:-1] + "+00:00"
    return value


def _normalize_content_type(value: Any) -> str:
    """Map Graph body types (enum or string) to 'text' or 'html'."""
    raw = getattr(value, "value", value)
    if raw is None:
        return "text"
    return str(raw).strip().lower() or "text"


class EmailAddress(BaseModel):
    """Sender name and address."""

    model_config = ConfigDict(frozen=True)

    address: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_graph(cls, source: Any) -> "EmailAddress":
        """Create an EmailAddress from a Graph recipient or email address payload."""
        email_address = _get_attr(source, "email_address", "emailAddress", default=source)
        return cls(
            address=_get_attr(email_address, "address", default=None),
            name=_get_attr(email_address, "name", default=None),
        )

    @property
    def display_name(self) -> str:
        """Name if present, else the address, else 'Unknown'."""
        return self.name or self.address or "Unknown"


class MessageBody(BaseModel):
    """Full message content."""

    model_config = ConfigDict(frozen=True)

    content: str = ""
    content_type: str = "text"

    @property
    def is_html(self) -> bool:
        return self.content_type == "html"


class Message(BaseModel):
    """A message from the inbox; the body is only present on single-message reads."""

    model_config = ConfigDict(frozen=True)

    id: str
    subject: Optional[str] = None
    sender: EmailAddress = Field(default_factory=EmailAddress)
    received_at: Optional[datetime] = None
    body_preview: str = ""
    body: Optional[MessageBody] = None

    @classmethod
    def from_graph_message(cls, message: Any) -> "Message":
        """Create a Message from a Graph message object or dict."""
        message_id = _get_attr(message, "id", default=None)
        if not message_id:
            raise ValueError("Missing id on message")

        sender_source = _get_attr(message, "from_", "from", "sender", default=None)
        sender = EmailAddress.from_graph(sender_source) if sender_source else EmailAddress()

        body_source = _get_attr(message, "body", default=None)
        body = None
        if body_source is not None:
            body = MessageBody(
                content=_get_attr(body_source, "content", default=None) or "",
                content_type=_normalize_content_type(
                    _get_attr(body_source, "content_type", "contentType", default=None)
                ),
            )

        return cls(
            id=message_id,
            subject=_get_attr(message, "subject", default=None),
            sender=sender,
            received_at=_normalize_datetime(_get_attr(message, "received_date_time", "receivedDateTime", default=None)),
            body_preview=_get_attr(message, "body_preview", "bodyPreview", default=None) or "",
            body=body,
        )

    @property
    def display_subject(self) -> str:
        return self.subject or "(no subject)"

    @property
    def text(self) -> str:
        """Body content, falling back to the preview."""
        if self.body is not None and self.body.content:
            return self.body.content
        return self.body_preview


class PaginatedResult(BaseModel):
    """One page of inbox messages plus the continuation link."""

    model_config = ConfigDict(frozen=True)

    messages: list[Message] = Field(default_factory=list)
    next_page_url: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return self.next_page_url is not None


class OutgoingMail(BaseModel):
    """A single-recipient plain-text message to send."""

    model_config = ConfigDict(frozen=True)

    to: str
    subject: str
    body: str = ""

    @field_validator("to")
    @classmethod
    def validate_recipient(cls, v: str) -> str:
        """Require a plausible e-mail address."""
        v = v.strip()
        if not v:
            raise ValueError("Recipient is required")
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email address")
        return v

    @field_validator("subject")
    @classmethod
    def validate_subject(cls, v: str) -> str:
        """Require a non-blank subject."""
        v = v.strip()
        if not v:
            raise ValueError("Subject is required")
        return v

    @classmethod
    def build(cls, to: str, subject: str, body: str = "") -> "OutgoingMail":
        """Validate compose input, collecting every field error.

        Raises:
            ComposeError: If any field is invalid
        """
        try:
            return cls(to=to, subject=subject, body=body)
        except ValidationError as exc:
            errors: dict[str, str] = {}
            for error in exc.errors():
                field = str(error["loc"][0]) if error["loc"] else "message"
                errors[field] = str(error["msg"]).removeprefix("Value error, ")
            raise ComposeError(errors) from exc

