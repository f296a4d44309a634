"""Mailbox access: Graph gateway, inbox cache and session."""

from solomail.mail.gateway import MailGateway
from solomail.mail.inbox import InboxCache
from solomail.mail.models import ComposeError, EmailAddress, Message, MessageBody, OutgoingMail, PaginatedResult
from solomail.mail.results import ApiError, NetworkError, Ok, Result, Unauthorized
from solomail.mail.session import MailSession, SignInRequired

__all__ = [
    "MailGateway",
    "InboxCache",
    "MailSession",
    "SignInRequired",
    "Message",
    "MessageBody",
    "EmailAddress",
    "OutgoingMail",
    "PaginatedResult",
    "ComposeError",
    "Ok",
    "Result",
    "Unauthorized",
    "ApiError",
    "NetworkError",
]
