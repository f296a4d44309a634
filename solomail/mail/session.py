"""Mailbox session tying the identity gate to the mail gateway."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar, Union

from solomail.auth.gate import IdentityGate
from solomail.auth.outcomes import AuthSuccess
from solomail.mail.gateway import MailGateway
from solomail.mail.inbox import InboxCache
from solomail.mail.models import Message, OutgoingMail, PaginatedResult
from solomail.mail.results import ApiError, NetworkError, Ok, Result, Unauthorized

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class SignInRequired:
    """No usable token could be obtained silently; the user must sign in."""

    message: str


SessionResult = Union[Ok[T], ApiError, NetworkError, SignInRequired]


class MailSession:
    """Runs mailbox operations with a silently acquired token.

    A 401 from the API gets exactly one more silent acquisition and one retry.
    When that is not enough the result is ``SignInRequired`` and the caller
    decides whether to start an interactive sign-in.
    """

    def __init__(self, gate: IdentityGate, gateway: MailGateway, inbox_capacity: int = 100):
        self.gate = gate
        self.gateway = gateway
        self.inbox = InboxCache(gateway, capacity=inbox_capacity)

    async def refresh_inbox(self) -> SessionResult[PaginatedResult]:
        """Reload the inbox from the first page."""
        return await self._with_token(self.inbox.refresh)

    async def load_more(self) -> Optional[SessionResult[PaginatedResult]]:
        """Fetch the next inbox page, or return None when there is nothing to fetch."""
        if self.inbox.is_loading or not self.inbox.has_more:
            return None

        outcome = await self._with_token(self.inbox.load_more)
        if isinstance(outcome, Ok) and outcome.value is None:
            return None
        return outcome

    async def open_message(self, message_id: str) -> SessionResult[Message]:
        """Fetch one message with its full body."""
        return await self._with_token(lambda token: self.gateway.get_message(token, message_id))

    async def send(self, to: str, subject: str, body: str = "") -> SessionResult[None]:
        """Validate and send a plain-text message.

        Raises:
            ComposeError: If the recipient or subject is invalid
        """
        outgoing = OutgoingMail.build(to=to, subject=subject, body=body)
        return await self._with_token(
            lambda token: self.gateway.send_mail(token, outgoing.to, outgoing.subject, outgoing.body)
        )

    async def _with_token(self, call: Callable[[str], Awaitable[Optional[Result[T]]]]) -> SessionResult:
        outcome = await self.gate.acquire_token_silent()
        if not isinstance(outcome, AuthSuccess):
            return SignInRequired(getattr(outcome, "message", "Sign-in required"))

        result = await call(outcome.access_token)
        if not isinstance(result, Unauthorized):
            return _as_session_result(result)

        logger.info("Access token rejected; trying one silent refresh")
        outcome = await self.gate.acquire_token_silent()
        if not isinstance(outcome, AuthSuccess):
            return SignInRequired(getattr(outcome, "message", "Sign-in required"))

        result = await call(outcome.access_token)
        if isinstance(result, Unauthorized):
            logger.warning("Access token still rejected after silent refresh")
            return SignInRequired("Session expired. Please sign in again.")
        return _as_session_result(result)


def _as_session_result(result: Optional[Result[T]]) -> SessionResult:
    # A skipped load_more yields None; report it as an empty success.
    if result is None:
        return Ok(None)
    return result
