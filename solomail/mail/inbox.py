"""Bounded in-memory inbox with cursor-based paging."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from solomail.mail.models import Message, PaginatedResult
from solomail.mail.results import Ok, Result

logger = logging.getLogger(__name__)


class InboxSource(Protocol):
    async def list_inbox(self, access_token: str, page_url: Optional[str] = None) -> Result[PaginatedResult]: ...


class InboxCache:
    """Accumulates inbox pages in server order up to a fixed capacity.

    ``refresh`` starts over from the first page; ``load_more`` follows the
    continuation cursor. Only one ``load_more`` runs at a time and extra
    calls made while it is outstanding are dropped, not queued. A result
    that arrives after a newer ``refresh`` started is ignored.
    """

    def __init__(self, source: InboxSource, capacity: int = 100):
        if capacity < 1:
            raise ValueError("Inbox capacity must be at least 1.")
        self._source = source
        self._capacity = capacity
        self._messages: list[Message] = []
        self._cursor: Optional[str] = None
        self._has_more = False
        self._loading = False
        self._generation = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def cursor(self) -> Optional[str]:
        return self._cursor

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def is_full(self) -> bool:
        return len(self._messages) >= self._capacity

    def __len__(self) -> int:
        return len(self._messages)

    async def refresh(self, access_token: str) -> Result[PaginatedResult]:
        """Drop everything and fetch the first page."""
        self._generation += 1
        self._messages.clear()
        self._cursor = None
        self._has_more = False
        logger.debug("Inbox cache reset")
        return await self._fetch(access_token, None)

    async def load_more(self, access_token: str) -> Optional[Result[PaginatedResult]]:
        """Fetch the next page.

        Returns:
            The fetch result, or None when nothing was requested because a load
            is in flight, there is no cursor, the server has no more pages, or
            the cache is full.
        """
        if self._loading or not self._has_more or self._cursor is None:
            return None
        if self.is_full:
            self._has_more = False
            return None
        return await self._fetch(access_token, self._cursor)

    async def _fetch(self, access_token: str, cursor: Optional[str]) -> Result[PaginatedResult]:
        generation = self._generation
        self._loading = True
        try:
            result = await self._source.list_inbox(access_token, cursor)
        finally:
            if generation == self._generation:
                self._loading = False

        if generation != self._generation:
            logger.debug("Discarding inbox page from a superseded fetch")
            return result

        if isinstance(result, Ok):
            self._append(result.value)
        else:
            logger.warning("Inbox fetch failed: %s", result)
        return result

    def _append(self, page: PaginatedResult) -> None:
        room = self._capacity - len(self._messages)
        accepted = page.messages[:room]
        if len(accepted) < len(page.messages):
            logger.debug(f"Inbox capacity {self._capacity} reached; dropping {len(page.messages) - len(accepted)} messages")
        self._messages.extend(accepted)
        self._cursor = page.next_page_url
        self._has_more = page.has_more and not self.is_full
        logger.debug(f"Inbox holds {len(self._messages)} messages (more available: {self._has_more})")
