"""Result values returned by mailbox operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """The call succeeded."""

    value: T


@dataclass(frozen=True)
class Unauthorized:
    """The API rejected the access token (HTTP 401)."""

    message: str = "Unauthorized"


@dataclass(frozen=True)
class ApiError:
    """The API answered with a non-2xx status other than 401."""

    status: int
    message: str


@dataclass(frozen=True)
class NetworkError:
    """The request never got an HTTP answer (DNS, connect, timeout, reset)."""

    message: str


MailError = Union[Unauthorized, ApiError, NetworkError]
Result = Union[Ok[T], Unauthorized, ApiError, NetworkError]


def describe(result: MailError) -> str:
    """Return a one-line description of an error result for display."""
    if isinstance(result, Unauthorized):
        return "Session expired. Please sign in again."
    if isinstance(result, ApiError):
        return f"API error ({result.status}): {result.message}"
    return f"Network error: {result.message}"
