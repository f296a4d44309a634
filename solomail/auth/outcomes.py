"""Outcome values returned by identity operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from azure.identity import AuthenticationRecord


@dataclass(frozen=True)
class AccountIdentity:
    """The signed-in account as reported by the identity provider."""

    username: str
    authority: str
    tenant_id: str
    home_account_id: str
    record: Optional[AuthenticationRecord] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_record(cls, record: AuthenticationRecord) -> "AccountIdentity":
        """Create an identity from an azure-identity AuthenticationRecord."""
        return cls(
            username=record.username,
            authority=record.authority,
            tenant_id=record.tenant_id,
            home_account_id=record.home_account_id,
            record=record,
        )


@dataclass(frozen=True)
class AuthSuccess:
    """A token was acquired for the allowed account."""

    access_token: str = field(repr=False)
    expires_on: int
    account: AccountIdentity


@dataclass(frozen=True)
class AuthError:
    """Token acquisition failed; the message is suitable for display."""

    message: str


@dataclass(frozen=True)
class AuthCancelled:
    """The user abandoned an interactive sign-in."""


@dataclass(frozen=True)
class UnauthorizedAccount:
    """Sign-in succeeded for an account other than the allowed one."""

    message: str


AuthOutcome = Union[AuthSuccess, AuthError, AuthCancelled, UnauthorizedAccount]
