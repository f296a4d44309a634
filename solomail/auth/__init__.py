"""Authentication module for the single allowed Microsoft account."""

from solomail.auth.credentials import BearerTokenCredential
from solomail.auth.gate import IdentityGate
from solomail.auth.outcomes import (
    AccountIdentity,
    AuthCancelled,
    AuthError,
    AuthOutcome,
    AuthSuccess,
    UnauthorizedAccount,
)
from solomail.auth.record_store import AuthRecordError, AuthRecordStore

__all__ = [
    "IdentityGate",
    "AccountIdentity",
    "AuthOutcome",
    "AuthSuccess",
    "AuthError",
    "AuthCancelled",
    "UnauthorizedAccount",
    "AuthRecordStore",
    "AuthRecordError",
    "BearerTokenCredential",
]
