"""Token credential that hands an already-acquired access token to the Graph SDK."""

import logging
import time
from typing import Any, Optional

from azure.core.credentials import AccessToken, TokenCredential

logger = logging.getLogger(__name__)

# Graph access tokens live about an hour; the real expiry is tracked by the identity provider.
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600


class BearerTokenCredential(TokenCredential):
    """A TokenCredential that always returns one fixed bearer token.

    The mail gateway receives a token per call from the identity gate and must
    not trigger any token acquisition of its own, so this credential never
    refreshes. When the token is rejected the Graph API answers 401 and the
    caller decides whether to refresh.
    """

    def __init__(self, access_token: str, expires_on: Optional[int] = None):
        """Initialize the BearerTokenCredential.

        Args:
            access_token: OAuth access token to present
            expires_on: Expiry as a Unix timestamp, if known
        """
        if not access_token:
            raise ValueError("Access token cannot be empty.")
        self._access_token = access_token
        self._expires_on = expires_on or int(time.time()) + DEFAULT_TOKEN_LIFETIME_SECONDS

    @property
    def access_token(self) -> str:
        """The wrapped token."""
        return self._access_token

    def get_token(
        self,
        *scopes: str,
        claims: Optional[str] = None,
        tenant_id: Optional[str] = None,
        enable_cae: bool = False,
        **kwargs: Any,
    ) -> AccessToken:
        """Return the wrapped token regardless of the requested scopes."""
        if claims:
            logger.debug("Ignoring claims challenge; token refresh belongs to the identity gate")
        return AccessToken(self._access_token, self._expires_on)

    def close(self) -> None:
        """Nothing to release."""
