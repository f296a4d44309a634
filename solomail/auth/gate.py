"""Single-account identity gate around azure-identity's device code flow."""

import asyncio
import logging
from typing import Any, Callable, Iterable, Optional

from azure.core.credentials import AccessToken
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import (
    AuthenticationRecord,
    AuthenticationRequiredError,
    AzureAuthorityHosts,
    DeviceCodeCredential,
    TokenCachePersistenceOptions,
)

from solomail.auth.outcomes import (
    AccountIdentity,
    AuthCancelled,
    AuthError,
    AuthOutcome,
    AuthSuccess,
    UnauthorizedAccount,
)
from solomail.auth.record_store import AuthRecordError, AuthRecordStore
from solomail.config.settings import Settings

logger = logging.getLogger(__name__)

# MSAL adds these itself and rejects them when passed explicitly.
RESERVED_SCOPES = frozenset({"offline_access", "openid", "profile"})

# Device flow errors that mean the user declined or walked away: OAuth error
# codes, AADSTS65004 (user declined consent), AADSTS70020 (device code expired)
# and azure-identity's own timeout message.
CANCELLATION_MARKERS = (
    "authorization_declined",
    "access_denied",
    "expired_token",
    "aadsts65004",
    "aadsts70020",
    "timed out waiting for user to authenticate",
)

PromptCallback = Callable[[str, str, Any], None]


class IdentityGate:
    """Keeps exactly one allowed Microsoft account signed in.

    The gate owns the OAuth client and the active account. Every operation
    catches provider exceptions and returns an outcome value instead; callers
    never see azure-identity errors. An account whose address differs from the
    allowed one (compared case-insensitively) is signed out as soon as it is
    seen, whether it came from a previous session or from a fresh sign-in.

    Attributes:
        client_id: Azure AD application (client) ID
        allowed_account: The only address permitted to stay signed in
        tenant: Tenant used for interactive sign-in
        authority: Authority host used when no account provides one
        scopes: Delegated Graph scopes requested for every token
        record_store: Storage for the signed-in account's AuthenticationRecord
    """

    def __init__(
        self,
        client_id: str,
        allowed_account: str,
        record_store: AuthRecordStore,
        tenant: str = "consumers",
        authority: str = AzureAuthorityHosts.AZURE_PUBLIC_CLOUD,
        scopes: Optional[list[str]] = None,
        cache_name: str = "solomail_msal_cache",
    ):
        self.client_id = client_id
        self.allowed_account = allowed_account.strip().lower()
        self.record_store = record_store
        self.tenant = tenant
        self.authority = authority
        self.scopes = scopes or [
            "https://graph.microsoft.com/User.Read",
            "https://graph.microsoft.com/Mail.Read",
            "https://graph.microsoft.com/Mail.Send",
            "offline_access",
        ]
        self.cache_name = cache_name
        self._credential: Optional[DeviceCodeCredential] = None
        self._account: Optional[AccountIdentity] = None

        logger.debug(
            f"Initialized IdentityGate with client_id={client_id}, tenant={tenant}, "
            f"allowed_account={self.allowed_account}, scopes={self.scopes}"
        )

    @classmethod
    def from_settings(cls, settings: Settings, record_store: Optional[AuthRecordStore] = None) -> "IdentityGate":
        """Create a gate from application settings."""
        return cls(
            client_id=settings.azure.client_id,
            allowed_account=settings.mail.allowed_account,
            record_store=record_store or AuthRecordStore(settings.storage.auth_record_file),
            tenant=settings.azure.tenant,
            authority=settings.azure.authority,
            scopes=settings.azure.scopes,
            cache_name=settings.storage.token_cache_name,
        )

    @property
    def is_initialized(self) -> bool:
        return self._credential is not None

    @property
    def is_signed_in(self) -> bool:
        return self._account is not None

    @property
    def current_account(self) -> Optional[AccountIdentity]:
        return self._account

    @property
    def current_username(self) -> Optional[str]:
        return self._account.username if self._account else None

    def is_allowed(self, username: Optional[str]) -> bool:
        """Check an address against the allowed account, ignoring case."""
        if not username or not self.allowed_account:
            return False
        return username.strip().lower() == self.allowed_account

    async def initialize(self) -> tuple[bool, Optional[str]]:
        """Create the OAuth client and load the account from the previous session.

        A cached account other than the allowed one is signed out and the
        result is still a success, just without an active account. Calling
        this again keeps the active account.

        Returns:
            (True, None) on success, (False, message) otherwise
        """
        if not self.allowed_account:
            return False, "No allowed account configured. Set mail.allowed_account in the configuration."

        try:
            if self._account is not None:
                self._replace_credential(self._create_credential(self._account.record))
                logger.debug("Identity client rebuilt for %s", self._account.username)
                return True, None

            self._replace_credential(self._create_credential())
            logger.debug("Identity client created")

            record = await self.record_store.load()
            if record is None:
                logger.debug("No cached account")
                return True, None

            if not self.is_allowed(record.username):
                logger.warning(f"Cached account {record.username} is not allowed; signing out")
                return await self.sign_out()

            self._activate(record)
            logger.info(f"Cached account loaded: {record.username}")
            return True, None

        except Exception as e:
            logger.error(f"Failed to initialize identity client: {e}")
            return False, f"Identity client init error: {e}"

    async def sign_in_interactive(self, prompt_callback: Optional[PromptCallback] = None) -> AuthOutcome:
        """Run the device code flow and accept the result only for the allowed account.

        Args:
            prompt_callback: Called with (verification_uri, user_code, expires_on)
                so the front end can show the device code

        Returns:
            AuthSuccess, UnauthorizedAccount, AuthCancelled or AuthError
        """
        if self._credential is None:
            return AuthError("Identity client not initialized")

        try:
            credential = self._create_credential(prompt_callback=prompt_callback)
            record, token = await asyncio.to_thread(self._run_device_flow, credential)
        except Exception as e:
            if _is_cancellation(e):
                logger.info("Sign-in cancelled")
                return AuthCancelled()
            logger.error(f"Sign-in error: {e}")
            return AuthError(f"Sign-in error: {e}")

        if not self.is_allowed(record.username):
            logger.warning(f"Rejected sign-in for {record.username}; only {self.allowed_account} is allowed")
            await self.sign_out()
            return UnauthorizedAccount(f"Only {self.allowed_account} is allowed to sign in")

        try:
            await self.record_store.save(record)
        except AuthRecordError as e:
            logger.warning(f"Signed in, but the session will not survive a restart: {e}")

        account = self._activate(record)
        logger.info(f"Signed in as {account.username}")
        return AuthSuccess(access_token=token.token, expires_on=token.expires_on, account=account)

    async def acquire_token_silent(self) -> AuthOutcome:
        """Get a token for the active account without user interaction.

        Never falls back to interactive sign-in; that decision belongs to the caller.

        Returns:
            AuthSuccess or AuthError
        """
        if self._credential is None:
            return AuthError("Identity client not initialized")

        account = self._account
        if account is None:
            return AuthError("No account signed in")

        credential = self._credential
        try:
            token: AccessToken = await asyncio.to_thread(credential.get_token, *self._request_scopes())
        except AuthenticationRequiredError:
            logger.warning("Silent token acquisition needs user interaction")
            return AuthError("Token error: interactive sign-in required")
        except Exception as e:
            logger.error(f"Silent token acquisition failed: {e}")
            return AuthError(f"Token error: {e}")

        logger.debug("Silent token acquisition successful")
        return AuthSuccess(access_token=token.token, expires_on=token.expires_on, account=account)

    async def sign_out(self) -> tuple[bool, Optional[str]]:
        """Forget the active account and its saved record.

        Returns:
            (True, None) on success, (False, message) otherwise
        """
        if self._credential is None:
            return False, "Identity client not initialized"

        previous = self._account
        self._account = None
        try:
            await self.record_store.clear()
            self._replace_credential(self._create_credential())
        except Exception as e:
            logger.error(f"Sign-out error: {e}")
            return False, f"Sign-out error: {e}"

        if previous is not None:
            logger.info(f"Signed out {previous.username}")
        return True, None

    def _activate(self, record: AuthenticationRecord) -> AccountIdentity:
        self._account = AccountIdentity.from_record(record)
        self._replace_credential(self._create_credential(record))
        return self._account

    def _replace_credential(self, credential: DeviceCodeCredential) -> None:
        if self._credential is not None and self._credential is not credential:
            self._credential.close()
        self._credential = credential

    def _create_credential(
        self,
        record: Optional[AuthenticationRecord] = None,
        prompt_callback: Optional[PromptCallback] = None,
    ) -> DeviceCodeCredential:
        """Build a DeviceCodeCredential backed by the persistent MSAL cache.

        With a record the credential is bound to that account, uses the
        authority the account signed in with, and only acquires tokens
        silently.
        """
        if not self.client_id:
            raise ValueError(
                "Azure client_id not configured. Please set it in config/config.yaml "
                "or via AZURE_CLIENT_ID environment variable."
            )

        kwargs: dict[str, Any] = {
            "client_id": self.client_id,
            "cache_persistence_options": TokenCachePersistenceOptions(
                name=self.cache_name,
                allow_unencrypted_storage=True,
            ),
        }
        if record is not None:
            kwargs["tenant_id"] = record.tenant_id
            kwargs["authentication_record"] = record
            kwargs["disable_automatic_authentication"] = True
        else:
            kwargs["tenant_id"] = self.tenant
            kwargs["authority"] = self.authority
        if prompt_callback is not None:
            kwargs["prompt_callback"] = prompt_callback

        return DeviceCodeCredential(**kwargs)

    def _run_device_flow(self, credential: DeviceCodeCredential) -> tuple[AuthenticationRecord, AccessToken]:
        scopes = self._request_scopes()
        try:
            record = credential.authenticate(scopes=scopes)
            token = credential.get_token(*scopes)
        finally:
            credential.close()
        return record, token

    def _request_scopes(self) -> list[str]:
        return _filter_scopes(self.scopes)


def _filter_scopes(scopes: Iterable[str]) -> list[str]:
    return [scope for scope in scopes if scope.lower() not in RESERVED_SCOPES]


def _is_cancellation(exc: Exception) -> bool:
    if not isinstance(exc, ClientAuthenticationError):
        return False
    text = str(exc).lower()
    return any(marker in text for marker in CANCELLATION_MARKERS)
