"""Microsoft Graph mail gateway."""

from __future__ import annotations

import logging
from contextvars import ContextVar
from importlib import import_module
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
from kiota_abstractions.api_error import APIError
from kiota_authentication_azure.azure_identity_authentication_provider import AzureIdentityAuthenticationProvider
from kiota_http.middleware.options import RetryHandlerOption
from msgraph import GraphServiceClient
from msgraph_core import GraphClientFactory
from msgraph.generated.models.body_type import BodyType
from msgraph.generated.models.email_address import EmailAddress as GraphEmailAddress
from msgraph.generated.models.item_body import ItemBody
from msgraph.generated.models.message import Message as GraphMessage
from msgraph.generated.models.recipient import Recipient
from msgraph.generated.users.item.send_mail.send_mail_post_request_body import SendMailPostRequestBody
from msgraph.graph_request_adapter import GraphRequestAdapter

from solomail.auth.credentials import BearerTokenCredential
from solomail.config.settings import MailSettings
from solomail.mail.models import Message, PaginatedResult
from solomail.mail.results import ApiError, NetworkError, Ok, Result, Unauthorized

logger = logging.getLogger(__name__)

T = TypeVar("T")

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
INBOX_FOLDER = "inbox"
LIST_FIELDS = ["id", "subject", "from", "receivedDateTime", "bodyPreview"]
MESSAGE_FIELDS = ["id", "subject", "from", "receivedDateTime", "body", "bodyPreview"]

# Body of the last failed response in the current task, for errors kiota cannot parse.
_error_body: ContextVar[Optional[str]] = ContextVar("solomail_error_body", default=None)


class MailGateway:
    """Reads and sends mail through Microsoft Graph with a caller-supplied token.

    Each call takes the bearer token to use and returns a result value:
    ``Ok`` on success, ``Unauthorized`` for HTTP 401, ``ApiError`` for any other
    non-2xx answer and ``NetworkError`` when no answer arrived. Nothing is
    retried here; the Graph middleware pipeline runs with retries disabled.
    """

    def __init__(
        self,
        base_url: str = GRAPH_BASE_URL,
        page_size: int = 25,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self._graph_client: Optional[GraphServiceClient] = None
        self._http_client: Optional[httpx.AsyncClient] = None
        self._client_token: Optional[str] = None

    @classmethod
    def from_settings(cls, mail_settings: MailSettings) -> "MailGateway":
        """Create a gateway from mail settings."""
        return cls(
            base_url=mail_settings.base_url,
            page_size=mail_settings.page_size,
            timeout_seconds=mail_settings.timeout_seconds,
        )

    async def list_inbox(self, access_token: str, page_url: Optional[str] = None) -> Result[PaginatedResult]:
        """Fetch one page of the inbox, newest first.

        Args:
            access_token: Bearer token for the signed-in account
            page_url: Continuation link from a previous page, requested verbatim;
                None for the first page
        """
        return await self._execute("list inbox", access_token, lambda client: self._list_inbox(client, page_url))

    async def get_message(self, access_token: str, message_id: str) -> Result[Message]:
        """Fetch one message including its full body."""
        return await self._execute("get message", access_token, lambda client: self._get_message(client, message_id))

    async def send_mail(self, access_token: str, to: str, subject: str, body: str) -> Result[None]:
        """Send a plain-text message to a single recipient and save it to Sent Items.

        Graph answers 202 Accepted; any 2xx is success.
        """
        return await self._execute("send mail", access_token, lambda client: self._send_mail(client, to, subject, body))

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._retire_client()

    async def _execute(
        self,
        action: str,
        access_token: str,
        operation: Callable[[GraphServiceClient], Awaitable[T]],
    ) -> Result[T]:
        if not access_token:
            return Unauthorized("Missing access token")

        _error_body.set(None)
        try:
            client = await self._client_for(access_token)
            value = await operation(client)
        except APIError as e:
            status = e.response_status_code or 0
            if status == 401:
                logger.warning(f"Unauthorized during {action} - token may be expired")
                return Unauthorized()
            message = _api_error_message(e, status)
            logger.error(f"Error during {action}: {status} - {message}")
            return ApiError(status=status, message=message)
        except httpx.RequestError as e:
            logger.error(f"Network error during {action}: {e!r}")
            return NetworkError(str(e) or type(e).__name__)
        except Exception as e:
            logger.exception("Unexpected error during %s", action)
            return ApiError(status=0, message=f"Error: {e}")

        return Ok(value)

    async def _list_inbox(self, client: GraphServiceClient, page_url: Optional[str]) -> PaginatedResult:
        messages_request = client.me.mail_folders.by_mail_folder_id(INBOX_FOLDER).messages

        if page_url:
            logger.debug("Fetching next inbox page")
            response = await messages_request.with_url(page_url).get()
        else:
            logger.debug("Fetching first inbox page")
            request_configuration = self._build_list_request_config()
            if request_configuration is not None:
                response = await messages_request.get(request_configuration=request_configuration)
            else:
                response = await messages_request.get()

        messages: list[Message] = []
        for item in self._extract_collection(response):
            try:
                messages.append(Message.from_graph_message(item))
            except ValueError as exc:
                logger.warning("Skipping message due to mapping error: %s", exc)

        next_link = getattr(response, "odata_next_link", None) if response is not None else None
        logger.debug(f"Fetched {len(messages)} messages (more available: {next_link is not None})")
        return PaginatedResult(messages=messages, next_page_url=next_link)

    async def _get_message(self, client: GraphServiceClient, message_id: str) -> Message:
        message_request = client.me.messages.by_message_id(message_id)
        request_configuration = self._build_message_request_config()

        logger.debug(f"Fetching message: {message_id}")
        if request_configuration is not None:
            response = await message_request.get(request_configuration=request_configuration)
        else:
            response = await message_request.get()

        if response is None:
            raise ValueError(f"Empty response for message {message_id}")
        return Message.from_graph_message(response)

    async def _send_mail(self, client: GraphServiceClient, to: str, subject: str, body: str) -> None:
        request_body = SendMailPostRequestBody(
            message=GraphMessage(
                subject=subject,
                body=ItemBody(content_type=BodyType.Text, content=body),
                to_recipients=[Recipient(email_address=GraphEmailAddress(address=to))],
            ),
            save_to_sent_items=True,
        )
        logger.debug(f"Sending mail to: {to}")
        await client.me.send_mail.post(request_body)
        logger.info("Email sent successfully")

    async def _client_for(self, access_token: str) -> GraphServiceClient:
        """Return a Graph client presenting this token, replacing the previous one if needed."""
        if self._graph_client is not None and self._client_token == access_token:
            return self._graph_client

        await self._retire_client()

        auth_provider = AzureIdentityAuthenticationProvider(
            BearerTokenCredential(access_token),
            scopes=["https://graph.microsoft.com/.default"],
        )
        http_client = GraphClientFactory.create_with_default_middleware(
            client=httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self.transport,
                event_hooks={"response": [_remember_error_body]},
            ),
            options={RetryHandlerOption.get_key(): RetryHandlerOption(max_retries=0, should_retry=False)},
        )
        request_adapter = GraphRequestAdapter(auth_provider, client=http_client)
        request_adapter.base_url = self.base_url

        self._http_client = http_client
        self._graph_client = GraphServiceClient(request_adapter=request_adapter)
        self._client_token = access_token
        return self._graph_client

    async def _retire_client(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
        self._http_client = None
        self._graph_client = None
        self._client_token = None

    def _build_list_request_config(self) -> Optional[Any]:
        builder = self._import_builder(
            ["msgraph.generated.users.item.mail_folders.item.messages.messages_request_builder"],
            "MessagesRequestBuilder",
        )
        if not builder:
            return None

        query_params = builder.MessagesRequestBuilderGetQueryParameters(
            top=self.page_size,
            select=LIST_FIELDS,
            orderby=["receivedDateTime desc"],
        )
        return builder.MessagesRequestBuilderGetRequestConfiguration(query_parameters=query_params)

    def _build_message_request_config(self) -> Optional[Any]:
        builder = self._import_builder(
            ["msgraph.generated.users.item.messages.item.message_item_request_builder"],
            "MessageItemRequestBuilder",
        )
        if not builder:
            return None

        query_params = builder.MessageItemRequestBuilderGetQueryParameters(select=MESSAGE_FIELDS)
        return builder.MessageItemRequestBuilderGetRequestConfiguration(query_parameters=query_params)

    @staticmethod
    def _import_builder(module_paths: list[str], class_name: str) -> Optional[Any]:
        for module_path in module_paths:
            try:
                module = import_module(module_path)
                return getattr(module, class_name)
            except (ModuleNotFoundError, AttributeError):
                continue
        return None

    @staticmethod
    def _extract_collection(response: Any) -> list[Any]:
        if response is None:
            return []
        if isinstance(response, list):
            return response
        value = getattr(response, "value", None)
        if value is None:
            return []
        return list(value)


async def _remember_error_body(response: httpx.Response) -> None:
    if response.is_error:
        await response.aread()
        _error_body.set(response.text.strip() or None)


def _api_error_message(error: APIError, status: int) -> str:
    """Pull the server's message out of an OData error, else the raw error body."""
    main_error = getattr(error, "error", None)
    message = getattr(main_error, "message", None) or _error_body.get() or getattr(error, "message", None)
    if message:
        return str(message)
    return f"HTTP {status}"
