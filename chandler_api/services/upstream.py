"""
HTTP client wrapper for the Chandler AI upstream.

Stateless apart from the caller's bearer token: one UpstreamClient is built
per inbound request on top of the shared pooled httpx client.

Calls (all POST, JSON, bearer-authenticated, under ``{domain}/api/``):
    - list_conversations   chat/chatHistory
    - conversation_info    chat/conversationInfo
    - rename_conversation  chat/updateConversation
    - chat_conversation    chat/Chat (streaming, returns a DeltaStream)
    - user_info            user/info

Failures are raised as TransportError, UpstreamStatusError or DecodeError
(see ``chandler_api.services.errors``), logged where they are detected.

Last Grunted: 10/19/2026 03:30:00 PM UTC
"""
from typing import Optional, Type, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from chandler_api.services.errors import DecodeError, TransportError, UpstreamStatusError
from chandler_api.services.stream_bridge import DeltaStream
from chandler_api.services.upstream_models import (
    ChatConversationRequest,
    ConversationInfoRequest,
    ConversationInfoResponse,
    ListConversationsRequest,
    ListConversationsResponse,
    RenameConversationRequest,
    UserInfoResponse,
)

logger = structlog.get_logger(__name__)

ResultT = TypeVar("ResultT", bound=BaseModel)

# Upstream API paths (relative to {domain}/api/)
PATH_CHAT_HISTORY = "chat/chatHistory"
PATH_CONVERSATION_INFO = "chat/conversationInfo"
PATH_UPDATE_CONVERSATION = "chat/updateConversation"
PATH_CHAT = "chat/Chat"
PATH_USER_INFO = "user/info"


class UpstreamClient:
    """
    Per-request view of the Chandler AI API.

    Args:
        client: Shared httpx.AsyncClient (connection pool)
        token: Caller's bearer token, forwarded as-is
        domain: Upstream base URL, e.g. ``https://api.chandler.bet``

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """

    def __init__(self, client: httpx.AsyncClient, token: str, domain: str):
        self._client = client
        self._token = token
        self.domain = domain.rstrip("/")

    def _url(self, path: str) -> str:
        return f"{self.domain}/api/{path}"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    async def _post(
        self,
        path: str,
        payload: Optional[BaseModel],
        result_model: Optional[Type[ResultT]],
    ) -> Optional[ResultT]:
        """
        POST a JSON payload and decode the JSON answer.

        Args:
            path: API path under ``/api/``
            payload: Request model, or None to send no body
            result_model: Model to decode the answer into, or None to ignore it

        Returns:
            Decoded result model, or None when result_model is None

        Raises:
            TransportError: Connection or timeout failure
            UpstreamStatusError: Non-200 answer
            DecodeError: Answer is not the expected JSON

        Last Grunted: 10/19/2026 03:30:00 PM UTC
        """
        body = payload.model_dump(by_alias=True) if payload is not None else None
        try:
            response = await self._client.post(self._url(path), json=body, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.error(
                "upstream.transport_error",
                path=path,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise TransportError(f"{path}: {exc}") from exc

        if response.status_code != 200:
            logger.error(
                "upstream.status_error",
                path=path,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise UpstreamStatusError(response.status_code, response.text)

        if result_model is None:
            return None

        try:
            return result_model.model_validate_json(response.content)
        except ValidationError as exc:
            logger.error("upstream.decode_error", path=path, error=str(exc))
            raise DecodeError(f"{path}: {exc}") from exc

    # ------------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------------

    async def list_conversations(self, request: ListConversationsRequest) -> ListConversationsResponse:
        """List the caller's conversations, filtered by model name."""
        return await self._post(PATH_CHAT_HISTORY, request, ListConversationsResponse)

    async def conversation_info(self, request: ConversationInfoRequest) -> ConversationInfoResponse:
        """Fetch the messages of one conversation, oldest first."""
        return await self._post(PATH_CONVERSATION_INFO, request, ConversationInfoResponse)

    async def rename_conversation(self, request: RenameConversationRequest) -> None:
        await self._post(PATH_UPDATE_CONVERSATION, request, None)

    # ------------------------------------------------------------------------
    # User
    # ------------------------------------------------------------------------

    async def user_info(self) -> UserInfoResponse:
        """Identity behind the bearer token."""
        return await self._post(PATH_USER_INFO, None, UserInfoResponse)

    # ------------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------------

    async def chat_conversation(self, request: ChatConversationRequest) -> DeltaStream:
        """
        Send one chat turn and start streaming its answer.

        The response body is never buffered: the returned DeltaStream reads
        it line by line in a background task and owns the connection.

        Args:
            request: Chat turn payload

        Returns:
            DeltaStream: Started stream of DeltaEvents; close it (``async with``)
            when done

        Raises:
            TransportError: Connection failed before the body started
            UpstreamStatusError: Non-200 answer (body read for diagnostics)

        Last Grunted: 10/19/2026 03:30:00 PM UTC
        """
        http_request = self._client.build_request(
            "POST",
            self._url(PATH_CHAT),
            json=request.model_dump(by_alias=True),
            headers={**self._headers(), "Accept": "*/*"},
        )
        try:
            response = await self._client.send(http_request, stream=True)
        except httpx.HTTPError as exc:
            logger.error(
                "upstream.chat.transport_error",
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise TransportError(f"{PATH_CHAT}: {exc}") from exc

        if response.status_code != 200:
            try:
                body = (await response.aread()).decode("utf-8", errors="replace")
            except httpx.HTTPError as exc:
                body = f"<unreadable body: {exc}>"
            finally:
                await response.aclose()
            logger.error(
                "upstream.chat.status_error",
                status_code=response.status_code,
                body=body[:500],
            )
            raise UpstreamStatusError(response.status_code, body)

        logger.debug(
            "upstream.chat.stream_open",
            model=request.model_name,
            conversation_id=request.conversation_id or None,
        )
        return DeltaStream(response).start()
