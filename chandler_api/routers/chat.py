"""
OpenAI-compatible Chat Completions API router.

Implements POST /v1/chat/completions on top of the Chandler AI upstream:
    1. Resolve the conversation to continue and the caller's identity
       (concurrently, fail-fast)
    2. Fold the OpenAI messages into one upstream prompt
    3. Send the chat turn and bridge its ``data:{...}`` stream into deltas
    4. Answer with one ``chat.completion`` document or an SSE chunk stream

Every upstream failure is logged where it happens and answered with the
generic OpenAI ``internal_error`` body. A failure after streaming has begun
cuts the stream without ``data: [DONE]``.

Streaming SSE Protocol:
    data: {"id": "<message_id>", "object": "chat.completion.chunk", ..., "choices": [{"delta": {"role": "assistant", "content": "Hi"}}]}
    data: {..., "choices": [{"delta": {}, "finish_reason": "stop"}]}

    data: [DONE]

Last Grunted: 10/19/2026 03:30:00 PM UTC
"""
import time
from typing import AsyncIterator, Optional

import httpx
import structlog
from fastapi import APIRouter, Depends, Header
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from chandler_api.config import ServiceSettings, get_settings
from chandler_api.schemas import ChatCompletionRequest
from chandler_api.services.emitter import collect_completion, stream_chunks
from chandler_api.services.errors import ResolutionError, StreamAbortedError, UpstreamError, internal_error
from chandler_api.services.http_client import get_client
from chandler_api.services.prompt import build_prompt
from chandler_api.services.resolver import ConversationContext, ConversationResolver, UserIdentity
from chandler_api.services.stream_bridge import DeltaStream
from chandler_api.services.upstream import UpstreamClient
from chandler_api.services.upstream_models import ChatConversationRequest

logger = structlog.get_logger(__name__)

router = APIRouter()


def bearer_token(authorization: Optional[str]) -> str:
    """Token part of an ``Authorization: Bearer <token>`` header, forwarded unchecked."""
    return (authorization or "").removeprefix("Bearer ")


def build_chat_turn(
    context: ConversationContext,
    identity: UserIdentity,
    prompt: str,
    model: str,
    settings: ServiceSettings,
) -> ChatConversationRequest:
    """
    Assemble the upstream chat-turn payload.

    Args:
        context: Resolved conversation (empty for a new one)
        identity: Resolved caller, sent as ``uid``
        prompt: Folded prompt string
        model: Requested model name
        settings: Supplies web_url and the forwarded timeout/retry knobs

    Returns:
        ChatConversationRequest ready to send
    """
    return ChatConversationRequest(
        app_name=context.app_name,
        conversation_id=context.conversation_id,
        parent_message_id=context.parent_message_id,
        model_name=model,
        prompt=prompt,
        uid=identity.email,
        web_url=settings.get_web_url(),
        global_timeout=settings.chat_global_timeout,
        request_timeout=settings.chat_request_timeout,
        max_retries=settings.chat_max_retries,
        timestamp=int(time.time() * 1000),
    )


async def _sse_body(events: DeltaStream, model: str) -> AsyncIterator[str]:
    async with events:
        try:
            async for frame in stream_chunks(events, model):
                yield frame
        except StreamAbortedError:
            logger.warning("chat.streaming.aborted", model=model)
            raise
    logger.info("chat.streaming.complete", model=model)


@router.post("/v1/chat/completions")
async def create_chat_completion(
    request: ChatCompletionRequest,
    authorization: Optional[str] = Header(default=None),
    client: httpx.AsyncClient = Depends(get_client),
    settings: ServiceSettings = Depends(get_settings),
):
    """
    Create a chat completion (OpenAI-compatible).

    Args:
        request: ChatCompletionRequest with model, messages and stream flag
        authorization: Caller's ``Bearer`` token, forwarded upstream
        client: Shared HTTP client (injected)
        settings: Service settings (injected)

    Returns:
        ChatCompletionResponse (non-streaming), StreamingResponse
        (``text/event-stream``) or a 500 OpenAI error

    Example Response (non-streaming):
        {
            "id": "<message_id>",
            "object": "chat.completion",
            "created": 1677858242,
            "model": "gpt-3.5",
            "choices": [{
                "index": 0,
                "message": {"role": "assistant", "content": "Hi there"},
                "finish_reason": "stop"
            }],
            "usage": {"prompt_tokens": 0, "completion_tokens": 2, "total_tokens": 2}
        }

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    upstream = UpstreamClient(client, token=bearer_token(authorization), domain=settings.upstream_domain)
    resolver = ConversationResolver(
        upstream,
        web_url=settings.get_web_url(),
        page_size=settings.conversation_page_size,
        selection=settings.conversation_selection,
    )

    try:
        context, identity = await resolver.resolve(request.model, deadline=settings.resolve_timeout)
    except ResolutionError:
        return internal_error()

    prompt = build_prompt(request.messages)

    logger.info(
        "chat.completion.start",
        model=request.model,
        stream=bool(request.stream),
        turns=len(request.messages),
        new_conversation=context.is_new,
        conversation_id=context.conversation_id or None,
    )

    try:
        events = await upstream.chat_conversation(
            build_chat_turn(context, identity, prompt, request.model, settings)
        )
    except UpstreamError as exc:
        logger.error(
            "chat.completion.upstream_error",
            model=request.model,
            error_type=type(exc).__name__,
        )
        return internal_error()

    if request.stream:
        return StreamingResponse(
            _sse_body(events, request.model),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no"
            },
            # Releases the upstream stream if the body is never iterated.
            background=BackgroundTask(events.aclose),
        )

    try:
        async with events:
            completion = await collect_completion(events, request.model)
    except StreamAbortedError:
        return internal_error()

    logger.info(
        "chat.completion.success",
        model=request.model,
        completion_id=completion.id,
        completion_tokens=completion.usage.completion_tokens,
    )
    return completion
