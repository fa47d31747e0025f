"""
Response emitter: DeltaEvents in, OpenAI documents out.

Buffered mode (``stream=false``):
    Drain every event, join append texts in arrival order, count append
    events as the completion token figure, and return one
    ``chat.completion`` document. An error event aborts with
    StreamAbortedError; nothing partial is returned.

Streaming mode (``stream=true``):
    One ``data: {chunk}\\n`` frame per append event, then a finish chunk
    ``data: {chunk}\\n\\n`` carrying ``finish_reason="stop"`` and finally
    ``data: [DONE]\\n\\n``. An error event raises StreamAbortedError out of
    the generator, which cuts the HTTP stream without ``[DONE]``.

Unknown delta kinds are logged and skipped.

Last Grunted: 10/19/2026 03:30:00 PM UTC
"""
import time
from typing import AsyncIterable, AsyncIterator

import structlog

from chandler_api.schemas import (
    ChatCompletionChoice,
    ChatCompletionChunk,
    ChatCompletionChunkChoice,
    ChatCompletionChunkDelta,
    ChatCompletionResponse,
    ChatMessage,
    UsageInfo,
)
from chandler_api.services.errors import StreamAbortedError
from chandler_api.services.stream_bridge import DeltaEvent, DeltaKind

logger = structlog.get_logger(__name__)

SSE_DONE = "data: [DONE]\n\n"


def _abort(event: DeltaEvent, model: str, mode: str) -> StreamAbortedError:
    logger.error(
        "emitter.stream_aborted",
        mode=mode,
        model=model,
        message_id=event.message_id or None,
        error=str(event.error),
    )
    return StreamAbortedError(f"upstream stream failed: {event.error}")


async def collect_completion(events: AsyncIterable[DeltaEvent], model: str) -> ChatCompletionResponse:
    """
    Buffer a whole delta stream into one completion document.

    Args:
        events: DeltaEvents from the stream bridge
        model: Requested model name, echoed back

    Returns:
        ChatCompletionResponse with the joined reply and append-count usage

    Raises:
        StreamAbortedError: The stream produced an error event

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    reply: list[str] = []
    message_id = ""
    token_count = 0

    async for event in events:
        if event.kind == DeltaKind.APPEND:
            token_count += 1
            reply.append(event.text)
            message_id = event.message_id
        elif event.kind == DeltaKind.ERROR:
            raise _abort(event, model, "buffered") from event.error
        elif event.kind == DeltaKind.END:
            break
        else:
            logger.warning("emitter.unknown_delta_kind", kind=event.wire_kind, mode="buffered")

    return ChatCompletionResponse(
        id=message_id,
        object="chat.completion",
        created=int(time.time()),
        model=model,
        choices=[ChatCompletionChoice(
            index=0,
            message=ChatMessage(role="assistant", content="".join(reply)),
            finish_reason="stop"
        )],
        usage=UsageInfo(
            prompt_tokens=0,
            completion_tokens=token_count,
            total_tokens=token_count
        ),
    )


def _chunk(message_id: str, model: str, created: int, delta: ChatCompletionChunkDelta, finish_reason=None) -> str:
    chunk = ChatCompletionChunk(
        id=message_id,
        object="chat.completion.chunk",
        created=created,
        model=model,
        choices=[ChatCompletionChunkChoice(
            index=0,
            delta=delta,
            finish_reason=finish_reason
        )]
    )
    return chunk.model_dump_json(exclude_none=True)


async def stream_chunks(events: AsyncIterable[DeltaEvent], model: str) -> AsyncIterator[str]:
    """
    Translate a delta stream into SSE frames as they arrive.

    Args:
        events: DeltaEvents from the stream bridge
        model: Requested model name, echoed back

    Yields:
        str: SSE frames, one per append event, then the finish chunk and
        the ``[DONE]`` sentinel

    Raises:
        StreamAbortedError: The stream produced an error event

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    created = int(time.time())
    message_id = ""

    async for event in events:
        if event.kind == DeltaKind.APPEND:
            message_id = event.message_id
            delta = ChatCompletionChunkDelta(role="assistant", content=event.text)
            yield f"data: {_chunk(message_id, model, created, delta)}\n"
        elif event.kind == DeltaKind.ERROR:
            raise _abort(event, model, "streaming") from event.error
        elif event.kind == DeltaKind.END:
            break
        else:
            logger.warning("emitter.unknown_delta_kind", kind=event.wire_kind, mode="streaming")

    yield f"data: {_chunk(message_id, model, created, ChatCompletionChunkDelta(), 'stop')}\n\n"
    yield SSE_DONE
