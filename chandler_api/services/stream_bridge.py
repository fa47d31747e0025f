"""
Stream bridge for the Chandler AI chat stream.

The chat endpoint answers with an unbounded line-oriented body. Content lines
look like ``data:{...}`` (no space after the colon, so this is not SSE and is
parsed by hand). Everything else is keep-alive noise.

Per line:
    1. strip whitespace
    2. skip unless it starts with ``data:{``
    3. decode the JSON after ``data:`` into a StreamFrame
    4. skip frames whose ``delta_list`` is empty (heartbeats)
    5. hand the frame on as a DeltaEvent

End of body yields one END event; any read or decode failure yields one
ERROR event. Either is the last event of the stream. Upstream kinds other
than ``append`` and ``error`` become UNKNOWN events and never end it.

DeltaStream runs the read loop as a producer task feeding a single-slot
asyncio.Queue, so upstream bytes keep draining while the consumer works and a
slow consumer throttles reads without busy-waiting.

Last Grunted: 10/19/2026 03:30:00 PM UTC
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx
import structlog
from pydantic import ValidationError

from chandler_api.services.errors import DecodeError, StreamAbortedError, UpstreamError
from chandler_api.services.upstream_models import StreamFrame

logger = structlog.get_logger(__name__)

# Upstream ``delta_type`` values with a meaning here
WIRE_APPEND = "append"
WIRE_ERROR = "error"

STREAM_DATA_PREFIX = "data:"
STREAM_LINE_PREFIX = STREAM_DATA_PREFIX + "{"


class DeltaKind(Enum):
    """
    Kind of a DeltaEvent.

    END is produced only by the bridge itself at end of body, so no upstream
    ``delta_type`` can terminate the stream except ``error``.
    """
    APPEND = "append"
    ERROR = "error"
    END = "end"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DeltaEvent:
    """
    One event handed from the stream bridge to the response emitter.

    Attributes:
        kind: DeltaKind of the event
        text: Delta text (append events)
        message_id: Upstream message id the delta belongs to
        error: Failure carried by an ERROR event
        wire_kind: Upstream ``delta_type`` as received (UNKNOWN events)

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    kind: DeltaKind
    text: str = ""
    message_id: str = ""
    error: Optional[UpstreamError] = None
    wire_kind: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.kind in (DeltaKind.END, DeltaKind.ERROR)


# ============================================================================
# Line Parsing
# ============================================================================

def parse_stream_line(line: str) -> Optional[StreamFrame]:
    """
    Decode one line of the chat stream.

    Args:
        line: Raw line, with or without its trailing newline

    Returns:
        StreamFrame for content lines, None for lines to skip (blank,
        non-``data:{`` lines, empty ``delta_list`` heartbeats)

    Raises:
        DecodeError: The line passed the prefix filter but is not a valid frame

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    data = line.strip()
    if not data or not data.startswith(STREAM_LINE_PREFIX):
        return None

    try:
        frame = StreamFrame.model_validate_json(data[len(STREAM_DATA_PREFIX):])
    except ValidationError as exc:
        raise DecodeError(f"malformed stream frame: {exc}") from exc

    if not frame.delta_list:
        return None
    return frame


def frame_to_event(frame: StreamFrame) -> DeltaEvent:
    """Turn a decoded frame into a DeltaEvent; upstream error frames become terminal errors."""
    if frame.delta_type == WIRE_ERROR:
        return DeltaEvent(
            kind=DeltaKind.ERROR,
            message_id=frame.message_id,
            error=StreamAbortedError(f"upstream error frame: {frame.delta}"),
        )
    if frame.delta_type == WIRE_APPEND:
        return DeltaEvent(kind=DeltaKind.APPEND, text=frame.delta, message_id=frame.message_id)
    return DeltaEvent(
        kind=DeltaKind.UNKNOWN,
        text=frame.delta,
        message_id=frame.message_id,
        wire_kind=frame.delta_type,
    )


# ============================================================================
# Producer / Consumer Stream
# ============================================================================

class DeltaStream:
    """
    Single-consumer, forward-only async iterator of DeltaEvents.

    Owns the streaming httpx response: the producer task closes it when the
    body ends, fails, or the stream is closed. Iteration stops right after
    the terminal (``end`` or ``error``) event. Not restartable.

    Usage:
        async with await upstream.chat_conversation(request) as events:
            async for event in events:
                ...

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """

    def __init__(self, response: httpx.Response, buffer_size: int = 1):
        self._response = response
        self._queue: asyncio.Queue[DeltaEvent] = asyncio.Queue(maxsize=buffer_size)
        self._producer: Optional[asyncio.Task] = None
        self._finished = False

    def start(self) -> "DeltaStream":
        """Start the read loop. Called once by the upstream client."""
        if self._producer is None:
            self._producer = asyncio.create_task(self._pump())
        return self

    async def _pump(self) -> None:
        try:
            async for line in self._response.aiter_lines():
                frame = parse_stream_line(line)
                if frame is None:
                    continue
                event = frame_to_event(frame)
                if event.kind == DeltaKind.ERROR:
                    logger.error(
                        "stream_bridge.error_frame",
                        message_id=event.message_id,
                        error=str(event.error),
                    )
                await self._queue.put(event)
                if event.is_terminal:
                    return
            await self._queue.put(DeltaEvent(kind=DeltaKind.END))
        except DecodeError as exc:
            logger.error("stream_bridge.decode_error", error=str(exc))
            await self._queue.put(DeltaEvent(kind=DeltaKind.ERROR, error=exc))
        except Exception as exc:
            logger.exception(
                "stream_bridge.read_error",
                error_type=type(exc).__name__,
                error=str(exc),
            )
            await self._queue.put(
                DeltaEvent(kind=DeltaKind.ERROR, error=StreamAbortedError(f"stream read failed: {exc}"))
            )
        finally:
            await self._response.aclose()

    def __aiter__(self) -> "DeltaStream":
        return self

    async def __anext__(self) -> DeltaEvent:
        if self._finished:
            raise StopAsyncIteration
        self.start()
        event = await self._queue.get()
        if event.is_terminal:
            self._finished = True
        return event

    async def aclose(self) -> None:
        """Stop reading and release the connection. Safe to call more than once."""
        self._finished = True
        if self._producer is None:
            await self._response.aclose()
            return
        if not self._producer.done():
            self._producer.cancel()
        await asyncio.gather(self._producer, return_exceptions=True)

    async def __aenter__(self) -> "DeltaStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
