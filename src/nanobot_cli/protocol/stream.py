"""Server-to-client event stream for a conversation thread.

The server pushes events for one thread on a long-lived GET response. The
body is newline-delimited; event-bearing lines carry a fixed ``data: `` marker
followed by a JSON payload ``{"type": ..., "data": ...}``.

Two ways to consume it:
- ``EventStream.events()``: an async generator, finite until the server
  closes the body or the consumer stops iterating.
- ``EventStream.subscribe()``: runs the generator in a background task and
  dispatches to callbacks, returning a cancellable ``Subscription``.
"""

from __future__ import annotations

import asyncio
import codecs
import inspect
import json
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import structlog
from pydantic import ValidationError

from nanobot_cli.protocol.jsonrpc import DEFAULT_ENDPOINT
from nanobot_cli.protocol.models import StreamEvent
from nanobot_cli.transport.http import HttpTransport

logger = structlog.get_logger(__name__)

EVENT_PREFIX = "data: "

EventCallback = Callable[[StreamEvent], Awaitable[None] | None]
ErrorCallback = Callable[[Exception], Awaitable[None] | None]


class LineBuffer:
    """Incremental UTF-8 line splitter.

    Bytes may arrive split anywhere, including inside a multi-byte character
    or inside a JSON payload. Only complete lines are returned; the partial
    trailing line stays buffered until its newline arrives.

    Example:
        >>> buffer = LineBuffer()
        >>> buffer.feed(b'data: {"type":"do')
        []
        >>> buffer.feed(b'ne","data":null}\\n')
        ['data: {"type":"done","data":null}']
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, chunk: bytes) -> list[str]:
        self._pending += self._decoder.decode(chunk)
        *lines, self._pending = self._pending.split("\n")
        return [line.rstrip("\r") for line in lines]


def parse_event_line(line: str) -> StreamEvent | None:
    """Decode one logical line into an event.

    Lines without the event marker are ignored. Malformed JSON and payloads
    that are not a known event are dropped: partial frames can show up around
    boundary splits and must never end the stream.

    Returns:
        The decoded event, or None when the line carries no usable event
    """
    if not line.startswith(EVENT_PREFIX):
        return None

    payload = line[len(EVENT_PREFIX):]
    try:
        raw = json.loads(payload)
    except ValueError:
        logger.debug("stream_event_dropped", reason="invalid_json", line=line[:200])
        return None

    try:
        return StreamEvent.model_validate(raw)
    except ValidationError:
        logger.debug("stream_event_dropped", reason="unknown_event", line=line[:200])
        return None


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class Subscription:
    """Handle for a background event stream.

    Events are delivered to ``on_event`` in arrival order. A transport failure
    is delivered once to ``on_error`` and ends the subscription. ``cancel()``
    is idempotent, never reports an error, and may be called from inside
    ``on_event``.

    Args:
        thread_id: Conversation the stream is bound to
        events: Event generator to drain
        on_event: Called for each event (sync or async)
        on_error: Called once on transport failure (sync or async)
    """

    def __init__(
        self,
        thread_id: str,
        events: AsyncGenerator[StreamEvent, None],
        on_event: EventCallback,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self.thread_id = thread_id
        self._events = events
        self._on_event = on_event
        self._on_error = on_error
        self._cancelled = False
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        """Start draining the stream on the running event loop."""
        if self._task is None:
            self._task = asyncio.create_task(
                self._run(), name=f"nanobot-stream-{self.thread_id}"
            )

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def cancel(self) -> None:
        """Abort the underlying connection.

        Safe to call repeatedly, after the stream ended on its own, and from
        within an event callback.
        """
        if self._cancelled:
            return
        self._cancelled = True

        if self._task is None or self._task.done():
            return

        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None

        # Inside a callback the loop notices the flag once the callback returns
        if self._task is not current:
            self._task.cancel()

    async def wait(self) -> None:
        """Wait until the stream ends, fails or is cancelled."""
        if self._task is not None:
            await asyncio.wait({self._task})

    async def _run(self) -> None:
        try:
            async for event in self._events:
                if self._cancelled:
                    break
                try:
                    await _maybe_await(self._on_event(event))
                except Exception:
                    logger.exception(
                        "stream_callback_failed",
                        thread_id=self.thread_id,
                        event_type=event.type.value,
                    )
                if self._cancelled:
                    break
        except asyncio.CancelledError:
            if not self._cancelled:
                raise
        except Exception as e:
            if self._cancelled:
                # Failure caused by tearing down the connection
                return
            logger.warning("stream_failed", thread_id=self.thread_id, error=str(e))
            if self._on_error is not None:
                try:
                    await _maybe_await(self._on_error(e))
                except Exception:
                    logger.exception("stream_error_callback_failed", thread_id=self.thread_id)
        finally:
            await self._events.aclose()


class EventStream:
    """Opens event streams bound to a conversation thread.

    The stream itself is stateless across calls; at most one active
    subscription per thread is a caller-side invariant.

    Args:
        transport: HTTP transport instance
        endpoint: Endpoint path (default: "/mcp/ui")
        read_timeout: Seconds to wait for the next chunk (None = forever)

    Example:
        >>> stream = EventStream(transport)
        >>> async for event in stream.events("thread-1", headers):
        ...     print(event.type)
    """

    def __init__(
        self,
        transport: HttpTransport,
        endpoint: str = DEFAULT_ENDPOINT,
        read_timeout: float | None = None,
    ) -> None:
        self.transport = transport
        self.endpoint = endpoint
        self.read_timeout = read_timeout

    async def events(
        self,
        thread_id: str,
        headers: dict[str, str] | None = None,
    ) -> AsyncGenerator[StreamEvent, None]:
        """Yield decoded events until the server closes the body.

        Args:
            thread_id: Conversation to bind the stream to
            headers: Extra headers, typically the session header

        Yields:
            Decoded events in wire order

        Raises:
            HttpError: The stream could not be opened
            StreamError: Reading the body failed
            NetworkError: Connection failed
        """
        request_headers = {
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
        }
        if headers:
            request_headers.update(headers)

        buffer = LineBuffer()
        async with self.transport.stream(
            self.endpoint,
            params={"stream": "true", "thread": thread_id},
            headers=request_headers,
            read_timeout=self.read_timeout,
        ) as chunks:
            async for chunk in chunks:
                for line in buffer.feed(chunk):
                    event = parse_event_line(line)
                    if event is not None:
                        yield event

        logger.debug("stream_closed", thread_id=thread_id, unterminated=bool(buffer.pending))

    def subscribe(
        self,
        thread_id: str,
        on_event: EventCallback,
        on_error: ErrorCallback | None = None,
        headers: dict[str, str] | None = None,
    ) -> Subscription:
        """Start a background subscription for a thread.

        Must be called from a running event loop.

        Returns:
            Subscription handle whose ``cancel()`` aborts the connection
        """
        subscription = Subscription(
            thread_id,
            self.events(thread_id, headers),
            on_event,
            on_error,
        )
        subscription.start()
        return subscription
