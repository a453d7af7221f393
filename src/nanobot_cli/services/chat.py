"""Conversation state machine.

Keeps the thread catalog, the visible message list and the agent selection,
and assembles streamed assistant output into messages.

Message lifecycle::

    user message:       sent
    assistant reply:    streaming -> sent
                        streaming -> error

A streaming message is always the last element of the list and is owned by
the send operation that created it until it is finalized or fails. Only one
send may be in flight per conversation; callers disable input while
``state.is_sending`` is true.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import structlog

from nanobot_cli.protocol.models import StreamEvent, StreamEventType, ThreadSummary
from nanobot_cli.protocol.stream import Subscription
from nanobot_cli.services.exceptions import ValidationError
from nanobot_cli.services.models import (
    DEFAULT_THREAD_TITLE,
    ChatState,
    ContentBlock,
    ImageBlock,
    Message,
    MessageStatus,
    ResourceBlock,
    Role,
    TextBlock,
    Thread,
    content_block_from_wire,
    derive_title,
    utcnow,
)

if TYPE_CHECKING:
    from nanobot_cli.attachments import Attachment
    from nanobot_cli.client import NanobotClient

logger = structlog.get_logger(__name__)

Listener = Callable[[ChatState], None]


def _from_millis(value: float | None, default: datetime) -> datetime:
    if value is None:
        return default
    try:
        return datetime.fromtimestamp(value / 1000, UTC)
    except (OverflowError, OSError, ValueError):
        logger.debug("timestamp_out_of_range", value=value)
        return default


def _describe(data: Any) -> str:
    if isinstance(data, str):
        return data
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return json.dumps(data, ensure_ascii=False)


def _attachment_block(attachment: Attachment) -> ContentBlock:
    if attachment.type == "image":
        return ImageBlock(data=attachment.base64, mime_type=attachment.mime_type)
    return ResourceBlock(
        uri=attachment.uri,
        data=attachment.base64,
        mime_type=attachment.mime_type,
    )


class ChatService:
    """Conversation client built on the nanobot protocol client.

    Args:
        client: Protocol client facade
        id_factory: Generator for thread and message ids (default: uuid4)
        clock: Current-time source (default: UTC now)

    Attributes:
        state: Observable conversation state

    Example:
        >>> chat = ChatService(client)
        >>> await chat.connect()
        >>> await chat.send_message("What's on my calendar?")
        >>> await chat.wait_for_reply()
        >>> chat.state.messages[-1].text
        'You have two meetings today.'
    """

    def __init__(
        self,
        client: NanobotClient,
        id_factory: Callable[[], str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.client = client
        self.state = ChatState()
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._clock = clock or utcnow
        self._listeners: list[Listener] = []
        self._subscription: Subscription | None = None
        self._streaming_id: str | None = None
        self._streaming_thread_id: str | None = None
        # Callbacks of any subscription but the latest are ignored
        self._stream_token = 0
        self._send_pending = False
        self._deferred_stream_error: Exception | None = None

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a callback run after every state change.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.state)

    # Connection

    async def connect(self) -> bool:
        """Connect and load agents and threads.

        Failures are recorded in ``state.connection_error`` rather than raised.

        Returns:
            True when the connection succeeded
        """
        self.state.is_connecting = True
        self.state.connection_error = None
        self._notify()

        try:
            await self.client.connect()
        except Exception as e:
            logger.error("connect_failed", error=str(e))
            self.state.is_connecting = False
            self.state.connection_error = str(e) or "Connection failed"
            self._notify()
            return False

        self.state.is_connected = True
        self.state.is_connecting = False
        self._notify()

        await self.load_agents()
        await self.load_threads()
        return True

    async def disconnect(self) -> None:
        """Drop the session and clear conversation state."""
        self._unsubscribe()
        try:
            await self.client.disconnect()
        except Exception as e:
            logger.warning("disconnect_failed", error=str(e))

        self.state.is_connected = False
        self.state.threads = []
        self.state.messages = []
        self.state.current_thread_id = None
        self.state.is_sending = False
        self._streaming_id = None
        self._notify()

    # Threads

    def _thread_from_summary(self, summary: ThreadSummary) -> Thread:
        updated = _from_millis(summary.updated_at, self._clock())
        return Thread(
            id=summary.id,
            title=summary.title or DEFAULT_THREAD_TITLE,
            created_at=updated,
            updated_at=updated,
        )

    async def load_threads(self) -> None:
        self.state.is_loading = True
        self._notify()

        summaries = await self.client.list_threads()
        self.state.threads = [self._thread_from_summary(s) for s in summaries]
        self.state.is_loading = False
        self._notify()

    async def select_thread(self, thread_id: str) -> None:
        """Make a thread current and load its full history.

        Any subscription still streaming for the previous thread is cancelled.
        """
        self._unsubscribe()
        self._streaming_id = None
        self.state.is_sending = False
        self.state.current_thread_id = thread_id
        self.state.is_loading = True
        self.state.messages = []
        self._notify()

        raw_messages = await self.client.get_thread_messages(thread_id)

        if self.state.current_thread_id != thread_id:
            # Another thread was selected while this history was loading
            return

        self.state.messages = self._messages_from_history(thread_id, raw_messages)
        self.state.is_loading = False
        self._notify()

    def _messages_from_history(
        self,
        thread_id: str,
        raw_messages: list[dict[str, Any]],
    ) -> list[Message]:
        now = self._clock()
        count = len(raw_messages)
        messages: list[Message] = []

        for index, raw in enumerate(raw_messages):
            try:
                role = Role(raw.get("role"))
            except ValueError:
                logger.debug("history_message_skipped", thread_id=thread_id, role=raw.get("role"))
                continue

            content = raw.get("content")
            if isinstance(content, list):
                blocks = [content_block_from_wire(item) for item in content]
            else:
                blocks = [TextBlock(text="" if content is None else str(content))]

            messages.append(
                Message(
                    id=f"{thread_id}-{index}",
                    role=role,
                    content=blocks,
                    timestamp=now - timedelta(seconds=count - index),
                    status=MessageStatus.SENT,
                )
            )

        return messages

    def create_thread(self) -> str:
        """Start a new local thread and make it current. No network call.

        Returns:
            Id of the new thread
        """
        now = self._clock()
        thread = Thread(
            id=self._id_factory(),
            title=DEFAULT_THREAD_TITLE,
            created_at=now,
            updated_at=now,
            agent_id=self.state.current_agent_id,
        )

        self._unsubscribe()
        self._streaming_id = None
        self.state.is_sending = False
        self.state.threads.insert(0, thread)
        self.state.current_thread_id = thread.id
        self.state.messages = []
        self._notify()
        return thread.id

    async def delete_thread(self, thread_id: str) -> None:
        """Delete a thread locally and on the server.

        Local removal happens first and is not rolled back when the server
        call fails; the failure is only logged.
        """
        self.state.threads = [t for t in self.state.threads if t.id != thread_id]
        if self.state.current_thread_id == thread_id:
            self._unsubscribe()
            self._streaming_id = None
            self.state.is_sending = False
            self.state.current_thread_id = None
            self.state.messages = []
        self._notify()

        try:
            await self.client.delete_thread(thread_id)
        except Exception as e:
            logger.warning("delete_thread_failed", thread_id=thread_id, error=str(e))

    # Agents

    async def load_agents(self) -> None:
        """Load agents; the first one is selected when none is."""
        agents = await self.client.list_agents()
        self.state.agents = agents
        if agents and not self.state.current_agent_id:
            self.state.current_agent_id = agents[0].id
        self._notify()

    def select_agent(self, agent_id: str) -> None:
        self.state.current_agent_id = agent_id
        self._notify()

    # Sending and streaming

    async def send_message(
        self,
        text: str,
        attachments: list[Attachment] | None = None,
    ) -> Subscription | None:
        """Send a user message and start streaming the reply.

        Appends the user message and a streaming assistant placeholder,
        subscribes to the thread's event stream and then issues the send
        call. A thread is created when none is current.

        Args:
            text: Message text
            attachments: Files to send along

        Returns:
            The stream subscription, or None when the send call failed

        Raises:
            ValidationError: Nothing to send
        """
        attachments = attachments or []
        if not text.strip() and not attachments:
            raise ValidationError("Message text cannot be empty")

        thread_id = self.state.current_thread_id or self.create_thread()
        now = self._clock()

        user_message = Message(
            id=self._id_factory(),
            role=Role.USER,
            content=[TextBlock(text=text), *(_attachment_block(a) for a in attachments)],
            timestamp=now,
            status=MessageStatus.SENT,
        )
        assistant_message = Message(
            id=self._id_factory(),
            role=Role.ASSISTANT,
            content=[],
            timestamp=now,
            status=MessageStatus.STREAMING,
        )

        self._unsubscribe()
        self.state.messages.extend([user_message, assistant_message])
        self.state.is_sending = True
        self._streaming_id = assistant_message.id
        self._streaming_thread_id = thread_id
        thread = self.state.find_thread(thread_id)
        if thread is not None:
            thread.touch(now)
        self._notify()

        session_id = self.client.session_id
        self._deferred_stream_error = None
        self._send_pending = True
        self._subscribe(thread_id)

        try:
            result = await self.client.send_message(
                text,
                thread_id,
                self.state.current_agent_id or None,
                [a.to_wire() for a in attachments] or None,
            )
        except Exception as e:
            logger.error("send_message_failed", thread_id=thread_id, error=str(e))
            self.fail_streaming_message(f"Failed to send message: {str(e) or 'Unknown error'}")
            return None
        finally:
            self._send_pending = False

        if result.is_error:
            reason = result.first_text() or "Unknown error"
            logger.error("send_message_rejected", thread_id=thread_id, reason=reason)
            self.fail_streaming_message(f"Failed to send message: {reason}")
            return None

        stream_error, self._deferred_stream_error = self._deferred_stream_error, None
        if self._streaming_message() is not None and self.client.session_id != session_id:
            # The send reconnected; the open stream still carries the old session
            logger.info(
                "stream_resubscribed",
                thread_id=thread_id,
                session_id=self.client.session_id,
            )
            self._unsubscribe()
            self._subscribe(thread_id)
            stream_error = None
        subscription = self._subscription

        if stream_error is not None:
            self._handle_stream_error(stream_error)

        self._rename_thread(thread_id, text)
        return subscription

    def _subscribe(self, thread_id: str) -> None:
        self._stream_token += 1
        token = self._stream_token

        def on_event(event: StreamEvent) -> None:
            if token == self._stream_token:
                self._handle_event(event)

        def on_error(error: Exception) -> None:
            if token != self._stream_token:
                return
            if self._send_pending:
                self._deferred_stream_error = error
                return
            self._handle_stream_error(error)

        self._subscription = self.client.subscribe(thread_id, on_event, on_error)

    def _rename_thread(self, thread_id: str, text: str) -> None:
        thread = self.state.find_thread(thread_id)
        if thread is None or thread.title != DEFAULT_THREAD_TITLE or not text.strip():
            return
        thread.title = derive_title(text)
        thread.touch(self._clock())
        self._notify()

    async def wait_for_reply(self) -> None:
        """Wait until the active subscription ends."""
        if self._subscription is not None:
            await self._subscription.wait()

    def _streaming_message(self) -> Message | None:
        if not self.state.messages or self._streaming_id is None:
            return None
        last = self.state.messages[-1]
        if last.id != self._streaming_id or last.status != MessageStatus.STREAMING:
            return None
        return last

    def _handle_event(self, event: StreamEvent) -> None:
        if event.type in (StreamEventType.MESSAGE, StreamEventType.TOOL_RESULT):
            raw = event.data
            if (
                event.type == StreamEventType.TOOL_RESULT
                and isinstance(raw, dict)
                and "type" not in raw
            ):
                raw = {**raw, "type": "tool_result"}
            self.add_streaming_content(content_block_from_wire(raw))
        elif event.type == StreamEventType.DONE:
            self.finalize_streaming_message()
        elif event.type == StreamEventType.ERROR:
            self.fail_streaming_message(f"Error: {_describe(event.data)}")
        else:
            logger.debug("stream_event_ignored", event_type=event.type.value)

    def _handle_stream_error(self, error: Exception) -> None:
        self.fail_streaming_message(f"Error: {str(error) or 'Stream failed'}")

    def add_streaming_content(self, block: ContentBlock) -> None:
        """Append a block to the streaming message.

        A text block following a text block is merged into it. No-op when no
        message is streaming.
        """
        message = self._streaming_message()
        if message is None:
            return

        if isinstance(block, TextBlock):
            if not block.text:
                return
            if message.content and isinstance(message.content[-1], TextBlock):
                message.content[-1] = TextBlock(text=message.content[-1].text + block.text)
                self._notify()
                return

        message.content.append(block)
        self._notify()

    def finalize_streaming_message(self) -> None:
        """Mark the streaming message sent and end the subscription."""
        self._finish(MessageStatus.SENT)

    def fail_streaming_message(self, text: str) -> None:
        """Mark the streaming message failed, replacing its content with text."""
        self._finish(MessageStatus.ERROR, [TextBlock(text=text)])

    def _finish(self, status: MessageStatus, content: list[ContentBlock] | None = None) -> None:
        message = self._streaming_message()
        if message is None:
            return

        message.status = status
        if content is not None:
            message.content = content

        thread = self.state.find_thread(self._streaming_thread_id or "")
        if thread is not None:
            thread.touch(self._clock())

        self._streaming_id = None
        self._streaming_thread_id = None
        self.state.is_sending = False
        self._unsubscribe()
        self._notify()

    def _unsubscribe(self) -> None:
        self._stream_token += 1
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
