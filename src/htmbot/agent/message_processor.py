"""
Message Processing Pipeline.

Turns incoming user messages into persisted, broadcast assistant turns.
A single worker consumes a bounded intake queue, so at most one
orchestrator run is in flight process-wide and events for a session are
published in the order the worker produces them.

Key Features:
- Bounded intake queue shared by all sessions
- Enqueuer with a short wait, surfacing backpressure as QueueFullError
- Per-item failure containment: a failed turn never stops the worker
- Metrics for monitoring queue health

Per item:
    load history -> save user message -> Message (echo) -> DeltaStart
    -> Delta* -> save new messages -> Message per new message
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .domain.entities import (
    DeltaEvent,
    DeltaStartEvent,
    MessageEvent,
    new_delta_id,
    user_message,
)
from .domain.exceptions import QueueFullError
from .domain.ports import IChatRepository, IMessageEnqueuer, IPubSub
from .orchestrator.agent import AgentOrchestrator, Tools

logger = logging.getLogger(__name__)

DEFAULT_INTAKE_QUEUE_SIZE = 1000
DEFAULT_HISTORY_LIMIT = 30
DEFAULT_ENQUEUE_TIMEOUT = 5.0


class TurnState(str, Enum):
    """State of the assistant turn being processed."""

    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"  # DeltaStart published
    STREAMING = "streaming"  # Delta events flowing
    COMPLETED = "completed"  # New messages persisted and published
    FAILED = "failed"  # Nothing from the turn persisted


@dataclass
class IncomingMessage:
    """A user message waiting in the intake queue."""

    session_id: str
    text: str
    received_at: float = field(default_factory=time.time)


@dataclass
class ProcessorMetrics:
    """Metrics for monitoring the message processor."""

    messages_received: int = 0
    messages_rejected: int = 0  # Enqueue gave up on a full queue
    turns_completed: int = 0
    turns_failed: int = 0
    turns_skipped: int = 0  # History or user message could not be stored/read
    current_queue_size: int = 0
    peak_queue_size: int = 0
    last_queue_wait: float = 0.0  # Seconds the last message waited in the queue
    peak_queue_wait: float = 0.0


class MessageEnqueuer(IMessageEnqueuer):
    """Hands user messages to the processor without waiting for the agent.

    Waits at most ``timeout`` seconds for room in the intake queue
    (``0`` means do not wait) and raises QueueFullError otherwise, so the
    request path can ask the user to try again.
    """

    def __init__(
        self,
        queue: asyncio.Queue,
        timeout: float = DEFAULT_ENQUEUE_TIMEOUT,
        metrics: Optional[ProcessorMetrics] = None,
    ):
        if timeout < 0:
            raise ValueError("timeout must not be negative")
        self._queue = queue
        self.timeout = timeout
        self._metrics = metrics or ProcessorMetrics()

    async def enqueue(self, session_id: str, text: str) -> None:
        item = IncomingMessage(session_id=session_id, text=text)

        try:
            if self.timeout == 0:
                self._queue.put_nowait(item)
            else:
                await asyncio.wait_for(self._queue.put(item), timeout=self.timeout)
        except (asyncio.QueueFull, asyncio.TimeoutError):
            self._metrics.messages_rejected += 1
            logger.warning(
                f"Intake queue full ({self._queue.maxsize}) - "
                f"rejected message for session {session_id}"
            )
            raise QueueFullError(self._queue.maxsize)

        self._metrics.messages_received += 1
        self._metrics.peak_queue_size = max(
            self._metrics.peak_queue_size, self._queue.qsize()
        )
        logger.debug(f"Queued message for session {session_id}")


class MessageProcessor:
    """Single-worker pipeline from user message to assistant turn.

    Usage:
        processor = MessageProcessor(
            repository=repo,
            pubsub=bus,
            orchestrator=orchestrator,
            tools=[DiagnosticTool()],
        )
        await processor.start()

        await processor.enqueuer().enqueue(session_id, "Hello")

        # On shutdown
        await processor.stop()

    Attributes:
        history_limit: Messages of history loaded per turn
        max_queue_size: Capacity of the intake queue
        state: State of the turn currently (or last) processed
    """

    def __init__(
        self,
        repository: IChatRepository,
        pubsub: IPubSub,
        orchestrator: AgentOrchestrator,
        tools: Tools = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        max_queue_size: int = DEFAULT_INTAKE_QUEUE_SIZE,
        enqueue_timeout: float = DEFAULT_ENQUEUE_TIMEOUT,
    ):
        """Initialize the message processor.

        Args:
            repository: Chat persistence
            pubsub: Event bus for live viewers
            orchestrator: Runs the assistant turn
            tools: Tools offered to the model on every turn
            history_limit: Messages of history loaded per turn
            max_queue_size: Capacity of the intake queue
            enqueue_timeout: Seconds the enqueuer waits for room
        """
        if history_limit < 1:
            raise ValueError("history_limit must be at least 1")

        self.repository = repository
        self.pubsub = pubsub
        self.orchestrator = orchestrator
        self.tools = tools
        self.history_limit = history_limit
        self.max_queue_size = max_queue_size
        self.enqueue_timeout = enqueue_timeout

        self._queue: asyncio.Queue[IncomingMessage] = asyncio.Queue(maxsize=max_queue_size)
        self._task: Optional[asyncio.Task] = None
        self._metrics = ProcessorMetrics()
        self.state = TurnState.IDLE

    @property
    def metrics(self) -> ProcessorMetrics:
        """Get current metrics."""
        self._metrics.current_queue_size = self._queue.qsize()
        return self._metrics

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def enqueuer(self, timeout: Optional[float] = None) -> MessageEnqueuer:
        """Create an enqueuer feeding this processor's intake queue."""
        return MessageEnqueuer(
            self._queue,
            timeout=self.enqueue_timeout if timeout is None else timeout,
            metrics=self._metrics,
        )

    async def start(self) -> None:
        """Start the worker task."""
        if self.running:
            return

        self._task = asyncio.create_task(self.run(), name="message-processor")
        logger.info(f"Message processor started (queue size {self.max_queue_size})")

    async def stop(self) -> None:
        """Cancel the worker. The in-flight turn publishes nothing further."""
        if self._task is None:
            return

        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

        if not self._queue.empty():
            logger.warning(f"Message processor stopped with {self._queue.qsize()} messages pending")
        logger.info("Message processor stopped")

    async def run(self) -> None:
        """Consume the intake queue until cancelled."""
        logger.debug("Message processor loop started")

        try:
            while True:
                item = await self._queue.get()
                try:
                    await self.process_item(item)
                except Exception as e:
                    logger.exception(f"Unexpected error processing message: {e}")
                finally:
                    self._queue.task_done()
        except asyncio.CancelledError:
            logger.debug("Message processor loop cancelled")
            raise

    async def process_item(self, item: IncomingMessage) -> TurnState:
        """Process one user message into an assistant turn.

        Returns:
            Terminal state of the turn (COMPLETED or FAILED)
        """
        session_id = item.session_id
        self._record_queue_wait(item)
        self._set_state(TurnState.IDLE, session_id)

        try:
            history = await self.repository.get_messages(session_id, limit=self.history_limit)
        except Exception as e:
            logger.error(f"Failed to load history for session {session_id}: {e}")
            self._metrics.turns_skipped += 1
            return self._set_state(TurnState.FAILED, session_id)

        message = user_message(item.text)
        try:
            await self.repository.save_messages(session_id, message)
        except Exception as e:
            logger.error(f"Failed to save user message for session {session_id}: {e}")
            self._metrics.turns_skipped += 1
            return self._set_state(TurnState.FAILED, session_id)

        self.pubsub.publish(session_id, MessageEvent(session_id=session_id, message=message))

        delta_id = new_delta_id()
        self.pubsub.publish(session_id, DeltaStartEvent(session_id=session_id, delta_id=delta_id))
        self._set_state(TurnState.AWAITING_MODEL, session_id)

        def on_delta(text: str) -> None:
            if self.state is TurnState.AWAITING_MODEL:
                self._set_state(TurnState.STREAMING, session_id)
            self.pubsub.publish(
                session_id,
                DeltaEvent(session_id=session_id, delta_id=delta_id, text=text),
            )

        try:
            new_messages = await self.orchestrator.stream_generate(
                [*history, message], self.tools, on_delta
            )
        except Exception as e:
            logger.error(f"Assistant turn failed for session {session_id}: {e}")
            self._metrics.turns_failed += 1
            return self._set_state(TurnState.FAILED, session_id)

        try:
            await self.repository.save_messages(session_id, *new_messages)
        except Exception as e:
            logger.error(f"Failed to save assistant turn for session {session_id}: {e}")
            self._metrics.turns_failed += 1
            return self._set_state(TurnState.FAILED, session_id)

        for new_message in new_messages:
            self.pubsub.publish(
                session_id, MessageEvent(session_id=session_id, message=new_message)
            )

        self._metrics.turns_completed += 1
        return self._set_state(TurnState.COMPLETED, session_id)

    def _record_queue_wait(self, item: IncomingMessage) -> None:
        waited = max(0.0, time.time() - item.received_at)
        self._metrics.last_queue_wait = waited
        self._metrics.peak_queue_wait = max(self._metrics.peak_queue_wait, waited)
        logger.debug(f"Message for session {item.session_id} waited {waited:.3f}s in queue")

    def _set_state(self, state: TurnState, session_id: str) -> TurnState:
        if state is not self.state:
            logger.debug(f"Session {session_id} turn: {self.state.value} -> {state.value}")
        self.state = state
        return state
