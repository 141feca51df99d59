#!/usr/bin/env python3

"""
Pipeline Event Bus

Decoupled notification of pipeline lifecycle: runs starting, stages
completing or retrying, runs finishing. Handlers never influence a run;
their failures are logged and dropped.
"""

import asyncio
import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..functional.result_monad import Result, Success, Failure

logger = logging.getLogger(__name__)


class EventPriority(Enum):
    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4


@dataclass
class BaseEvent(ABC):
    """Base class for all pipeline events"""
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)
    priority: EventPriority = EventPriority.NORMAL
    source: Optional[str] = None
    run_id: Optional[str] = None
    pipeline_name: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    @abstractmethod
    def event_type(self) -> str:
        pass


@dataclass
class PipelineStartedEvent(BaseEvent):
    stage_count: int = 0
    audio_size: int = 0

    @property
    def event_type(self) -> str:
        return "pipeline.started"


@dataclass
class StageCompletedEvent(BaseEvent):
    stage_name: str = ""
    stage_type: str = ""
    success: bool = True
    duration_ms: float = 0.0
    attempts: int = 1
    error_message: Optional[str] = None

    @property
    def event_type(self) -> str:
        return "stage.completed"


@dataclass
class StageRetryEvent(BaseEvent):
    stage_name: str = ""
    attempt: int = 1
    max_attempts: int = 1
    delay_seconds: float = 0.0
    error_message: Optional[str] = None

    @property
    def event_type(self) -> str:
        return "stage.retry"


@dataclass
class PipelineCompletedEvent(BaseEvent):
    word_count: int = 0
    language: Optional[str] = None
    duration_ms: float = 0.0

    @property
    def event_type(self) -> str:
        return "pipeline.completed"


@dataclass
class PipelineFailedEvent(BaseEvent):
    failed_stage_name: Optional[str] = None
    error_message: str = ""
    duration_ms: float = 0.0

    def __post_init__(self):
        self.priority = EventPriority.HIGH

    @property
    def event_type(self) -> str:
        return "pipeline.failed"


@dataclass
class PipelineCancelledEvent(BaseEvent):
    next_stage_name: Optional[str] = None

    @property
    def event_type(self) -> str:
        return "pipeline.cancelled"


EventHandler = Callable[[BaseEvent], Any]
AsyncEventHandler = Callable[[BaseEvent], Awaitable[Any]]
Middleware = Callable[[BaseEvent], Result[BaseEvent, Exception]]


class EventBus:
    """
    Queue-backed event bus

    publish() enqueues for the processor task started with start(), or
    delivers inline when the bus is not running. dispatch() always delivers
    immediately without the queue.
    """

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._async_handlers: Dict[str, List[AsyncEventHandler]] = {}
        self._middleware: List[Middleware] = []
        self._running = False
        self._event_queue: asyncio.Queue = asyncio.Queue()
        self._processor_task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe to an event type, or '*' for every event"""
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Handler subscribed to {event_type}")

    def subscribe_async(self, event_type: str, handler: AsyncEventHandler) -> None:
        self._async_handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Async handler subscribed to {event_type}")

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        try:
            self._handlers.get(event_type, []).remove(handler)
        except ValueError:
            logger.warning(f"Handler not found for {event_type}")

    def add_middleware(self, middleware: Middleware) -> None:
        self._middleware.append(middleware)

    async def start(self) -> None:
        if self._running:
            logger.warning("Event bus is already running")
            return

        self._running = True
        self._processor_task = asyncio.create_task(self._process_events())
        logger.info("Event bus started")

    async def stop(self) -> None:
        """Stop the processor after draining queued events"""
        if not self._running:
            return

        await self._event_queue.join()
        self._running = False

        if self._processor_task:
            self._processor_task.cancel()
            try:
                await self._processor_task
            except asyncio.CancelledError:
                pass
            self._processor_task = None

        logger.info("Event bus stopped")

    def _apply_middleware(self, event: BaseEvent) -> Result[BaseEvent, Exception]:
        processed: Result[BaseEvent, Exception] = Success(event)
        for middleware in self._middleware:
            processed = processed.flat_map(middleware)
            if processed.is_failure():
                logger.debug(f"Middleware rejected {event.event_type}: {processed.get_error()}")
                break
        return processed

    async def publish(self, event: BaseEvent) -> Result[None, Exception]:
        """Queue an event for the processor task; delivered inline while the bus is stopped"""
        processed = self._apply_middleware(event)
        if processed.is_failure():
            return Failure(processed.get_error())

        if not self._running:
            logger.debug(f"Event bus not running; delivering {event.event_type} directly")
            await self._handle_event(processed.get_value())
            return Success(None)

        await self._event_queue.put(processed.get_value())
        logger.debug(f"Event published: {event.event_type} (ID: {event.event_id})")
        return Success(None)

    async def dispatch(self, event: BaseEvent) -> Result[None, Exception]:
        """Deliver an event to handlers immediately"""
        processed = self._apply_middleware(event)
        if processed.is_failure():
            return Failure(processed.get_error())

        await self._handle_event(processed.get_value())
        return Success(None)

    async def _process_events(self) -> None:
        while self._running:
            event = await self._event_queue.get()
            try:
                await self._handle_event(event)
            except Exception as e:
                logger.error(f"Error processing event {event.event_type}: {e}")
            finally:
                self._event_queue.task_done()

    async def _handle_event(self, event: BaseEvent) -> None:
        event_type = event.event_type

        for handler in self._handlers.get(event_type, []) + self._handlers.get("*", []):
            try:
                result = handler(event)
                if isinstance(result, Result) and result.is_failure():
                    logger.error(f"Handler failed for {event_type}: {result.get_error()}")
            except Exception as e:
                logger.error(f"Handler exception for {event_type}: {e}")

        async_handlers = self._async_handlers.get(event_type, []) + self._async_handlers.get("*", [])
        if async_handlers:
            results = await asyncio.gather(
                *(handler(event) for handler in async_handlers),
                return_exceptions=True
            )
            for i, result in enumerate(results):
                if isinstance(result, Exception):
                    logger.error(f"Async handler {i} failed for {event_type}: {result}")
                elif isinstance(result, Result) and result.is_failure():
                    logger.error(f"Async handler {i} returned failure for {event_type}: {result.get_error()}")


def logging_middleware(event: BaseEvent) -> Result[BaseEvent, Exception]:
    """Middleware that logs every event"""
    logger.debug(f"Event: {event.event_type} from {event.source} [{event.pipeline_name}]")
    return Success(event)


def priority_filter_middleware(min_priority: EventPriority) -> Middleware:
    """Create middleware that drops events below a priority"""
    def middleware(event: BaseEvent) -> Result[BaseEvent, Exception]:
        if event.priority.value >= min_priority.value:
            return Success(event)
        return Failure(ValueError(f"Event priority {event.priority} below minimum {min_priority}"))

    return middleware
