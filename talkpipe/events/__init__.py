"""
Events Module

Event bus and pipeline lifecycle events.
"""

from .event_bus import (
    EventBus,
    EventPriority,
    BaseEvent,
    PipelineStartedEvent,
    StageCompletedEvent,
    StageRetryEvent,
    PipelineCompletedEvent,
    PipelineFailedEvent,
    PipelineCancelledEvent,
    logging_middleware,
    priority_filter_middleware
)

__all__ = [
    "EventBus",
    "EventPriority",
    "BaseEvent",
    "PipelineStartedEvent",
    "StageCompletedEvent",
    "StageRetryEvent",
    "PipelineCompletedEvent",
    "PipelineFailedEvent",
    "PipelineCancelledEvent",
    "logging_middleware",
    "priority_filter_middleware"
]
