"""rxflow worker library."""

from .consumer import NO_HANDLER_REASON, ConsumerState, PollMode, WorkerConfig, WorkflowConsumer
from .dead_letter import DeadLetterRecord, DeadLetterSink, ProducerDeadLetterSink
from .exceptions import (
    HandlerError,
    HandlerErrorCodes,
    InvalidHandlerError,
    WorkerError,
    WorkerErrorCodes,
)
from .handler import Handler
from .registry import HandlerRegistry

__all__ = [
    "Handler",
    "HandlerError",
    "HandlerErrorCodes",
    "HandlerRegistry",
    "WorkflowConsumer",
    "WorkerConfig",
    "ConsumerState",
    "PollMode",
    "NO_HANDLER_REASON",
    "DeadLetterRecord",
    "DeadLetterSink",
    "ProducerDeadLetterSink",
    "WorkerError",
    "WorkerErrorCodes",
    "InvalidHandlerError",
]
