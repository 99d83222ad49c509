from sqs_emitter.core.errors import (
    ErrorCode,
    InvalidDestination,
    InvalidInput,
    OffloadError,
    SqsEmitterError,
    TargetResolutionError,
    TransportCallError,
    TransportRejection,
)
from sqs_emitter.schemas.sqs_models import DispatchOutcome, DispatchSummary, Event, PublishResult
from sqs_emitter.services.sqs_emitter import SqsEmitter
from sqs_emitter.utils.permissions import sqs_permissions

__all__ = [
    "SqsEmitter",
    "SqsEmitterError",
    "ErrorCode",
    "InvalidDestination",
    "InvalidInput",
    "TargetResolutionError",
    "OffloadError",
    "TransportRejection",
    "TransportCallError",
    "Event",
    "DispatchOutcome",
    "DispatchSummary",
    "PublishResult",
    "sqs_permissions",
]
