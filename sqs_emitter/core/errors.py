# core/errors.py
"""
Error taxonomy for the emitter.

Call-level errors (InvalidDestination, InvalidInput, TargetResolutionError)
abort a publish call and reach the caller. Message-level errors (OffloadError,
TransportRejection) are reported per message in the dispatch summary and are
only raised by publish_event, where there is a single message.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    MISSING_CLIENT_CODE = "MISSING_CLIENT_CODE"
    INVALID_QUEUE_URL = "INVALID_QUEUE_URL"
    INVALID_EVENT = "INVALID_EVENT"
    ASSUME_ROLE_ERROR = "ASSUME_ROLE_ERROR"
    SEND_SQS_MESSAGE_ERROR = "SEND_SQS_MESSAGE_ERROR"
    RAM_ERROR = "RAM_ERROR"
    SSM_ERROR = "SSM_ERROR"
    SQS_ERROR = "SQS_ERROR"
    S3_ERROR = "S3_ERROR"


class SqsEmitterError(Exception):
    """Base error. `code` is always one of ErrorCode."""

    default_code: ErrorCode = ErrorCode.SQS_ERROR

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


class InvalidDestination(SqsEmitterError):
    """Queue URL failed the address-format check. No I/O was attempted."""
    default_code = ErrorCode.INVALID_QUEUE_URL


class InvalidInput(SqsEmitterError):
    """A required event field (or the tenant context) is missing."""
    default_code = ErrorCode.INVALID_EVENT


class TargetResolutionError(SqsEmitterError):
    """No storage targets available; fatal for the whole call."""
    default_code = ErrorCode.SSM_ERROR


class OffloadError(SqsEmitterError):
    default_code = ErrorCode.S3_ERROR


class TransportRejection(SqsEmitterError):
    default_code = ErrorCode.SQS_ERROR


class TransportCallError(SqsEmitterError):
    default_code = ErrorCode.SEND_SQS_MESSAGE_ERROR
