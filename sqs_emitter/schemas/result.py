# schemas/result.py
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from sqs_emitter.core.errors import ErrorCode

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    kind: ErrorCode
    message: str


Result = Union[Ok[T], Err]
