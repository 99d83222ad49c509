# schemas/sqs_models.py
import json
from datetime import datetime
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Literal, Optional
from sqs_emitter.core.errors import (
    ErrorCode,
    OffloadError,
    SqsEmitterError,
    TransportCallError,
    TransportRejection,
)


def dumps_compact(value: Any) -> str:
    """JSON used for every body and size measurement."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def byte_size(serialized: str) -> int:
    return len(serialized.encode("utf-8"))


# ============================================================================
# CALLER INPUT
# ============================================================================

class Event(BaseModel):
    """
    Logical event supplied by the caller. Immutable once submitted.

    Accepts snake_case or camelCase keys so plain dicts coming from other
    services validate as-is. Unknown keys are rejected rather than dropped.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    content: Any = None
    attributes: Dict[str, Any] = Field(default_factory=dict)
    subject: Optional[str] = None
    fixed_properties: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("fixedProperties", "payloadFixedProperties", "fixed_properties"),
    )
    message_group_id: Optional[str] = Field(default=None, alias="messageGroupId")
    message_deduplication_id: Optional[str] = Field(default=None, alias="messageDeduplicationId")
    message_structure: Optional[str] = Field(default=None, alias="messageStructure")


# ============================================================================
# PIPELINE MODELS (never exposed to the caller)
# ============================================================================

class MessageAttribute(BaseModel):
    data_type: Literal["String", "String.Array"] = "String"
    string_value: str

    def to_sqs(self) -> Dict[str, str]:
        return {"DataType": self.data_type, "StringValue": self.string_value}


class ExtraProperties(BaseModel):
    """Side channel carried next to a message, never transmitted."""
    fixed_properties: List[str] = Field(default_factory=list)
    offload_path: str


class FormattedMessage(BaseModel):
    sequence_id: Optional[int] = None
    body: str
    attributes: Dict[str, MessageAttribute] = Field(default_factory=dict)
    message_group_id: Optional[str] = None
    message_deduplication_id: Optional[str] = None
    extra: ExtraProperties
    limit_exceeded: bool = False

    # Set by the size evaluator when the body is replaced by a pointer body
    offload_body: Optional[str] = None
    pointer_properties: Dict[str, Any] = Field(default_factory=dict)

    @property
    def entry_id(self) -> Optional[str]:
        return str(self.sequence_id) if self.sequence_id is not None else None

    def to_entry(self) -> Dict[str, Any]:
        """Wire entry for send_message_batch (or send_message without Id)."""
        entry: Dict[str, Any] = {}
        if self.entry_id is not None:
            entry["Id"] = self.entry_id
        entry["MessageBody"] = self.body
        entry["MessageAttributes"] = {
            name: attribute.to_sqs() for name, attribute in self.attributes.items()
        }
        if self.message_group_id:
            entry["MessageGroupId"] = self.message_group_id
        if self.message_deduplication_id:
            entry["MessageDeduplicationId"] = self.message_deduplication_id
        return entry

    def serialized_size(self) -> int:
        return byte_size(dumps_compact(self.to_entry()))


# ============================================================================
# STORAGE TARGETS
# ============================================================================

class Credentials(BaseModel):
    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None
    expiration: Optional[datetime] = None


class StorageTarget(BaseModel):
    """
    One bucket from the shared storage parameter. The first target of a
    resolved list is the default one; the rest are fallbacks.
    """
    model_config = ConfigDict(populate_by_name=True)

    bucket_name: str = Field(alias="bucketName")
    region: str
    role_arn: Optional[str] = Field(default=None, alias="roleArn")
    default: bool = False
    credentials: Optional[Credentials] = None

    def descriptor(self) -> Dict[str, str]:
        return {"bucketName": self.bucket_name, "region": self.region}


# ============================================================================
# OUTCOMES
# ============================================================================

class DispatchOutcome(BaseModel):
    sequence_id: Optional[int] = None
    ok: bool
    message_id: Optional[str] = None
    sequence_number: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    sender_fault: Optional[bool] = None

    def to_error(self) -> Optional[SqsEmitterError]:
        """Exception matching a failed outcome, for callers that re-raise."""
        if self.ok:
            return None
        message = self.error_message or self.error_code or "Unknown error"
        if self.error_code == ErrorCode.S3_ERROR.value:
            return OffloadError(message)
        if self.error_code == ErrorCode.SEND_SQS_MESSAGE_ERROR.value:
            return TransportCallError(message)
        return TransportRejection(message)


class BatchResult(BaseModel):
    successful: List[DispatchOutcome] = Field(default_factory=list)
    failed: List[DispatchOutcome] = Field(default_factory=list)


class DispatchSummary(BaseModel):
    success_count: int = 0
    failed_count: int = 0
    success: List[DispatchOutcome] = Field(default_factory=list)
    failed: List[DispatchOutcome] = Field(default_factory=list)


class PublishResult(BaseModel):
    message_id: str
    sequence_number: Optional[str] = None
