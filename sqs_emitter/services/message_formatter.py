# services/message_formatter.py
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from sqs_emitter.core.config import settings
from sqs_emitter.core.errors import ErrorCode, InvalidInput
from sqs_emitter.schemas.sqs_models import (
    Event,
    ExtraProperties,
    FormattedMessage,
    MessageAttribute,
    dumps_compact,
)
from sqs_emitter.utils.id_helper import random_value

QUEUE_NAME_ATTRIBUTE = "queueName"
SUBJECT_ATTRIBUTE = "subject"
MESSAGE_STRUCTURE_ATTRIBUTE = "messageStructure"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessageFormatter:
    """
    Turns a caller Event into a FormattedMessage.

    Pure apart from the clock and the random id generator, both injectable.
    The offload path is computed for every message so the size estimate made
    while partitioning matches the pointer body sent later.
    """

    def __init__(
        self,
        tenant: Optional[str] = None,
        service_name: Optional[str] = None,
        clock: Callable[[], datetime] = _utc_now,
        id_generator: Callable[[], str] = random_value,
    ):
        self.tenant = tenant
        self.service_name = service_name if service_name is not None else settings.SERVICE_NAME
        self.clock = clock
        self.id_generator = id_generator

    def format(self, event: Event, queue_name: str, sequence_id: Optional[int] = None) -> FormattedMessage:
        label = f"Event {sequence_id}" if sequence_id is not None else "Event"
        if event.content is None:
            raise InvalidInput(f"{label} has no content", ErrorCode.INVALID_EVENT)

        try:
            body = dumps_compact(event.content)
            attributes = self.format_attributes(event, queue_name)
            # Lone surrogates survive json.dumps but cannot go on the wire
            passthrough = (event.message_group_id or "", event.message_deduplication_id or "")
            for text in (body, *attributes, *(a.string_value for a in attributes.values()), *passthrough):
                text.encode("utf-8")
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"{label} cannot be serialized: {e}", ErrorCode.INVALID_EVENT) from e

        return FormattedMessage(
            sequence_id=sequence_id,
            body=body,
            attributes=attributes,
            message_group_id=event.message_group_id,
            message_deduplication_id=event.message_deduplication_id,
            extra=ExtraProperties(
                fixed_properties=list(event.fixed_properties),
                offload_path=self.get_offload_path(queue_name),
            ),
        )

    def format_attributes(self, event: Event, queue_name: str) -> Dict[str, MessageAttribute]:
        attributes = {
            QUEUE_NAME_ATTRIBUTE: MessageAttribute(string_value=queue_name),
        }

        if self.tenant:
            attributes[settings.TENANT_ATTRIBUTE_NAME] = MessageAttribute(string_value=self.tenant)

        # SQS has no Subject or MessageStructure field, they travel as attributes
        if event.subject:
            attributes[SUBJECT_ATTRIBUTE] = MessageAttribute(string_value=event.subject)
        if event.message_structure:
            attributes[MESSAGE_STRUCTURE_ATTRIBUTE] = MessageAttribute(string_value=event.message_structure)

        for name, value in event.attributes.items():
            attributes[name] = self.format_attribute(value)

        return attributes

    @staticmethod
    def format_attribute(value: Any) -> MessageAttribute:
        if isinstance(value, (list, tuple)):
            return MessageAttribute(data_type="String.Array", string_value=dumps_compact(list(value)))
        return MessageAttribute(data_type="String", string_value=str(value))

    def get_offload_path(self, queue_name: str) -> str:
        """
        {prefix}/{tenant}/{service}/{queue}/{yyyy}/{mm}/{dd}/{randomId}.json
        """
        if not self.tenant and settings.REQUIRE_TENANT_FOR_OFFLOAD:
            raise InvalidInput(
                "A tenant is required to build the content offload path",
                ErrorCode.MISSING_CLIENT_CODE,
            )

        now = self.clock()
        return "/".join([
            settings.CONTENT_PATH_PREFIX,
            self.tenant or settings.CONTENT_PATH_DEFAULT_TENANT,
            self.service_name,
            queue_name,
            f"{now.year:04d}",
            f"{now.month:02d}",
            f"{now.day:02d}",
            f"{self.id_generator()}.{settings.CONTENT_PATH_EXTENSION}",
        ])
