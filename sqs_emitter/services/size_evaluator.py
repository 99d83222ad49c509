# services/size_evaluator.py
import json
from typing import Any, Dict, Optional, Tuple

from sqs_emitter.core.config import settings
from sqs_emitter.core.logger import logger
from sqs_emitter.schemas.sqs_models import FormattedMessage, StorageTarget, dumps_compact
from sqs_emitter.utils.pick_properties import pick_properties

OFFLOAD_LOCATION_KEY = "offloadLocation"


def build_pointer_body(
    offload_path: str,
    pointer_properties: Dict[str, Any],
    target: Optional[StorageTarget] = None,
) -> Dict[str, Any]:
    """
    Body sent in place of offloaded content. The bucket descriptor is only
    known after upload, so the planning stage builds it without one.
    """
    location = {"path": offload_path}
    if target is not None:
        location.update(target.descriptor())
    return {OFFLOAD_LOCATION_KEY: location, **pointer_properties}


def apply_storage_target(message: FormattedMessage, target: StorageTarget) -> FormattedMessage:
    """Final pointer body for a message whose content now lives in `target`."""
    body = build_pointer_body(message.extra.offload_path, message.pointer_properties, target)
    return message.model_copy(update={"body": dumps_compact(body)})


class SizeEvaluator:
    """
    Measures formatted messages and plans content offload for the ones above
    the single-message limit.
    """

    def __init__(
        self,
        message_limit: int = settings.SQS_MESSAGE_LIMIT_SIZE,
        reserved_target_size: int = settings.ESTIMATED_BUCKET_INFO_SIZE,
    ):
        self.message_limit = message_limit
        self.reserved_target_size = reserved_target_size

    def evaluate(self, message: FormattedMessage) -> Tuple[FormattedMessage, int]:
        """
        Returns the message (stubbed when it needs offload) and the size it
        will have on the wire.

        For stubbed messages the size includes `reserved_target_size` bytes
        for the bucket descriptor added after upload.
        """
        size = message.serialized_size()
        if size <= self.message_limit:
            return message, size

        pointer_properties = {}
        if message.extra.fixed_properties:
            pointer_properties = pick_properties(json.loads(message.body), message.extra.fixed_properties)

        pointer_body = build_pointer_body(message.extra.offload_path, pointer_properties)
        stubbed = message.model_copy(update={
            "body": dumps_compact(pointer_body),
            "limit_exceeded": True,
            "offload_body": message.body,
            "pointer_properties": pointer_properties,
        })

        logger.info(
            f"Message {message.entry_id or ''} size {size} exceeds the {self.message_limit} bytes limit. "
            f"Content will be offloaded to {message.extra.offload_path}"
        )

        return stubbed, stubbed.serialized_size() + self.reserved_target_size
