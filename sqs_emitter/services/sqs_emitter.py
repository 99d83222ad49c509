# services/sqs_emitter.py
"""
SQS Emitter

Entry point for publishing events to an SQS queue:

- publish_event: one message, errors raise
- publish_events: any number of messages, split into size-legal batches and
  sent with bounded concurrency; per-message failures are reported in the
  returned summary

Content above the 256 KiB message limit is uploaded to the shared storage
buckets and replaced by a pointer body that keeps the event's fixed
properties inline.
"""

import time
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Union

from pydantic import ValidationError

from sqs_emitter.core.config import settings
from sqs_emitter.core.errors import ErrorCode, InvalidInput, OffloadError, TransportCallError
from sqs_emitter.core.logger import logger
from sqs_emitter.integrations.assume_role import AssumeRole
from sqs_emitter.integrations.parameter_store import ParameterStore, StorageTargetResolver
from sqs_emitter.integrations.s3_uploader import S3Uploader
from sqs_emitter.integrations.sqs_client import SqsTransport, get_queue_name_from_url
from sqs_emitter.schemas.result import Err
from sqs_emitter.schemas.sqs_models import DispatchSummary, Event, PublishResult, StorageTarget
from sqs_emitter.services.batch_partitioner import BatchPartitioner
from sqs_emitter.services.dispatcher import BatchDispatcher
from sqs_emitter.services.message_formatter import MessageFormatter
from sqs_emitter.services.response_aggregator import aggregate
from sqs_emitter.services.size_evaluator import SizeEvaluator, apply_storage_target
from sqs_emitter.utils.id_helper import random_value
from sqs_emitter.utils.log_dispatch import log_dispatch

EventInput = Union[Event, dict]


class SqsEmitter:
    """
    Publishes events to SQS.

    Every collaborator can be injected; the defaults talk to AWS through
    boto3. `tenant` may be set after construction and is read on every call.
    """

    def __init__(
        self,
        sqs_client=None,
        tenant: Optional[str] = None,
        *,
        transport: Optional[SqsTransport] = None,
        uploader: Optional[S3Uploader] = None,
        parameter_store: Optional[ParameterStore] = None,
        assume_role: Optional[AssumeRole] = None,
        clock: Optional[Callable[[], datetime]] = None,
        id_generator: Callable[[], str] = random_value,
        max_concurrency: int = settings.MAX_CONCURRENCY,
    ):
        self.tenant = tenant
        self.transport = transport or SqsTransport(sqs_client)
        self.uploader = uploader or S3Uploader()
        self.parameter_store = parameter_store or ParameterStore()
        self.assume_role = assume_role or AssumeRole()
        self.clock = clock
        self.id_generator = id_generator

        self.size_evaluator = SizeEvaluator()
        self.partitioner = BatchPartitioner()
        self.dispatcher = BatchDispatcher(
            self.transport,
            self.uploader,
            max_concurrency=max_concurrency,
            partitioner=self.partitioner,
        )

    # ========================================================================
    # CALL-SCOPED COLLABORATORS
    # ========================================================================

    def get_formatter(self) -> MessageFormatter:
        kwargs = {"tenant": self.tenant, "id_generator": self.id_generator}
        if self.clock is not None:
            kwargs["clock"] = self.clock
        return MessageFormatter(**kwargs)

    def get_resolver(self) -> StorageTargetResolver:
        """Fresh resolver per call: targets and credentials never outlive it."""
        return StorageTargetResolver(self.parameter_store, self.assume_role)

    @staticmethod
    def to_event(event: EventInput) -> Event:
        if isinstance(event, Event):
            return event
        try:
            return Event.model_validate(event)
        except ValidationError as e:
            raise InvalidInput(f"Invalid event: {e}", ErrorCode.INVALID_EVENT) from e

    # ========================================================================
    # PUBLISH
    # ========================================================================

    async def publish_event(self, queue_url: str, event: EventInput) -> PublishResult:
        """
        Publish a single event.

        Raises:
            InvalidDestination: malformed queue URL, nothing sent
            InvalidInput: event without content, or content that cannot be serialized
            TargetResolutionError: content needs offload but no bucket could be resolved
            OffloadError: every bucket rejected the upload
            TransportCallError: send_message failed
        """
        queue_name = get_queue_name_from_url(queue_url)
        message = self.get_formatter().format(self.to_event(event), queue_name)
        message, _ = self.size_evaluator.evaluate(message)

        if message.limit_exceeded:
            resolver = self.get_resolver()
            try:
                targets = await resolver.resolve()
                upload = await self.uploader.upload_content(targets, message.extra.offload_path, message.offload_body)
            finally:
                resolver.invalidate()
            if isinstance(upload, Err):
                raise OffloadError(upload.message, upload.kind)
            message = apply_storage_target(message, upload.value)

        sent = await self.transport.send_one(queue_url, message.to_entry())
        if isinstance(sent, Err):
            raise TransportCallError(sent.message, sent.kind)

        return sent.value

    async def publish_events(self, queue_url: str, events: Iterable[EventInput]) -> DispatchSummary:
        """
        Publish many events. Only call-level failures raise (bad queue URL,
        invalid event, storage target resolution); anything else is reported
        per message in the summary, keyed by the event's 1-based position.
        A failed outcome converts to its exception with DispatchOutcome.to_error()
        for callers that prefer to raise.
        """
        started = time.time()

        queue_name = get_queue_name_from_url(queue_url)
        formatter = self.get_formatter()

        sized_messages = [
            self.size_evaluator.evaluate(formatter.format(self.to_event(event), queue_name, sequence_id))
            for sequence_id, event in enumerate(events, start=1)
        ]
        batches = self.partitioner.partition(sized_messages)

        offloaded_count = sum(1 for message, _ in sized_messages if message.limit_exceeded)

        resolver = self.get_resolver()
        try:
            # Buckets are only looked up when some message needs them
            targets: List[StorageTarget] = []
            if offloaded_count:
                targets = await resolver.resolve()

            logger.debug(
                f"Dispatching {len(sized_messages)} messages to {queue_name} in {len(batches)} batches "
                f"({offloaded_count} offloaded)"
            )

            batch_results = await self.dispatcher.dispatch(queue_url, batches, targets)
        finally:
            resolver.invalidate()

        summary = aggregate(batch_results)

        return log_dispatch(
            queue_name,
            summary,
            batch_count=len(batches),
            offloaded_count=offloaded_count,
            duration_ms=int((time.time() - started) * 1000),
        )
