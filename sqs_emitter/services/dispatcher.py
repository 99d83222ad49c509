# services/dispatcher.py
"""
Bounded-Concurrency Dispatcher

Runs one pipeline per batch, at most `max_concurrency` at a time:

1. Upload the content of every offloaded message (concurrently)
2. Swap in the final pointer bodies, which name the bucket actually used
3. Turn failed uploads into S3_ERROR outcomes; those messages are not sent
4. Send what is left with a single batch request, in original order
"""

import asyncio
from typing import Dict, List, Optional, Protocol, Sequence

from sqs_emitter.core.config import settings
from sqs_emitter.core.errors import ErrorCode
from sqs_emitter.core.logger import logger
from sqs_emitter.schemas.result import Err, Ok, Result
from sqs_emitter.schemas.sqs_models import (
    BatchResult,
    DispatchOutcome,
    FormattedMessage,
    StorageTarget,
)
from sqs_emitter.services.batch_partitioner import Batch, BatchPartitioner
from sqs_emitter.services.size_evaluator import apply_storage_target


# ============================================================================
# INTERFACES (PROTOCOLS)
# ============================================================================

class BatchTransport(Protocol):
    """Interface for the queue batch-send primitive."""

    async def send_batch(self, queue_url: str, entries: List[dict]) -> Result[BatchResult]:
        ...


class ContentUploader(Protocol):
    """Interface for the content store."""

    async def upload_content(self, targets: List[StorageTarget], path: str, body: str) -> Result[StorageTarget]:
        ...


# ============================================================================
# IMPLEMENTATION
# ============================================================================

class BatchDispatcher:

    def __init__(
        self,
        transport: BatchTransport,
        uploader: ContentUploader,
        max_concurrency: int = settings.MAX_CONCURRENCY,
        partitioner: Optional[BatchPartitioner] = None,
    ):
        self.transport = transport
        self.uploader = uploader
        self.max_concurrency = max_concurrency
        self.partitioner = partitioner or BatchPartitioner()

    async def dispatch(
        self,
        queue_url: str,
        batches: Sequence[Batch],
        targets: Optional[List[StorageTarget]] = None,
    ) -> List[BatchResult]:
        """
        Results come back in batch order, but nothing downstream relies on
        it: every outcome carries its sequence id.
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)
        shared_targets = list(targets or [])

        async def run(batch: Batch) -> BatchResult:
            async with semaphore:
                return await self.process_batch(queue_url, batch, shared_targets)

        return list(await asyncio.gather(*(run(batch) for batch in batches)))

    async def process_batch(
        self,
        queue_url: str,
        batch: Batch,
        targets: List[StorageTarget],
    ) -> BatchResult:
        result = BatchResult()

        to_offload = [message for message in batch if message.limit_exceeded]
        uploads = await asyncio.gather(*(self.offload(message, targets) for message in to_offload))

        offloaded: Dict[int, FormattedMessage] = {}
        for message, upload in zip(to_offload, uploads):
            if isinstance(upload, Ok):
                offloaded[message.sequence_id] = apply_storage_target(message, upload.value)
            else:
                result.failed.append(DispatchOutcome(
                    sequence_id=message.sequence_id,
                    ok=False,
                    error_code=upload.kind.value,
                    error_message=upload.message,
                ))

        transmit = []
        for message in batch:
            if not message.limit_exceeded:
                transmit.append(message)
            elif message.sequence_id in offloaded:
                transmit.append(offloaded[message.sequence_id])

        if transmit:
            for chunk in self.verify_batch_size(transmit):
                await self.send_chunk(queue_url, chunk, result)
        else:
            logger.debug("Every message of the batch failed to offload, skipping send")

        result.failed.sort(key=lambda outcome: outcome.sequence_id or 0)
        return result

    async def offload(self, message: FormattedMessage, targets: List[StorageTarget]) -> Result[StorageTarget]:
        if not targets:
            return Err(ErrorCode.S3_ERROR, "No storage targets available for offloaded content")
        return await self.uploader.upload_content(targets, message.extra.offload_path, message.offload_body)

    def verify_batch_size(self, transmit: List[FormattedMessage]) -> List[Batch]:
        """
        Check the real size of the final entries. The pointer bodies were
        sized with a reserved estimate for the bucket descriptor; if that
        estimate fell short, split the batch again using the true sizes.
        """
        sizes = [message.serialized_size() for message in transmit]
        if sum(sizes) <= self.partitioner.max_batch_bytes:
            return [transmit]

        logger.warning(
            f"Final batch size {sum(sizes)} exceeds {self.partitioner.max_batch_bytes} bytes "
            f"after offload, splitting {len(transmit)} entries"
        )
        return self.partitioner.partition(zip(transmit, sizes))

    async def send_chunk(self, queue_url: str, chunk: Batch, result: BatchResult) -> None:
        sent = await self.transport.send_batch(queue_url, [message.to_entry() for message in chunk])

        if isinstance(sent, Ok):
            result.successful.extend(sent.value.successful)
            result.failed.extend(sent.value.failed)
            return

        # No partial result for a failed request: every entry failed
        result.failed.extend(
            DispatchOutcome(
                sequence_id=message.sequence_id,
                ok=False,
                error_code=sent.kind.value,
                error_message=sent.message,
            )
            for message in chunk
        )
