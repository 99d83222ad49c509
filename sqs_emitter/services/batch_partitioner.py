# services/batch_partitioner.py
from typing import Iterable, List, Tuple

from sqs_emitter.core.config import settings
from sqs_emitter.schemas.sqs_models import FormattedMessage

Batch = List[FormattedMessage]


class BatchPartitioner:
    """
    Greedy, order-preserving grouping of sized messages into batches that fit
    both the byte budget and the entry count of one batch request.
    """

    def __init__(
        self,
        max_batch_bytes: int = settings.SQS_MESSAGE_LIMIT_SIZE,
        max_batch_size: int = settings.SQS_MAX_BATCH_SIZE,
    ):
        self.max_batch_bytes = max_batch_bytes
        self.max_batch_size = max_batch_size

    def partition(self, sized_messages: Iterable[Tuple[FormattedMessage, int]]) -> List[Batch]:
        batches: List[Batch] = []
        current: Batch = []
        current_size = 0

        for message, size in sized_messages:
            if current and (
                current_size + size > self.max_batch_bytes
                or len(current) >= self.max_batch_size
            ):
                batches.append(current)
                current = []
                current_size = 0

            # A message larger than the budget still gets a batch of its own
            current.append(message)
            current_size += size

        if current:
            batches.append(current)

        return batches
