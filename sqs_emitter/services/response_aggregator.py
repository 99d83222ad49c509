# services/response_aggregator.py
from typing import Iterable

from sqs_emitter.schemas.sqs_models import BatchResult, DispatchOutcome, DispatchSummary


def _by_sequence_id(outcome: DispatchOutcome) -> int:
    return outcome.sequence_id if outcome.sequence_id is not None else 0


def aggregate(batch_results: Iterable[BatchResult]) -> DispatchSummary:
    """
    Merge batch results into one summary. Batches may finish in any order,
    so both lists are keyed and sorted by sequence id.
    """
    summary = DispatchSummary()

    for result in batch_results:
        summary.success.extend(result.successful)
        summary.failed.extend(sorted(result.failed, key=_by_sequence_id))

    summary.success.sort(key=_by_sequence_id)
    summary.failed.sort(key=_by_sequence_id)
    summary.success_count = len(summary.success)
    summary.failed_count = len(summary.failed)

    return summary
