import json
from datetime import datetime, timezone
from sqs_emitter.core.logger import logger
from sqs_emitter.schemas.sqs_models import DispatchSummary


def log_dispatch(
    queue_name: str,
    summary: DispatchSummary,
    batch_count: int,
    offloaded_count: int = 0,
    duration_ms: int = None
) -> DispatchSummary:
    """
    Structured log line for a finished publish_events call.
    """
    log_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event": "sqs_dispatch",
        "queue_name": queue_name,
        "batch_count": batch_count,
        "offloaded_count": offloaded_count,
        "success_count": summary.success_count,
        "failed_count": summary.failed_count,
        "duration_ms": duration_ms,
    }

    # Any failed message downgrades the line to a warning
    if summary.failed_count:
        log_data["event"] = "sqs_dispatch_partial"
        log_data["failed_codes"] = sorted({
            outcome.error_code for outcome in summary.failed if outcome.error_code
        })
        logger.warning(json.dumps(log_data))
    else:
        logger.info(json.dumps(log_data))

    return summary
