# integrations/sqs_client.py
import re
import asyncio
from typing import Any, Dict, List, Optional
from botocore.exceptions import BotoCoreError, ClientError
from sqs_emitter.core.errors import ErrorCode, InvalidDestination
from sqs_emitter.core.logger import logger
from sqs_emitter.core.aws_client import get_sqs_client
from sqs_emitter.schemas.result import Err, Ok, Result
from sqs_emitter.schemas.sqs_models import BatchResult, DispatchOutcome, PublishResult

SQS_URL_PATTERN = re.compile(
    r"^https://sqs\.(?P<region>[a-zA-Z0-9-]+)\.amazonaws\.com/\d{12}/[a-zA-Z0-9_-]+(\.fifo)?$"
)

FIFO_SUFFIX = ".fifo"


def is_valid_sqs_url(queue_url: str) -> bool:
    return bool(queue_url) and SQS_URL_PATTERN.match(queue_url) is not None


def get_queue_name_from_url(queue_url: str) -> str:
    """
    Queue name from a queue URL, without the .fifo suffix.
    Raises InvalidDestination for anything that is not an SQS queue URL.
    """
    if not isinstance(queue_url, str) or not is_valid_sqs_url(queue_url):
        raise InvalidDestination(f"Invalid SQS URL: {queue_url}")

    queue_name = queue_url.split("/")[-1]
    if queue_name.endswith(FIFO_SUFFIX):
        return queue_name[:-len(FIFO_SUFFIX)]
    return queue_name


def get_region_from_url(queue_url: str) -> Optional[str]:
    match = SQS_URL_PATTERN.match(queue_url or "")
    return match.group("region") if match else None


class SqsTransport:
    """
    Thin async wrapper over the boto3 SQS client.

    boto3 calls block, so every request runs in a worker thread. Clients are
    created per queue region unless one is injected.
    """

    def __init__(self, client=None):
        self._client = client
        self._clients_by_region: Dict[str, Any] = {}

    def client_for(self, queue_url: str):
        if self._client is not None:
            return self._client

        region = get_region_from_url(queue_url)
        if region not in self._clients_by_region:
            self._clients_by_region[region] = get_sqs_client(region)
        return self._clients_by_region[region]

    async def send_one(self, queue_url: str, entry: Dict[str, Any]) -> Result[PublishResult]:
        client = self.client_for(queue_url)
        try:
            resp = await asyncio.to_thread(client.send_message, QueueUrl=queue_url, **entry)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"SQS send_message failed for {queue_url}: {e}")
            return Err(ErrorCode.SEND_SQS_MESSAGE_ERROR, str(e))

        msg_id = resp.get("MessageId", "")
        logger.debug(f"SQS publish ok msg_id={msg_id}")
        return Ok(PublishResult(
            message_id=msg_id,
            sequence_number=resp.get("SequenceNumber"),
        ))

    async def send_batch(self, queue_url: str, entries: List[Dict[str, Any]]) -> Result[BatchResult]:
        """
        Send up to SQS_MAX_BATCH_SIZE entries. Per-entry rejections come back
        inside an Ok result; only a failed request becomes an Err.
        """
        client = self.client_for(queue_url)
        try:
            resp = await asyncio.to_thread(client.send_message_batch, QueueUrl=queue_url, Entries=entries)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"SQS send_message_batch failed for {queue_url} ({len(entries)} entries): {e}")
            return Err(ErrorCode.SEND_SQS_MESSAGE_ERROR, str(e))

        return Ok(self.parse_batch_response(resp))

    @staticmethod
    def parse_batch_response(resp: Dict[str, Any]) -> BatchResult:
        successful = [
            DispatchOutcome(
                sequence_id=int(item["Id"]),
                ok=True,
                message_id=item.get("MessageId"),
                sequence_number=item.get("SequenceNumber"),
            )
            for item in resp.get("Successful") or []
        ]
        failed = [
            DispatchOutcome(
                sequence_id=int(item["Id"]),
                ok=False,
                error_code=item.get("Code"),
                error_message=item.get("Message") or item.get("Code"),
                sender_fault=item.get("SenderFault"),
            )
            for item in resp.get("Failed") or []
        ]
        return BatchResult(successful=successful, failed=failed)
