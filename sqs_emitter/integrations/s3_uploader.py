# integrations/s3_uploader.py
import json
import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple
from botocore.exceptions import BotoCoreError, ClientError
from sqs_emitter.core.errors import ErrorCode
from sqs_emitter.core.logger import logger
from sqs_emitter.core.aws_client import get_s3_client
from sqs_emitter.schemas.result import Err, Ok, Result
from sqs_emitter.schemas.sqs_models import StorageTarget


class S3Uploader:
    """
    Uploads offloaded message bodies to the first storage target that accepts
    them. Upload failures never raise; they come back as Err results.

    One client is kept per region. It is rebuilt when the target credentials
    change, which happens on every publish call since targets are resolved
    per call.
    """

    def __init__(self, client_factory: Optional[Callable] = None):
        self.client_factory = client_factory or get_s3_client
        self._clients: Dict[str, Tuple[Tuple, Any]] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _credentials_key(target: StorageTarget) -> Tuple:
        credentials = target.credentials
        if credentials is None:
            return ()
        return (credentials.access_key_id, credentials.session_token)

    async def get_client(self, target: StorageTarget):
        key = self._credentials_key(target)
        async with self._lock:
            cached = self._clients.get(target.region)
            if cached is not None and cached[0] == key:
                return cached[1]

            # boto3 client creation loads service models from disk
            client = await asyncio.to_thread(self.client_factory, target.region, target.credentials)
            self._clients[target.region] = (key, client)
            return client

    async def upload_to_bucket(self, target: StorageTarget, path: str, body: str) -> Result[dict]:
        try:
            client = await self.get_client(target)
            resp = await asyncio.to_thread(
                client.put_object,
                Bucket=target.bucket_name,
                Key=path,
                Body=body,
            )
            return Ok(resp)
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Upload to bucket {target.bucket_name} ({target.region}) failed: {e}")
            return Err(ErrorCode.S3_ERROR, str(e))

    async def upload_content(self, targets: List[StorageTarget], path: str, body: str) -> Result[StorageTarget]:
        """
        Try every target in order, one at a time. Returns the target that
        stored the content, or Err when all of them failed.
        """
        failed_uploads = []

        for target in targets:
            result = await self.upload_to_bucket(target, path, body)

            if isinstance(result, Ok):
                return Ok(target)

            failed_uploads.append({"bucketName": target.bucket_name, "error": result.message})

        logger.error(
            "The content could not be uploaded to any of the provided buckets: "
            + json.dumps(failed_uploads, indent=2)
        )
        return Err(ErrorCode.S3_ERROR, "Failed to upload to all provided s3 buckets")
