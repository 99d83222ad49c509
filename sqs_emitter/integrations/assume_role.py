# integrations/assume_role.py
import asyncio
from botocore.exceptions import BotoCoreError, ClientError
from sqs_emitter.core.config import settings
from sqs_emitter.core.errors import ErrorCode, TargetResolutionError
from sqs_emitter.core.logger import logger
from sqs_emitter.core.aws_client import get_sts_client
from sqs_emitter.schemas.sqs_models import Credentials


class AssumeRole:
    """Temporary credentials for the storage role of a bucket."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_sts_client()
        return self._client

    @property
    def role_session_name(self) -> str:
        return settings.SERVICE_NAME or settings.PROJECT_NAME

    async def get_credentials(self, role_arn: str) -> Credentials:
        """
        Assume `role_arn` through STS.

        Raises:
            TargetResolutionError: code ASSUME_ROLE_ERROR when STS refuses.
        """
        try:
            assumed_role = await asyncio.to_thread(
                self.client.assume_role,
                RoleArn=role_arn,
                RoleSessionName=self.role_session_name,
                DurationSeconds=settings.ROLE_SESSION_DURATION,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Assume role failed for {role_arn}: {e}")
            raise TargetResolutionError(
                f"Error while trying to assume role arn {role_arn}: {e}",
                ErrorCode.ASSUME_ROLE_ERROR,
            ) from e

        creds = assumed_role["Credentials"]
        return Credentials(
            access_key_id=creds["AccessKeyId"],
            secret_access_key=creds["SecretAccessKey"],
            session_token=creds.get("SessionToken"),
            expiration=creds.get("Expiration"),
        )
