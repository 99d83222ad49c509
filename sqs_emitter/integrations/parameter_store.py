# integrations/parameter_store.py
"""
Storage Target Resolution

Finds the buckets that may hold offloaded message content:

1. RAM: the shared SSM parameter ARN owned by another account
2. SSM: the parameter value, a JSON list of buckets
3. STS: temporary credentials for every bucket role

The resolved list is cached on the resolver instance until invalidate() is
called. The emitter builds one resolver per publish call and invalidates it
when the call ends, so credentials are never reused across calls.
"""

import json
import asyncio
from typing import List, Optional
from pydantic import ValidationError
from botocore.exceptions import BotoCoreError, ClientError
from sqs_emitter.core.config import settings
from sqs_emitter.core.errors import ErrorCode, TargetResolutionError
from sqs_emitter.core.logger import logger
from sqs_emitter.core.aws_client import get_ram_client, get_ssm_client
from sqs_emitter.integrations.assume_role import AssumeRole
from sqs_emitter.schemas.sqs_models import StorageTarget


class ParameterStore:
    """Reads the shared storage parameter through RAM and SSM."""

    def __init__(self, ram_client=None, ssm_client=None):
        self._ram_client = ram_client
        self._ssm_client = ssm_client

    @property
    def ram_client(self):
        if self._ram_client is None:
            self._ram_client = get_ram_client()
        return self._ram_client

    @property
    def ssm_client(self):
        if self._ssm_client is None:
            self._ssm_client = get_ssm_client()
        return self._ssm_client

    @property
    def parameter_name(self) -> str:
        return settings.STORAGE_PARAMETER_NAME

    def _list_shared_resources(self) -> List[dict]:
        resources = []
        params = {"resourceOwner": settings.RAM_RESOURCE_OWNER}
        while True:
            response = self.ram_client.list_resources(**params)
            resources.extend(response.get("resources") or [])
            next_token = response.get("nextToken")
            if not next_token:
                return resources
            params["nextToken"] = next_token

    async def get_parameter_arn_from_ram(self) -> str:
        """
        ARN of the first shared resource whose ARN contains the storage
        parameter name.
        """
        try:
            resources = await asyncio.to_thread(self._list_shared_resources)
        except (ClientError, BotoCoreError) as e:
            raise TargetResolutionError(
                f"Resource Access Manager Error: {e}", ErrorCode.RAM_ERROR
            ) from e

        filtered = [r for r in resources if self.parameter_name in r.get("arn", "")]
        if not filtered:
            raise TargetResolutionError(
                f"Resource Access Manager Error: Unable to find resources with parameter "
                f"{self.parameter_name} in the ARN",
                ErrorCode.RAM_ERROR,
            )

        return filtered[0]["arn"]

    async def get_parameter_value(self) -> List[StorageTarget]:
        parameter_arn = await self.get_parameter_arn_from_ram()

        try:
            response = await asyncio.to_thread(
                self.ssm_client.get_parameter,
                Name=parameter_arn,
                WithDecryption=True,
            )
            raw_targets = json.loads(response["Parameter"]["Value"])
            return [StorageTarget.model_validate(raw) for raw in raw_targets]
        except (ClientError, BotoCoreError, KeyError, TypeError, ValueError, ValidationError) as e:
            raise TargetResolutionError(
                f"Unable to get parameter with arn {parameter_arn} - {e}", ErrorCode.SSM_ERROR
            ) from e


class StorageTargetResolver:
    """
    Call-scoped, memoized storage target resolution.

    Concurrent callers of resolve() share a single fetch. Failures are not
    cached, so a later call after invalidate() starts over.
    """

    def __init__(
        self,
        parameter_store: Optional[ParameterStore] = None,
        assume_role: Optional[AssumeRole] = None,
    ):
        self.parameter_store = parameter_store or ParameterStore()
        self.assume_role = assume_role or AssumeRole()
        self._targets: Optional[List[StorageTarget]] = None
        self._lock = asyncio.Lock()

    @property
    def is_resolved(self) -> bool:
        return self._targets is not None

    def invalidate(self) -> None:
        self._targets = None

    async def resolve(self) -> List[StorageTarget]:
        async with self._lock:
            if self._targets is None:
                self._targets = await self._fetch_targets()
            return self._targets

    async def _fetch_targets(self) -> List[StorageTarget]:
        targets = await self.parameter_store.get_parameter_value()
        if not targets:
            raise TargetResolutionError(
                f"Parameter {self.parameter_store.parameter_name} holds no storage targets",
                ErrorCode.SSM_ERROR,
            )

        # Default bucket first; sorted() is stable for the fallbacks
        targets = sorted(targets, key=lambda target: not target.default)

        resolved = []
        for target in targets:
            credentials = None
            if target.role_arn:
                credentials = await self.assume_role.get_credentials(target.role_arn)
            resolved.append(target.model_copy(update={"credentials": credentials}))

        logger.info(
            f"Resolved {len(resolved)} storage targets: "
            + ", ".join(f"{t.bucket_name} ({t.region})" for t in resolved)
        )
        return resolved
