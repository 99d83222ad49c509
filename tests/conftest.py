"""Pytest configuration and shared fixtures for sqs_emitter tests."""

import json
from unittest.mock import MagicMock

import pytest

from sqs_emitter.core.config import settings
from sqs_emitter.integrations.assume_role import AssumeRole
from sqs_emitter.integrations.parameter_store import ParameterStore
from sqs_emitter.integrations.s3_uploader import S3Uploader
from sqs_emitter.services.sqs_emitter import SqsEmitter

from tests.helpers.aws_mocks import (
    BUCKETS,
    FAKE_NOW,
    PARAMETER_ARN,
    RANDOM_ID,
    SERVICE_NAME,
    STS_CREDENTIALS,
    TENANT,
    batch_response,
)


@pytest.fixture(autouse=True)
def service_name(monkeypatch):
    monkeypatch.setattr(settings, "SERVICE_NAME", SERVICE_NAME)
    return SERVICE_NAME


@pytest.fixture
def fixed_clock():
    return lambda: FAKE_NOW


@pytest.fixture
def fixed_id():
    return lambda: RANDOM_ID


# =============================================================================
# boto3 client doubles
# =============================================================================


@pytest.fixture
def sqs_client():
    client = MagicMock()
    client.send_message_batch.side_effect = lambda QueueUrl, Entries: batch_response(Entries)
    client.send_message.return_value = {"MessageId": "4ac0a219-1122-33b3-4445-5556666d734d"}
    return client


@pytest.fixture
def ram_client():
    client = MagicMock()
    client.list_resources.return_value = {"resources": [{"arn": PARAMETER_ARN}]}
    return client


@pytest.fixture
def ssm_client():
    client = MagicMock()
    client.get_parameter.return_value = {"Parameter": {"Value": json.dumps(BUCKETS)}}
    return client


@pytest.fixture
def sts_client():
    client = MagicMock()
    client.assume_role.return_value = {"Credentials": STS_CREDENTIALS}
    return client


@pytest.fixture
def s3_client():
    client = MagicMock()
    client.put_object.return_value = {"ETag": "5d41402abc4b2a76b9719d911017c590"}
    return client


@pytest.fixture
def s3_client_factory(s3_client):
    return MagicMock(return_value=s3_client)


# =============================================================================
# Emitter collaborators
# =============================================================================


@pytest.fixture
def parameter_store(ram_client, ssm_client):
    return ParameterStore(ram_client=ram_client, ssm_client=ssm_client)


@pytest.fixture
def assume_role(sts_client):
    return AssumeRole(client=sts_client)


@pytest.fixture
def uploader(s3_client_factory):
    return S3Uploader(client_factory=s3_client_factory)


@pytest.fixture
def emitter(sqs_client, uploader, parameter_store, assume_role, fixed_clock, fixed_id):
    return SqsEmitter(
        sqs_client,
        tenant=TENANT,
        uploader=uploader,
        parameter_store=parameter_store,
        assume_role=assume_role,
        clock=fixed_clock,
        id_generator=fixed_id,
    )
