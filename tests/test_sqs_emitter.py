"""End-to-end tests for SqsEmitter with mocked boto3 clients."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

import pytest

from sqs_emitter import (
    ErrorCode,
    Event,
    InvalidDestination,
    InvalidInput,
    OffloadError,
    SqsEmitter,
    TargetResolutionError,
    TransportCallError,
)
from sqs_emitter.core.config import settings

from tests.helpers.aws_mocks import (
    CONTENT_PATH,
    FIFO_QUEUE_URL,
    QUEUE_NAME,
    QUEUE_URL,
    TENANT,
    batch_response,
    client_error,
    huge_content,
    sent_body,
    sent_entries,
)

POINTER_EAST = {
    "offloadLocation": {
        "path": CONTENT_PATH,
        "bucketName": "sample-bucket-name-us-east-1",
        "region": "us-east-1",
    },
    "bar": "bar",
}


def small_events(count):
    return [Event(content={"foo": "bar", "index": index}) for index in range(count)]


def offloaded_event():
    return Event(content=huge_content(bar="bar"), fixed_properties=["bar"])


# =============================================================================
# publish_events
# =============================================================================


class TestPublishEvents:

    @pytest.mark.asyncio
    async def test_small_events_are_batched_by_ten(self, emitter, sqs_client):
        summary = await emitter.publish_events(QUEUE_URL, small_events(15))

        batches = [call.kwargs["Entries"] for call in sqs_client.send_message_batch.call_args_list]
        assert sorted(len(entries) for entries in batches) == [5, 10]
        assert summary.success_count == 15
        assert summary.failed_count == 0
        assert [o.sequence_id for o in summary.success] == list(range(1, 16))

    @pytest.mark.asyncio
    async def test_entries_carry_body_and_attributes(self, emitter, sqs_client):
        event = Event(content={"foo": "bar"}, attributes={"kind": "order", "tags": ["a", "b"]}, subject="Created")

        await emitter.publish_events(QUEUE_URL, [event])

        entry, = sent_entries(sqs_client)
        assert entry["Id"] == "1"
        assert entry["MessageBody"] == '{"foo":"bar"}'
        assert entry["MessageAttributes"] == {
            "queueName": {"DataType": "String", "StringValue": QUEUE_NAME},
            "tenant-id": {"DataType": "String", "StringValue": TENANT},
            "subject": {"DataType": "String", "StringValue": "Created"},
            "kind": {"DataType": "String", "StringValue": "order"},
            "tags": {"DataType": "String.Array", "StringValue": '["a","b"]'},
        }

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_original_positions(self, emitter, sqs_client):
        sqs_client.send_message_batch.side_effect = (
            lambda QueueUrl, Entries: batch_response(Entries, failed_ids={"3", "7"})
        )

        summary = await emitter.publish_events(QUEUE_URL, small_events(15))

        assert summary.success_count == 13
        assert [o.sequence_id for o in summary.failed] == [3, 7]
        assert summary.failed[0].error_code == "InvalidParameterValue"
        assert summary.failed[0].error_message == "Rejected by queue"
        assert summary.failed[0].sender_fault is True

    @pytest.mark.asyncio
    async def test_large_content_is_offloaded(self, emitter, sqs_client, s3_client, s3_client_factory):
        summary = await emitter.publish_events(QUEUE_URL, [offloaded_event()])

        assert summary.success_count == 1
        s3_client.put_object.assert_called_once()
        assert s3_client.put_object.call_args.kwargs["Bucket"] == "sample-bucket-name-us-east-1"
        assert s3_client.put_object.call_args.kwargs["Key"] == CONTENT_PATH

        region, credentials = s3_client_factory.call_args.args
        assert region == "us-east-1"
        assert credentials.access_key_id == "accessKeyIdTest"

        entry, = sent_entries(sqs_client)
        assert sent_body(entry) == POINTER_EAST

    @pytest.mark.asyncio
    async def test_upload_falls_back_to_next_bucket(self, emitter, sqs_client, s3_client):
        s3_client.put_object.side_effect = [client_error("PutObject"), {"ETag": "etag"}]

        summary = await emitter.publish_events(QUEUE_URL, [offloaded_event()])

        assert summary.success_count == 1
        location = sent_body(sent_entries(sqs_client)[0])["offloadLocation"]
        assert location["bucketName"] == "sample-bucket-name-us-west-1"
        assert location["region"] == "us-west-1"

    @pytest.mark.asyncio
    async def test_failed_upload_is_reported_and_siblings_sent(self, emitter, sqs_client, s3_client):
        s3_client.put_object.side_effect = client_error("PutObject")

        summary = await emitter.publish_events(QUEUE_URL, [Event(content={"foo": "bar"}), offloaded_event()])

        assert [entry["Id"] for entry in sent_entries(sqs_client)] == ["1"]
        assert [o.sequence_id for o in summary.success] == [1]
        failure, = summary.failed
        assert failure.sequence_id == 2
        assert failure.error_code == ErrorCode.S3_ERROR.value
        assert failure.to_error().code == ErrorCode.S3_ERROR

    @pytest.mark.asyncio
    async def test_counts_always_add_up(self, emitter, sqs_client, s3_client):
        s3_client.put_object.side_effect = client_error("PutObject")
        sqs_client.send_message_batch.side_effect = (
            lambda QueueUrl, Entries: batch_response(Entries, failed_ids={"2"})
        )
        events = small_events(4) + [offloaded_event()] + small_events(8)

        summary = await emitter.publish_events(QUEUE_URL, events)

        assert summary.success_count + summary.failed_count == len(events)
        assert [o.sequence_id for o in summary.failed] == [2, 5]

    @pytest.mark.asyncio
    async def test_failed_request_reported_per_message(self, emitter, sqs_client):
        sqs_client.send_message_batch.side_effect = client_error("SendMessageBatch")

        summary = await emitter.publish_events(QUEUE_URL, small_events(3))

        assert summary.failed_count == 3
        assert {o.error_code for o in summary.failed} == {ErrorCode.SEND_SQS_MESSAGE_ERROR.value}

    @pytest.mark.asyncio
    async def test_dict_events_are_accepted(self, emitter, sqs_client):
        summary = await emitter.publish_events(QUEUE_URL, [
            {"content": {"foo": "bar"}, "payloadFixedProperties": ["foo"], "attributes": {"kind": "order"}},
        ])

        assert summary.success_count == 1
        assert sent_entries(sqs_client)[0]["MessageAttributes"]["kind"]["StringValue"] == "order"

    @pytest.mark.parametrize("key", ["fixedProperties", "payloadFixedProperties", "fixed_properties"])
    @pytest.mark.asyncio
    async def test_dict_event_fixed_properties_stay_inline(self, emitter, sqs_client, key):
        summary = await emitter.publish_events(QUEUE_URL, [
            {"content": {"bar": "bar", "foo": "x" * 300_000}, key: ["bar"]},
        ])

        assert summary.success_count == 1
        assert sent_body(sent_entries(sqs_client)[0]) == POINTER_EAST

    @pytest.mark.asyncio
    async def test_no_events(self, emitter, sqs_client, ram_client):
        summary = await emitter.publish_events(QUEUE_URL, [])

        assert (summary.success_count, summary.failed_count) == (0, 0)
        sqs_client.send_message_batch.assert_not_called()
        ram_client.list_resources.assert_not_called()

    @pytest.mark.asyncio
    async def test_repeated_calls_give_equal_summaries(self, emitter):
        first = await emitter.publish_events(QUEUE_URL, small_events(12))
        second = await emitter.publish_events(QUEUE_URL, small_events(12))

        assert first.model_dump() == second.model_dump()

    @pytest.mark.asyncio
    async def test_fifo_fields_and_sequence_numbers(self, emitter, sqs_client):
        sqs_client.send_message_batch.side_effect = lambda QueueUrl, Entries: {
            "Successful": [
                {"Id": e["Id"], "MessageId": f"msg-{e['Id']}", "SequenceNumber": f"1000{e['Id']}"}
                for e in Entries
            ],
        }
        event = Event(content={"foo": "bar"}, message_group_id="group-1", message_deduplication_id="dedup-1")

        summary = await emitter.publish_events(FIFO_QUEUE_URL, [event])

        entry, = sent_entries(sqs_client)
        assert entry["MessageGroupId"] == "group-1"
        assert entry["MessageDeduplicationId"] == "dedup-1"
        assert entry["MessageAttributes"]["queueName"]["StringValue"] == QUEUE_NAME
        assert summary.success[0].sequence_number == "10001"


class TestCallLevelErrors:

    @pytest.mark.asyncio
    async def test_invalid_queue_url(self, emitter, sqs_client, ram_client):
        with pytest.raises(InvalidDestination):
            await emitter.publish_events("https://example.com/queue", small_events(2))

        sqs_client.send_message_batch.assert_not_called()
        ram_client.list_resources.assert_not_called()

    @pytest.mark.asyncio
    async def test_event_without_content(self, emitter, sqs_client):
        with pytest.raises(InvalidInput) as exc_info:
            await emitter.publish_events(QUEUE_URL, [Event(content={"a": 1}), Event(subject="empty")])

        assert "Event 2" in exc_info.value.message
        sqs_client.send_message_batch.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_dict_event(self, emitter):
        with pytest.raises(InvalidInput) as exc_info:
            await emitter.publish_events(QUEUE_URL, [{"content": "x", "attributes": "not-a-mapping"}])

        assert exc_info.value.code == ErrorCode.INVALID_EVENT

    @pytest.mark.asyncio
    async def test_unknown_dict_key_is_rejected(self, emitter, sqs_client):
        with pytest.raises(InvalidInput) as exc_info:
            await emitter.publish_events(QUEUE_URL, [{"content": {"bar": "bar"}, "fixedProperty": ["bar"]}])

        assert exc_info.value.code == ErrorCode.INVALID_EVENT
        sqs_client.send_message_batch.assert_not_called()

    @pytest.mark.parametrize("content", [
        {"at": datetime(2024, 1, 1)},
        {"amount": Decimal("1.5")},
        {"id": UUID("12345678-1234-5678-1234-567812345678")},
        {"s": "\ud800"},
    ])
    @pytest.mark.asyncio
    async def test_unserializable_content_is_invalid_input(self, emitter, sqs_client, content):
        with pytest.raises(InvalidInput) as exc_info:
            await emitter.publish_events(QUEUE_URL, [Event(content={"ok": 1}), Event(content=content)])

        assert exc_info.value.code == ErrorCode.INVALID_EVENT
        assert "Event 2" in exc_info.value.message
        sqs_client.send_message_batch.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_tenant_when_required(self, emitter, monkeypatch, sqs_client):
        monkeypatch.setattr(settings, "REQUIRE_TENANT_FOR_OFFLOAD", True)
        emitter.tenant = None

        with pytest.raises(InvalidInput) as exc_info:
            await emitter.publish_events(QUEUE_URL, small_events(1))

        assert exc_info.value.code == ErrorCode.MISSING_CLIENT_CODE
        sqs_client.send_message_batch.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_tenant_uses_placeholder(self, emitter, s3_client):
        emitter.tenant = None

        await emitter.publish_events(QUEUE_URL, [offloaded_event()])

        assert s3_client.put_object.call_args.kwargs["Key"].startswith("eventContent/storage/service-name/")

    @pytest.mark.parametrize("client_fixture, method, code", [
        ("ram_client", "list_resources", ErrorCode.RAM_ERROR),
        ("ssm_client", "get_parameter", ErrorCode.SSM_ERROR),
        ("sts_client", "assume_role", ErrorCode.ASSUME_ROLE_ERROR),
    ])
    @pytest.mark.asyncio
    async def test_target_resolution_failure_aborts_call(
        self, request, emitter, sqs_client, s3_client, client_fixture, method, code
    ):
        getattr(request.getfixturevalue(client_fixture), method).side_effect = client_error(method)

        with pytest.raises(TargetResolutionError) as exc_info:
            await emitter.publish_events(QUEUE_URL, [Event(content={"foo": "bar"}), offloaded_event()])

        assert exc_info.value.code == code
        s3_client.put_object.assert_not_called()
        sqs_client.send_message_batch.assert_not_called()


class TestStorageResolution:

    @pytest.mark.asyncio
    async def test_not_resolved_without_large_content(self, emitter, ram_client, ssm_client, sts_client):
        await emitter.publish_events(QUEUE_URL, small_events(5))

        ram_client.list_resources.assert_not_called()
        ssm_client.get_parameter.assert_not_called()
        sts_client.assume_role.assert_not_called()

    @pytest.mark.asyncio
    async def test_resolved_once_per_call(self, emitter, ram_client, ssm_client):
        await emitter.publish_events(QUEUE_URL, [offloaded_event(), offloaded_event(), offloaded_event()])

        assert ram_client.list_resources.call_count == 1
        assert ssm_client.get_parameter.call_count == 1

    @pytest.mark.asyncio
    async def test_resolved_again_on_next_call(self, emitter, ram_client):
        await emitter.publish_events(QUEUE_URL, [offloaded_event()])
        await emitter.publish_events(QUEUE_URL, [offloaded_event()])

        assert ram_client.list_resources.call_count == 2

    @pytest.mark.asyncio
    async def test_resolver_invalidated_when_call_ends(self, emitter, monkeypatch, ram_client):
        resolver = emitter.get_resolver()
        monkeypatch.setattr(emitter, "get_resolver", lambda: resolver)

        await emitter.publish_events(QUEUE_URL, [offloaded_event()])

        assert ram_client.list_resources.call_count == 1
        assert resolver.is_resolved is False

    @pytest.mark.asyncio
    async def test_one_s3_client_per_target(self, emitter, s3_client, s3_client_factory):
        def put_object(Bucket, Key, Body):
            if Bucket == "sample-bucket-name-us-east-1":
                raise client_error("PutObject")
            return {"ETag": "etag"}

        s3_client.put_object.side_effect = put_object

        summary = await emitter.publish_events(QUEUE_URL, [offloaded_event() for _ in range(4)])

        assert summary.success_count == 4
        assert s3_client.put_object.call_count == 8
        assert [call.args[0] for call in s3_client_factory.call_args_list] == ["us-east-1", "us-west-1"]


# =============================================================================
# publish_event
# =============================================================================


class TestPublishEvent:

    @pytest.mark.asyncio
    async def test_single_event(self, emitter, sqs_client):
        result = await emitter.publish_event(QUEUE_URL, Event(content={"foo": "bar"}))

        assert result.message_id == "4ac0a219-1122-33b3-4445-5556666d734d"
        kwargs = sqs_client.send_message.call_args.kwargs
        assert kwargs["QueueUrl"] == QUEUE_URL
        assert kwargs["MessageBody"] == '{"foo":"bar"}'
        assert "Id" not in kwargs

    @pytest.mark.asyncio
    async def test_single_large_event_is_offloaded(self, emitter, sqs_client, s3_client):
        await emitter.publish_event(QUEUE_URL, offloaded_event())

        assert s3_client.put_object.call_args.kwargs["Key"] == CONTENT_PATH
        assert sent_body(sqs_client.send_message.call_args.kwargs) == POINTER_EAST

    @pytest.mark.asyncio
    async def test_upload_failure_raises(self, emitter, sqs_client, s3_client):
        s3_client.put_object.side_effect = client_error("PutObject")

        with pytest.raises(OffloadError) as exc_info:
            await emitter.publish_event(QUEUE_URL, offloaded_event())

        assert exc_info.value.code == ErrorCode.S3_ERROR
        sqs_client.send_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_send_failure_raises(self, emitter, sqs_client):
        sqs_client.send_message.side_effect = client_error("SendMessage")

        with pytest.raises(TransportCallError) as exc_info:
            await emitter.publish_event(QUEUE_URL, Event(content={"foo": "bar"}))

        assert exc_info.value.code == ErrorCode.SEND_SQS_MESSAGE_ERROR

    @pytest.mark.asyncio
    async def test_invalid_queue_url(self, emitter, sqs_client):
        with pytest.raises(InvalidDestination):
            await emitter.publish_event("not-a-queue", Event(content={"foo": "bar"}))

        sqs_client.send_message.assert_not_called()


def test_default_collaborators_are_created():
    emitter = SqsEmitter(tenant=TENANT)

    assert emitter.dispatcher.transport is emitter.transport
    assert emitter.dispatcher.max_concurrency == settings.MAX_CONCURRENCY
    assert emitter.get_resolver() is not emitter.get_resolver()
