"""Tests for queue message payload extractors."""

import json

import pytest
from aiokafka.structs import ConsumerRecord

from core.errors.exceptions import ExtensionNotImplementedError
from backup_ingest.payload import (
    KafkaRecordPayloadExtractor,
    SqsEnvelopePayloadExtractor,
    UnimplementedPayloadExtractor,
)


def create_consumer_record(value, offset: int = 0) -> ConsumerRecord:
    return ConsumerRecord(
        topic="test.backup.results",
        partition=0,
        offset=offset,
        timestamp=0,
        timestamp_type=0,
        key=None,
        value=value,
        checksum=None,
        serialized_key_size=0,
        serialized_value_size=len(value) if value else 0,
        headers=[],
    )


class TestUnimplementedPayloadExtractor:
    def test_raises_not_implemented(self):
        with pytest.raises(ExtensionNotImplementedError) as exc_info:
            UnimplementedPayloadExtractor().extract("ing-1", {"Body": "x"})

        assert isinstance(exc_info.value, NotImplementedError)
        assert exc_info.value.context == {"ingest_id": "ing-1"}


class TestSqsEnvelopePayloadExtractor:
    """Tests for SqsEnvelopePayloadExtractor."""

    def test_unwraps_json_body(self, email_payload):
        message = {
            "MessageId": "0d78c84f-1b42-c0d7-f7a9-26019c0d78c8",
            "ReceiptHandle": "7091b426019c0d78c84fecaf7a97f1a9",
            "Body": json.dumps(email_payload),
        }

        assert SqsEnvelopePayloadExtractor().extract("ing-1", message) == email_payload

    def test_accepts_envelope_as_text(self, email_payload):
        message = json.dumps({"Body": json.dumps(email_payload)})

        assert SqsEnvelopePayloadExtractor().extract("ing-1", message) == email_payload

    def test_non_json_body_returned_as_text(self):
        message = {"Body": "...ORIGINAL_QUEUED_PAYLOAD..."}

        assert (
            SqsEnvelopePayloadExtractor().extract("ing-1", message)
            == "...ORIGINAL_QUEUED_PAYLOAD..."
        )

    def test_decode_disabled(self):
        message = {"Body": '{"a": 1}'}

        extractor = SqsEnvelopePayloadExtractor(decode_json=False)

        assert extractor.extract("ing-1", message) == '{"a": 1}'

    def test_missing_body(self):
        with pytest.raises(ValueError, match="Body"):
            SqsEnvelopePayloadExtractor().extract("ing-1", {"MessageId": "m-1"})


class TestKafkaRecordPayloadExtractor:
    """Tests for KafkaRecordPayloadExtractor."""

    def test_decodes_json_value(self, httppost_payload):
        record = create_consumer_record(json.dumps(httppost_payload).encode("utf-8"))

        assert KafkaRecordPayloadExtractor().extract("ing-1", record) == httppost_payload

    def test_empty_value_rejected(self):
        record = create_consumer_record(None, offset=42)

        with pytest.raises(ValueError, match="@42 has no value"):
            KafkaRecordPayloadExtractor().extract("ing-1", record)
