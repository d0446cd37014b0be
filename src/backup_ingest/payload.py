"""
Queue message payload extractors.

Queues often wrap the originally enqueued payload in a transport envelope.
For example, if the original payload was ``"...ORIGINAL_QUEUED_PAYLOAD..."``
an AWS SQS receive returns::

    {
      "MessageId": "0d78c84f-1b42-c0d7-f7a9-26019c0d78c8",
      "ReceiptHandle": "7091b426019c0d78c84fecaf7a97f1a9",
      "MD5OfBody": "6ccd99d9952314c66989f4652c6348a6",
      "Body": "...ORIGINAL_QUEUED_PAYLOAD...",
      "Attributes": {
        "SenderId": "4d3d22fd87e7a68ab6d342bde692ad01",
        "ApproximateFirstReceiveTimestamp": "1488238813744",
        "ApproximateReceiveCount": "1",
        "SentTimestamp": "1488238577233"
      }
    }

A payload extractor unwraps the envelope so metadata extractors see only
the original payload.
"""

import json
from typing import Any, Protocol, runtime_checkable

from aiokafka.structs import ConsumerRecord

from core.errors.exceptions import ExtensionNotImplementedError


@runtime_checkable
class QueueMessagePayloadExtractor(Protocol):
    def extract(self, ingest_id: str, queue_message: Any) -> Any:
        """Return the original payload wrapped by ``queue_message``."""
        ...


class UnimplementedPayloadExtractor:
    """Placeholder used when a deployment supplies no payload extractor."""

    def extract(self, ingest_id: str, queue_message: Any) -> Any:
        raise ExtensionNotImplementedError(
            "extract_queue_message_payload not implemented",
            context={"ingest_id": ingest_id},
        )


def _decode_json_text(body: Any) -> Any:
    """JSON-decode a text body, leaving non-JSON text as-is."""
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8")
    if isinstance(body, str):
        try:
            return json.loads(body)
        except json.JSONDecodeError:
            return body
    return body


class SqsEnvelopePayloadExtractor:
    """Unwrap the ``Body`` of an SQS-style receive envelope."""

    def __init__(self, body_key: str = "Body", decode_json: bool = True):
        self.body_key = body_key
        self.decode_json = decode_json

    def extract(self, ingest_id: str, queue_message: Any) -> Any:
        if isinstance(queue_message, str):
            queue_message = json.loads(queue_message)

        if not isinstance(queue_message, dict) or self.body_key not in queue_message:
            raise ValueError(
                f"Queue message has no {self.body_key!r} field (ingest_id={ingest_id})"
            )

        body = queue_message[self.body_key]
        return _decode_json_text(body) if self.decode_json else body


class KafkaRecordPayloadExtractor:
    """Decode the value of an aiokafka ConsumerRecord."""

    def extract(self, ingest_id: str, queue_message: ConsumerRecord) -> Any:
        if queue_message.value is None:
            raise ValueError(
                f"Kafka record {queue_message.topic}[{queue_message.partition}]"
                f"@{queue_message.offset} has no value (ingest_id={ingest_id})"
            )
        return _decode_json_text(queue_message.value)
