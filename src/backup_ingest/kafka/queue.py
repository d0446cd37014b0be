"""
Kafka-backed received backup result queue.

Provides:
- Queue depth as consumer group lag (for the coordinator)
- Batch receive and per-record acknowledgement (for queue workers)

Offsets are committed manually, giving at-least-once processing. A commit
never passes a received record that is still unsettled or was released, so
a record a worker failed on is fetched again instead of being skipped.
"""

import logging
from typing import Dict, List, Optional, Set

from aiokafka import AIOKafkaConsumer, ConsumerRebalanceListener
from aiokafka.errors import KafkaError
from aiokafka.structs import ConsumerRecord, TopicPartition

from core.errors.exceptions import TransientError
from core.logging.setup import log_with_context
from backup_ingest.config import IngestConfig

logger = logging.getLogger(__name__)


class _ForgetRevokedPartitions(ConsumerRebalanceListener):
    """Drops offset tracking for partitions this consumer no longer owns."""

    def __init__(self, queue: "KafkaBackupResultQueue"):
        self.queue = queue

    async def on_partitions_revoked(self, revoked):
        self.queue.forget_partitions(revoked)

    async def on_partitions_assigned(self, assigned):
        pass


class KafkaBackupResultQueue:
    """
    Received backup results stored on a Kafka topic.

    Usage:
        >>> queue = KafkaBackupResultQueue(config)
        >>> await queue.start()
        >>> depth = await queue.get_available_received_backup_results()
        >>> records = await queue.receive(10)
        >>> await queue.acknowledge(records[0])
        >>> await queue.release(records[1])
        >>> await queue.stop()
    """

    def __init__(
        self,
        config: IngestConfig,
        consumer: Optional[AIOKafkaConsumer] = None,
        receive_timeout_ms: int = 1000,
    ):
        """
        Initialize the queue.

        Args:
            config: Ingest configuration with Kafka settings
            consumer: Pre-built consumer (default: built from config on start)
            receive_timeout_ms: How long receive() waits for records
        """
        self.config = config
        self.topic = config.kafka_topic
        self.receive_timeout_ms = receive_timeout_ms
        self._consumer = consumer
        self._running = False

        # Per partition: received offsets not yet acknowledged
        self._unsettled: Dict[TopicPartition, Set[int]] = {}
        # Per partition: released offsets awaiting redelivery
        self._released: Dict[TopicPartition, Set[int]] = {}
        self._next_offset: Dict[TopicPartition, int] = {}
        self._committed: Dict[TopicPartition, int] = {}

    async def start(self) -> None:
        if self._running:
            logger.warning("Queue already started, ignoring duplicate start call")
            return

        if self._consumer is None:
            self._consumer = AIOKafkaConsumer(
                bootstrap_servers=self.config.kafka_bootstrap_servers,
                group_id=self.config.kafka_consumer_group,
                security_protocol=self.config.kafka_security_protocol,
                enable_auto_commit=False,
                auto_offset_reset="earliest",
            )
            self._consumer.subscribe(
                [self.topic], listener=_ForgetRevokedPartitions(self)
            )

        await self._consumer.start()
        self._running = True

        logger.info(
            "Kafka backup result queue started",
            extra={"message_topic": self.topic},
        )

    async def stop(self) -> None:
        """Stop the consumer. Safe to call multiple times."""
        if not self._running or self._consumer is None:
            logger.debug("Queue not running or already stopped")
            return

        self._running = False
        try:
            await self._consumer.stop()
            logger.info("Kafka backup result queue stopped")
        finally:
            self._consumer = None
            self.forget_partitions(set(self._unsettled) | set(self._released))

    def _require_consumer(self) -> AIOKafkaConsumer:
        if not self._running or self._consumer is None:
            raise RuntimeError("KafkaBackupResultQueue is not started")
        return self._consumer

    def _partitions(self, consumer: AIOKafkaConsumer) -> Set[TopicPartition]:
        assigned = {tp for tp in consumer.assignment() if tp.topic == self.topic}
        if assigned:
            return assigned

        partition_ids = consumer.partitions_for_topic(self.topic) or set()
        return {TopicPartition(self.topic, p) for p in partition_ids}

    async def get_available_received_backup_results(self) -> int:
        """
        Total lag of the consumer group on the topic.

        Returns:
            Number of records not yet committed (0 when the topic is drained)
        """
        consumer = self._require_consumer()
        partitions = self._partitions(consumer)
        if not partitions:
            return 0

        end_offsets: Dict[TopicPartition, int] = await consumer.end_offsets(list(partitions))

        committed: Dict[TopicPartition, Optional[int]] = {}
        for tp in partitions:
            committed[tp] = await consumer.committed(tp)

        missing = [tp for tp, offset in committed.items() if offset is None]
        if missing:
            beginning = await consumer.beginning_offsets(missing)
            for tp in missing:
                committed[tp] = beginning[tp]

        lag = sum(max(0, end_offsets[tp] - committed[tp]) for tp in partitions)

        logger.debug(
            "Computed queue depth",
            extra={"available_results": lag, "message_topic": self.topic},
        )
        return lag

    async def receive(self, max_messages: int) -> List[ConsumerRecord]:
        consumer = self._require_consumer()
        data = await consumer.getmany(
            timeout_ms=self.receive_timeout_ms, max_records=max_messages
        )
        records: List[ConsumerRecord] = []
        for tp, messages in data.items():
            for record in messages:
                self._unsettled.setdefault(tp, set()).add(record.offset)
                self._released.get(tp, set()).discard(record.offset)
            records.extend(messages)
        return records

    async def acknowledge(self, message: ConsumerRecord) -> None:
        """
        Mark ``message`` done and commit as far as its partition allows.

        Raises:
            TransientError: If the commit is rejected (e.g. during a rebalance)
        """
        consumer = self._require_consumer()
        tp = TopicPartition(message.topic, message.partition)

        self._unsettled.get(tp, set()).discard(message.offset)
        self._released.get(tp, set()).discard(message.offset)
        self._next_offset[tp] = max(self._next_offset.get(tp, 0), message.offset + 1)

        await self._commit(consumer, tp)

        log_with_context(
            logger,
            logging.DEBUG,
            "Acknowledged record",
            message_topic=message.topic,
            message_partition=message.partition,
            message_offset=message.offset,
        )

    async def release(self, message: ConsumerRecord) -> None:
        """
        Leave ``message`` uncommitted and rewind its partition to fetch it again.

        Records after it on the same partition are redelivered too.
        """
        consumer = self._require_consumer()
        tp = TopicPartition(message.topic, message.partition)

        self._released.setdefault(tp, set()).add(message.offset)
        rewind_to = min(self._released[tp])
        consumer.seek(tp, rewind_to)

        log_with_context(
            logger,
            logging.DEBUG,
            "Released record for redelivery",
            message_topic=message.topic,
            message_partition=message.partition,
            message_offset=message.offset,
        )

    def forget_partitions(self, partitions) -> None:
        """Drop offset tracking for partitions that are no longer consumed."""
        for tp in partitions:
            self._unsettled.pop(tp, None)
            self._released.pop(tp, None)
            self._next_offset.pop(tp, None)
            self._committed.pop(tp, None)

    async def _commit(self, consumer: AIOKafkaConsumer, tp: TopicPartition) -> None:
        blocked = self._unsettled.get(tp, set()) | self._released.get(tp, set())
        commit_to = min(blocked) if blocked else self._next_offset[tp]
        if commit_to <= self._committed.get(tp, -1):
            return

        try:
            await consumer.commit({tp: commit_to})
        except KafkaError as e:
            raise TransientError(
                f"Offset commit failed for {tp.topic}[{tp.partition}]",
                cause=e,
                context={"commit_offset": commit_to},
            ) from e
        self._committed[tp] = commit_to
