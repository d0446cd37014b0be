"""Unit tests for KafkaBackupResultQueue with a mocked aiokafka consumer."""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from aiokafka.errors import CommitFailedError
from aiokafka.structs import ConsumerRecord, TopicPartition

from core.errors.exceptions import TransientError
from backup_ingest.config import IngestConfig
from backup_ingest.kafka.queue import KafkaBackupResultQueue
from backup_ingest.workers.queue_worker import QueueWorker

TOPIC = "test.backup.results"


def create_consumer_record(partition: int, offset: int) -> ConsumerRecord:
    value = b'{"deliveryType": "email"}'
    return ConsumerRecord(
        topic=TOPIC,
        partition=partition,
        offset=offset,
        timestamp=0,
        timestamp_type=0,
        key=None,
        value=value,
        checksum=None,
        serialized_key_size=0,
        serialized_value_size=len(value),
        headers=[],
    )


@pytest.fixture
def kafka_config():
    return IngestConfig(
        kafka_bootstrap_servers="localhost:9092",
        kafka_topic=TOPIC,
        kafka_consumer_group="test-ingest",
    )


@pytest.fixture
def mock_consumer():
    consumer = MagicMock()
    consumer.start = AsyncMock()
    consumer.stop = AsyncMock()
    consumer.commit = AsyncMock()
    consumer.getmany = AsyncMock(return_value={})
    consumer.end_offsets = AsyncMock(return_value={})
    consumer.committed = AsyncMock(return_value=None)
    consumer.beginning_offsets = AsyncMock(return_value={})
    consumer.assignment.return_value = set()
    consumer.partitions_for_topic.return_value = set()
    return consumer


@pytest_asyncio.fixture
async def queue(kafka_config, mock_consumer):
    q = KafkaBackupResultQueue(kafka_config, consumer=mock_consumer)
    await q.start()
    yield q
    await q.stop()


class TestKafkaBackupResultQueue:
    """Test suite for KafkaBackupResultQueue."""

    @pytest.mark.asyncio
    async def test_requires_start(self, kafka_config, mock_consumer):
        q = KafkaBackupResultQueue(kafka_config, consumer=mock_consumer)

        with pytest.raises(RuntimeError, match="not started"):
            await q.get_available_received_backup_results()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, kafka_config, mock_consumer):
        q = KafkaBackupResultQueue(kafka_config, consumer=mock_consumer)
        await q.start()

        await q.stop()
        await q.stop()

        mock_consumer.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_partitions_means_empty(self, queue):
        assert await queue.get_available_received_backup_results() == 0

    @pytest.mark.asyncio
    async def test_lag_from_committed_offsets(self, queue, mock_consumer):
        tp0 = TopicPartition(TOPIC, 0)
        tp1 = TopicPartition(TOPIC, 1)
        mock_consumer.assignment.return_value = {tp0, tp1}
        mock_consumer.end_offsets.return_value = {tp0: 120, tp1: 40}
        mock_consumer.committed.side_effect = lambda tp: {tp0: 100, tp1: 40}[tp]

        assert await queue.get_available_received_backup_results() == 20

    @pytest.mark.asyncio
    async def test_lag_without_commits_uses_beginning_offsets(self, queue, mock_consumer):
        tp0 = TopicPartition(TOPIC, 0)
        mock_consumer.partitions_for_topic.return_value = {0}
        mock_consumer.end_offsets.return_value = {tp0: 15}
        mock_consumer.beginning_offsets.return_value = {tp0: 5}

        assert await queue.get_available_received_backup_results() == 10
        mock_consumer.beginning_offsets.assert_awaited_once_with([tp0])

    @pytest.mark.asyncio
    async def test_receive_flattens_partitions(self, queue, mock_consumer):
        mock_consumer.getmany.return_value = {
            TopicPartition(TOPIC, 0): [create_consumer_record(0, 1), create_consumer_record(0, 2)],
            TopicPartition(TOPIC, 1): [create_consumer_record(1, 7)],
        }

        records = await queue.receive(5)

        assert [(r.partition, r.offset) for r in records] == [(0, 1), (0, 2), (1, 7)]
        mock_consumer.getmany.assert_awaited_once_with(timeout_ms=1000, max_records=5)

    @pytest.mark.asyncio
    async def test_acknowledge_commits_next_offset(self, queue, mock_consumer):
        await queue.acknowledge(create_consumer_record(1, 7))

        mock_consumer.commit.assert_awaited_once_with({TopicPartition(TOPIC, 1): 8})

    @pytest.mark.asyncio
    async def test_acknowledge_never_commits_past_unsettled_record(self, queue, mock_consumer):
        tp0 = TopicPartition(TOPIC, 0)
        first, second = create_consumer_record(0, 0), create_consumer_record(0, 1)
        mock_consumer.getmany.return_value = {tp0: [first, second]}
        await queue.receive(2)

        await queue.acknowledge(second)
        mock_consumer.commit.assert_awaited_once_with({tp0: 0})

        await queue.acknowledge(first)
        mock_consumer.commit.assert_awaited_with({tp0: 2})

    @pytest.mark.asyncio
    async def test_acknowledge_skips_commit_that_does_not_advance(self, queue, mock_consumer):
        tp0 = TopicPartition(TOPIC, 0)
        records = [create_consumer_record(0, offset) for offset in range(3)]
        mock_consumer.getmany.return_value = {tp0: records}
        await queue.receive(3)

        await queue.acknowledge(records[2])
        await queue.acknowledge(records[1])

        mock_consumer.commit.assert_awaited_once_with({tp0: 0})

    @pytest.mark.asyncio
    async def test_release_rewinds_to_lowest_released_offset(self, queue, mock_consumer):
        tp0 = TopicPartition(TOPIC, 0)
        records = [create_consumer_record(0, offset) for offset in (4, 5, 6)]
        mock_consumer.getmany.return_value = {tp0: records}
        await queue.receive(3)

        await queue.release(records[0])
        await queue.release(records[2])

        assert mock_consumer.seek.call_args_list[-1].args == (tp0, 4)

        await queue.acknowledge(records[1])
        mock_consumer.commit.assert_awaited_once_with({tp0: 4})

    @pytest.mark.asyncio
    async def test_commit_failure_is_transient(self, queue, mock_consumer):
        mock_consumer.commit.side_effect = CommitFailedError("group rebalanced")

        with pytest.raises(TransientError) as exc_info:
            await queue.acknowledge(create_consumer_record(1, 7))

        assert exc_info.value.context == {"commit_offset": 8}
        assert exc_info.value.is_retryable

    @pytest.mark.asyncio
    async def test_forgotten_partition_no_longer_blocks_commits(self, queue, mock_consumer):
        tp0 = TopicPartition(TOPIC, 0)
        stale = create_consumer_record(0, 3)
        mock_consumer.getmany.return_value = {tp0: [stale]}
        await queue.receive(1)

        queue.forget_partitions({tp0})
        await queue.acknowledge(create_consumer_record(0, 9))

        mock_consumer.commit.assert_awaited_once_with({tp0: 10})


class TestQueueWorkerOnKafka:
    """QueueWorker settling records through KafkaBackupResultQueue."""

    @pytest.mark.asyncio
    async def test_failed_record_is_redelivered_not_skipped(self, queue, mock_consumer):
        tp0 = TopicPartition(TOPIC, 0)
        batch = [create_consumer_record(0, 0), create_consumer_record(0, 1)]
        mock_consumer.getmany.return_value = {tp0: batch}
        pipeline = MagicMock()
        pipeline.ingest_queued_backup_result = AsyncMock(
            side_effect=[ConnectionError("storage unreachable"), None]
        )

        result = await QueueWorker(queue, pipeline, batch_size=2).run()

        assert result.failed == 1
        assert result.succeeded == 1
        committed = [c.args[0][tp0] for c in mock_consumer.commit.await_args_list]
        assert max(committed) <= 0
        mock_consumer.seek.assert_called_with(tp0, 0)

        # Redelivered from the rewound position; both succeed this time
        pipeline.ingest_queued_backup_result.side_effect = None
        result = await QueueWorker(queue, pipeline, batch_size=2).run()

        assert result.succeeded == 2
        mock_consumer.commit.assert_awaited_with({tp0: 2})
