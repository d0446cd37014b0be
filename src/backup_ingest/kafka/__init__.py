"""Kafka queue adapter."""

from backup_ingest.kafka.queue import KafkaBackupResultQueue

__all__ = ["KafkaBackupResultQueue"]
