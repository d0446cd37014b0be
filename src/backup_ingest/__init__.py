"""
Backup result ingestion.

Coordinates draining of received backup result notifications from a queue
and ingests each one: metadata extraction, client verification, metrics
parsing, persistence and archival.
"""

from backup_ingest.config import IngestConfig, load_config
from backup_ingest.coordinator import (
    CoordinatorCycleResult,
    QueueConsumerCoordinator,
    compute_worker_count,
)
from backup_ingest.pipeline import IngestionPipeline
from backup_ingest.services import Services

__all__ = [
    "IngestConfig",
    "load_config",
    "CoordinatorCycleResult",
    "QueueConsumerCoordinator",
    "compute_worker_count",
    "IngestionPipeline",
    "Services",
]
