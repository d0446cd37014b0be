"""
Collaborator contracts and the dependency bundle injected into the ingest
components.

The concrete queue transport, database, blob storage and content parser are
deployment specific; this module only describes what the coordinator and
pipeline call on them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol, runtime_checkable

from backup_ingest.config import IngestConfig
from backup_ingest.schemas.meta import BackupResultMeta, Client


@runtime_checkable
class BackupResultQueue(Protocol):
    """Queue holding received backup result notifications."""

    async def get_available_received_backup_results(self) -> Optional[int]:
        """Number of messages waiting, or a falsy value when empty."""
        ...


@runtime_checkable
class BackupResultDatabase(Protocol):
    async def get_client(
        self, client_id: str, attributes: List[str]
    ) -> Optional[Client]:
        """Look up a client, restricted to ``attributes``. None if not found."""
        ...

    async def add_backup_result(self, meta: BackupResultMeta, metrics: Any) -> None:
        ...


@runtime_checkable
class BackupResultStorage(Protocol):
    async def get_backup_result_content(self, backup_id: str) -> bytes:
        ...

    async def archive_backup_result_content(
        self, backup_id: str, ingest_id: str
    ) -> None:
        ...


@runtime_checkable
class MetricsParser(Protocol):
    """Parses stored backup result content into delivery-specific metrics."""

    async def extract_email_metrics(self, backup_type: str, content: bytes) -> Any:
        ...

    async def extract_httppost_metrics(self, backup_type: str, content: bytes) -> Any:
        ...


@dataclass
class Services:
    """Shared dependencies for the coordinator and ingestion pipeline.

    Attributes:
        queue: Received backup result queue
        db: Client and backup result database
        storage: Backup result content storage
        parse: Content to metrics parser
        config: Ingest configuration
        logger: Logger used by components built from this bundle
    """

    queue: BackupResultQueue
    db: BackupResultDatabase
    storage: BackupResultStorage
    parse: MetricsParser
    config: IngestConfig = field(default_factory=IngestConfig)
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("backup_ingest")
    )
