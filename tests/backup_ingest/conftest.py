"""
Shared fixtures for backup ingest tests.

Provides:
- Ingest configuration
- Services bundle with AsyncMock collaborators
- Sample metadata and queue payloads
"""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from backup_ingest.config import IngestConfig
from backup_ingest.schemas.meta import BackupResultMeta, Client
from backup_ingest.services import Services


@pytest.fixture
def ingest_config():
    """Create test ingest configuration (max_per_worker = 5)."""
    return IngestConfig(max_workers=5, max_worker_time_seconds=24, worker_batch_size=3)


@pytest.fixture
def mock_queue():
    queue = MagicMock()
    queue.get_available_received_backup_results = AsyncMock(return_value=0)
    return queue


@pytest.fixture
def mock_db():
    db = MagicMock()
    db.get_client = AsyncMock(
        return_value=Client(client_id="client-1", client_key="key-abc")
    )
    db.add_backup_result = AsyncMock(return_value=None)
    return db


@pytest.fixture
def mock_storage():
    storage = MagicMock()
    storage.get_backup_result_content = AsyncMock(return_value=b"backup report body")
    storage.archive_backup_result_content = AsyncMock(return_value=None)
    return storage


@pytest.fixture
def mock_parse():
    parse = MagicMock()
    parse.extract_email_metrics = AsyncMock(return_value={"status": "success", "files": 12})
    parse.extract_httppost_metrics = AsyncMock(return_value={"status": "warning", "files": 3})
    return parse


@pytest.fixture
def services(ingest_config, mock_queue, mock_db, mock_storage, mock_parse):
    """Services bundle wired with mock collaborators."""
    return Services(
        queue=mock_queue,
        db=mock_db,
        storage=mock_storage,
        parse=mock_parse,
        config=ingest_config,
        logger=logging.getLogger("tests.backup_ingest"),
    )


@pytest.fixture
def email_meta():
    return BackupResultMeta(
        client_id="client-1",
        client_key="key-abc",
        backup_id="bk-100",
        backup_type="veeam",
        delivery_type="email",
        subject="[Success] Nightly job",
    )


@pytest.fixture
def httppost_meta():
    return BackupResultMeta(
        client_id="client-1",
        client_key="key-abc",
        backup_id="bk-200",
        backup_type="acronis",
        delivery_type="httppost",
    )


@pytest.fixture
def email_payload():
    """JSON queue document for an e-mail delivery."""
    return {
        "deliveryType": "email",
        "clientId": "client-1",
        "clientKey": "key-abc",
        "backupId": "bk-100",
        "backupType": "veeam",
        "from": "backup@example.com",
        "subject": "[Success] Nightly job",
        "receivedAt": "2024-12-25T10:31:15Z",
    }


@pytest.fixture
def httppost_payload():
    """JSON queue document for an HTTP POST delivery."""
    return {
        "deliveryType": "httppost",
        "clientId": "client-1",
        "clientKey": "key-abc",
        "backupId": "bk-200",
        "backupType": "acronis",
        "remoteAddress": "203.0.113.7",
        "contentType": "application/xml",
    }
