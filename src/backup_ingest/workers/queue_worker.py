"""
Queue worker - drains received backup results into the ingestion pipeline.

Each invocation receives up to ``batch_size`` messages, ingests them one at
a time under a fresh ingest_id, and acknowledges messages that are done:
either ingested or rejected with a terminal error. Messages that failed for
any other reason are released back to the queue for redelivery.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, List, Protocol, runtime_checkable

from core.errors.exceptions import InvalidBackupPayloadError, is_terminal_error
from core.logging.context import set_log_context
from core.logging.setup import log_exception

logger = logging.getLogger(__name__)


@runtime_checkable
class ReceivableQueue(Protocol):
    """Queue a worker can pull messages from."""

    async def receive(self, max_messages: int) -> List[Any]:
        ...

    async def acknowledge(self, message: Any) -> None:
        ...

    async def release(self, message: Any) -> None:
        """Hand the message back for redelivery."""
        ...


@runtime_checkable
class QueuedResultIngester(Protocol):
    async def ingest_queued_backup_result(self, ingest_id: str, queue_message: Any) -> Any:
        ...


@dataclass
class WorkerRunResult:
    """Counts for one worker invocation."""

    processed: int = 0
    succeeded: int = 0
    rejected: int = 0
    failed: int = 0
    unsettled: int = 0


class QueueWorker:
    """
    Single worker unit.

    Usage:
        >>> worker = QueueWorker(source, pipeline, batch_size=10)
        >>> result = await worker.run()
    """

    def __init__(
        self,
        source: ReceivableQueue,
        pipeline: QueuedResultIngester,
        batch_size: int = 10,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")

        self.source = source
        self.pipeline = pipeline
        self.batch_size = batch_size

    async def run(self) -> WorkerRunResult:
        """
        Receive one batch and ingest each message.

        Returns:
            WorkerRunResult with per-outcome counts
        """
        messages = await self.source.receive(self.batch_size)
        result = WorkerRunResult()

        logger.debug("Received messages", extra={"batch_size": len(messages)})

        try:
            for message in messages:
                await self._process(message, result)
        finally:
            set_log_context(ingest_id="")

        return result

    async def _process(self, message: Any, result: WorkerRunResult) -> None:
        result.processed += 1
        ingest_id = str(uuid.uuid4())
        set_log_context(ingest_id=ingest_id)

        try:
            await self.pipeline.ingest_queued_backup_result(ingest_id, message)
        except InvalidBackupPayloadError as e:
            result.rejected += 1
            log_exception(
                logger,
                e,
                "Rejected invalid backup result",
                level=logging.WARNING,
                include_traceback=False,
                ingest_id=e.ingest_id,
                backup_id=e.backup_id,
            )
        except Exception as e:
            if not is_terminal_error(e):
                result.failed += 1
                log_exception(logger, e, "Failed to ingest backup result", ingest_id=ingest_id)
                await self._settle("release", message, ingest_id, result)
                return

            result.rejected += 1
            log_exception(logger, e, "Rejected backup result", ingest_id=ingest_id)
        else:
            result.succeeded += 1

        await self._settle("acknowledge", message, ingest_id, result)

    async def _settle(
        self,
        action: str,
        message: Any,
        ingest_id: str,
        result: WorkerRunResult,
    ) -> None:
        # A settle failure leaves the message to the queue's redelivery
        try:
            await getattr(self.source, action)(message)
        except Exception as e:
            result.unsettled += 1
            log_exception(
                logger,
                e,
                f"Failed to {action} queue message",
                level=logging.WARNING,
                ingest_id=ingest_id,
            )
