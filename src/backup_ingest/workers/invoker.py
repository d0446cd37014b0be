"""
Worker invocation strategies.

The coordinator calls ``invoke()`` once per worker it wants running. How a
worker is launched (separate process, serverless function, in-process task)
is up to the deployment.
"""

import logging
import secrets
from typing import Callable, Protocol, runtime_checkable

from core.errors.exceptions import ExtensionNotImplementedError
from core.logging.context import set_log_context
from core.logging.setup import log_with_context
from backup_ingest.workers.queue_worker import QueueWorker

logger = logging.getLogger(__name__)


@runtime_checkable
class WorkerInvoker(Protocol):
    async def invoke(self) -> None:
        """Launch one worker unit; completes once the launch has settled."""
        ...


class UnimplementedWorkerInvoker:
    """Placeholder used when a deployment supplies no worker invoker."""

    async def invoke(self) -> None:
        raise ExtensionNotImplementedError("invoke_queue_worker not implemented")


class InProcessWorkerInvoker:
    """
    Run each worker as a task on the current event loop.

    Every invocation builds a fresh worker from the factory so concurrent
    workers share no state.

    Usage:
        >>> invoker = InProcessWorkerInvoker(
        ...     lambda: QueueWorker(source, pipeline, batch_size=10)
        ... )
        >>> await invoker.invoke()
    """

    def __init__(self, worker_factory: Callable[[], QueueWorker]):
        self.worker_factory = worker_factory

    async def invoke(self) -> None:
        worker_id = f"w-{secrets.token_hex(3)}"
        set_log_context(stage="worker", worker_id=worker_id)

        worker = self.worker_factory()
        result = await worker.run()

        log_with_context(
            logger,
            logging.DEBUG,
            "Worker finished",
            records_processed=result.processed,
            records_succeeded=result.succeeded,
            records_rejected=result.rejected,
            records_failed=result.failed,
            records_unsettled=result.unsettled,
        )
