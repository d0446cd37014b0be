"""
Queue consumer coordinator.

Each cycle checks how many received backup results are waiting, estimates
how many workers are needed to drain them within a worker's time budget,
and invokes that many workers concurrently. A failed invocation is logged
and never affects its siblings.
"""

import asyncio
import math
from dataclasses import dataclass
from typing import Optional

from core.errors.exceptions import ConfigurationError
from core.logging.context import set_log_context
from core.logging.setup import generate_cycle_id, log_exception
from backup_ingest import metrics
from backup_ingest.config import WORKER_OVERHEAD_SECONDS
from backup_ingest.services import Services
from backup_ingest.workers.invoker import UnimplementedWorkerInvoker, WorkerInvoker

# Pessimistic per-item processing time assumed by worker scaling (seconds)
SECONDS_PER_ITEM = 4

# Up to this many workers are always invoked, one per ITEMS_PER_MIN_WORKER items
MIN_WORKERS_CAP = 3
ITEMS_PER_MIN_WORKER = 10


def compute_worker_count(
    available_results: int, max_workers: int, max_time_seconds: float
) -> int:
    """
    Number of workers to invoke for a queue depth.

    A worker is assumed to spend 4 seconds on overhead and 4 seconds per
    item, so it can drain ``(max_time - 4) / 4`` items. At least one worker
    per 10 items is invoked (capped at 3) even when that exceeds max_workers.

    Args:
        available_results: Items waiting in the queue
        max_workers: Upper bound for the time-based estimate
        max_time_seconds: Time budget of a single worker

    Returns:
        Worker count

    Raises:
        ConfigurationError: If max_time_seconds leaves no time for items
    """
    max_per_worker = (max_time_seconds - WORKER_OVERHEAD_SECONDS) / SECONDS_PER_ITEM
    if max_per_worker <= 0:
        raise ConfigurationError(
            f"Worker time budget of {max_time_seconds}s leaves no time to process "
            f"items (overhead is {WORKER_OVERHEAD_SECONDS}s)"
        )

    min_workers = min(MIN_WORKERS_CAP, math.ceil(available_results / ITEMS_PER_MIN_WORKER))

    return max(
        min_workers,
        min(max_workers, math.ceil(available_results / max_per_worker)),
    )


@dataclass
class CoordinatorCycleResult:
    """Outcome of one coordinator cycle."""

    available_results: int = 0
    worker_count: int = 0
    succeeded: int = 0
    failed: int = 0


class QueueConsumerCoordinator:
    """
    Fans out worker invocations according to queue depth.

    Usage:
        >>> coordinator = QueueConsumerCoordinator(services, invoker)
        >>> await coordinator.run_queue_consumer()
    """

    def __init__(
        self,
        services: Services,
        invoker: Optional[WorkerInvoker] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            services: Shared collaborators (queue, config, logger)
            invoker: Launches one worker unit (default: unimplemented)
        """
        self.services = services
        self.invoker = invoker or UnimplementedWorkerInvoker()
        self._logger = services.logger

    async def invoke_queue_worker(self) -> None:
        """Invoke a worker unit that will ingest backup results."""
        await self.invoker.invoke()

    async def run_queue_consumer(self) -> None:
        """
        Run one coordinator cycle.

        Worker invocation failures are logged and never raised. Failures
        querying the queue propagate.
        """
        await self.run_cycle()

    async def run_cycle(self) -> CoordinatorCycleResult:
        """
        Run one coordinator cycle and report what happened.

        Returns:
            CoordinatorCycleResult for the cycle
        """
        set_log_context(cycle_id=generate_cycle_id())
        self._logger.debug("run_queue_consumer")

        try:
            available = await self.services.queue.get_available_received_backup_results()
        except Exception:
            metrics.record_cycle("error")
            raise

        if not available:
            self._logger.debug("No available backup results")
            metrics.record_cycle("idle")
            return CoordinatorCycleResult()

        config = self.services.config
        worker_count = compute_worker_count(
            available, config.max_workers, config.max_worker_time_seconds
        )

        self._logger.debug(
            "Invoking workers",
            extra={"worker_count": worker_count, "available_results": available},
        )
        metrics.record_cycle("invoked", available)

        outcomes = await asyncio.gather(
            *(self._invoke_isolated() for _ in range(worker_count))
        )
        succeeded = sum(1 for ok in outcomes if ok)
        result = CoordinatorCycleResult(
            available_results=available,
            worker_count=worker_count,
            succeeded=succeeded,
            failed=worker_count - succeeded,
        )

        self._logger.info(
            "Coordinator cycle complete",
            extra={
                "available_results": available,
                "worker_count": worker_count,
                "succeeded": result.succeeded,
                "failed": result.failed,
            },
        )
        return result

    async def _invoke_isolated(self) -> bool:
        try:
            await self.invoke_queue_worker()
        except Exception as e:
            log_exception(self._logger, e, "Invoke error")
            metrics.record_worker_invocation(success=False)
            return False

        metrics.record_worker_invocation(success=True)
        return True

    async def run_forever(
        self,
        shutdown_event: asyncio.Event,
        poll_interval_seconds: Optional[float] = None,
    ) -> None:
        """
        Run coordinator cycles until shutdown_event is set.

        Args:
            shutdown_event: Set to stop after the current cycle
            poll_interval_seconds: Pause between cycles (default: from config)
        """
        interval = (
            self.services.config.poll_interval_seconds
            if poll_interval_seconds is None
            else poll_interval_seconds
        )
        self._logger.info(f"Starting coordinator loop (poll interval {interval}s)")

        while not shutdown_event.is_set():
            try:
                await self.run_cycle()
            except Exception as e:
                log_exception(self._logger, e, "Coordinator cycle failed")

            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

        self._logger.info("Coordinator loop stopped")
