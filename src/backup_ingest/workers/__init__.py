"""Worker units and the strategies that launch them."""

from backup_ingest.workers.invoker import (
    InProcessWorkerInvoker,
    UnimplementedWorkerInvoker,
    WorkerInvoker,
)
from backup_ingest.workers.queue_worker import (
    QueuedResultIngester,
    QueueWorker,
    ReceivableQueue,
    WorkerRunResult,
)

__all__ = [
    "InProcessWorkerInvoker",
    "UnimplementedWorkerInvoker",
    "WorkerInvoker",
    "QueuedResultIngester",
    "QueueWorker",
    "ReceivableQueue",
    "WorkerRunResult",
]
