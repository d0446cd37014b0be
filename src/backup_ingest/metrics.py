"""
Prometheus metrics for backup result ingestion.

Provides instrumentation for:
- Coordinator cycles and worker fan-out
- Worker invocation failures
- Ingest outcomes by error code
- Ingest processing time
"""

from prometheus_client import Counter, Gauge, Histogram

# Coordinator metrics
coordinator_cycles_total = Counter(
    "backup_ingest_coordinator_cycles_total",
    "Total number of coordinator cycles",
    ["status"],  # status: idle, invoked, error
)

available_results = Gauge(
    "backup_ingest_available_results",
    "Received backup results available in the queue at the last cycle",
)

workers_invoked_total = Counter(
    "backup_ingest_workers_invoked_total",
    "Total number of worker invocations",
    ["status"],  # status: success, error
)

# Ingest metrics
ingest_results_total = Counter(
    "backup_ingest_results_total",
    "Total number of ingested backup results by outcome",
    ["delivery_type", "outcome"],  # outcome: success or error code/type
)

ingest_duration_seconds = Histogram(
    "backup_ingest_duration_seconds",
    "Time spent ingesting individual backup results",
    ["delivery_type"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

metadata_extract_failures_total = Counter(
    "backup_ingest_metadata_extract_failures_total",
    "Payloads no metadata extractor could handle",
)


def record_cycle(status: str, results: int = 0) -> None:
    """
    Record a coordinator cycle.

    Args:
        status: idle (nothing queued), invoked, or error
        results: Number of available results seen by the cycle
    """
    coordinator_cycles_total.labels(status=status).inc()
    available_results.set(results)


def record_worker_invocation(success: bool = True) -> None:
    status = "success" if success else "error"
    workers_invoked_total.labels(status=status).inc()


def record_ingest_result(
    delivery_type: str, outcome: str, duration_seconds: float
) -> None:
    """
    Record the outcome of one ingest call.

    Args:
        delivery_type: Delivery type of the backup result ("unknown" if not extracted)
        outcome: "success", an InvalidPayloadCode value, or an exception type name
        duration_seconds: Time taken by the ingest call
    """
    ingest_results_total.labels(delivery_type=delivery_type, outcome=outcome).inc()
    ingest_duration_seconds.labels(delivery_type=delivery_type).observe(
        duration_seconds
    )


def record_metadata_extract_failure() -> None:
    metadata_extract_failures_total.inc()


__all__ = [
    "coordinator_cycles_total",
    "available_results",
    "workers_invoked_total",
    "ingest_results_total",
    "ingest_duration_seconds",
    "metadata_extract_failures_total",
    "record_cycle",
    "record_worker_invocation",
    "record_ingest_result",
    "record_metadata_extract_failure",
]
