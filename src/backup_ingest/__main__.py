"""
Entry point for running the backup result ingest coordinator.

Usage:
    # Run coordinator cycles until interrupted
    python -m backup_ingest --services mydeploy.wiring:build_services

    # Run a single coordinator cycle and exit
    python -m backup_ingest --services mydeploy.wiring:build_services --once

    # Run with metrics server on a custom port
    python -m backup_ingest --services mydeploy.wiring:build_services --metrics-port 9090

The --services factory is called with the loaded IngestConfig and must
return a Services bundle. When the bundle's queue can also hand out
messages (receive/acknowledge), workers run in-process on this event loop.
"""

import argparse
import asyncio
import importlib
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Callable, Optional

from prometheus_client import start_http_server

from core.errors.exceptions import ConfigurationError
from core.logging.setup import get_logger, setup_logging
from backup_ingest.config import IngestConfig, load_config
from backup_ingest.coordinator import QueueConsumerCoordinator
from backup_ingest.extractors.chain import MetadataExtractorChain
from backup_ingest.extractors.json_meta import (
    JsonEmailMetaExtractor,
    JsonHTTPPostMetaExtractor,
)
from backup_ingest.payload import (
    KafkaRecordPayloadExtractor,
    SqsEnvelopePayloadExtractor,
)
from backup_ingest.pipeline import IngestionPipeline
from backup_ingest.services import Services
from backup_ingest.workers.invoker import (
    InProcessWorkerInvoker,
    UnimplementedWorkerInvoker,
    WorkerInvoker,
)
from backup_ingest.workers.queue_worker import QueueWorker, ReceivableQueue

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)

PAYLOAD_EXTRACTORS = {
    "kafka": KafkaRecordPayloadExtractor,
    "sqs": SqsEnvelopePayloadExtractor,
}


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Run the backup result ingest coordinator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--services",
        required=True,
        help="Factory building the Services bundle, as 'module:callable'",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to YAML config file (default: src/config.yaml)",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single coordinator cycle and exit",
    )

    parser.add_argument(
        "--payload-format",
        choices=sorted(PAYLOAD_EXTRACTORS),
        default="kafka",
        help="Queue envelope format for in-process workers (default: kafka)",
    )

    parser.add_argument(
        "--metrics-port",
        type=int,
        default=8000,
        help="Port for Prometheus metrics server, 0 to disable (default: 8000)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-dir",
        default=None,
        help="Directory for log files (default: LOG_DIR env var or ./logs)",
    )

    return parser.parse_args(argv)


def load_services_factory(reference: str) -> Callable[[IngestConfig], Services]:
    """
    Resolve a 'module:callable' reference.

    Raises:
        ConfigurationError: If the reference is malformed or cannot be imported
    """
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Expected 'module:callable', got {reference!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import {module_name}", cause=e) from e

    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ConfigurationError(f"{reference} is not callable")
    return factory


def build_invoker(services: Services, payload_format: str) -> WorkerInvoker:
    """Wire in-process workers when the queue can hand out messages."""
    if not isinstance(services.queue, ReceivableQueue):
        logger.warning(
            "Queue does not support receive/acknowledge/release; worker "
            "invocations will fail until a deployment invoker is supplied"
        )
        return UnimplementedWorkerInvoker()

    pipeline = IngestionPipeline(
        services,
        payload_extractor=PAYLOAD_EXTRACTORS[payload_format](),
        meta_chain=MetadataExtractorChain(
            [JsonEmailMetaExtractor(), JsonHTTPPostMetaExtractor()],
            logger=services.logger,
        ),
    )
    batch_size = services.config.worker_batch_size
    return InProcessWorkerInvoker(
        lambda: QueueWorker(services.queue, pipeline, batch_size=batch_size)
    )


async def run(
    services: Services,
    invoker: WorkerInvoker,
    once: bool,
    shutdown_event: Optional[asyncio.Event] = None,
) -> None:
    """Start the queue, run the coordinator, and stop the queue."""
    queue = services.queue
    if hasattr(queue, "start"):
        await queue.start()

    coordinator = QueueConsumerCoordinator(services, invoker)
    try:
        if once:
            await coordinator.run_queue_consumer()
        else:
            await coordinator.run_forever(shutdown_event or asyncio.Event())
    finally:
        if hasattr(queue, "stop"):
            await queue.stop()


def setup_signal_handlers(
    loop: asyncio.AbstractEventLoop, shutdown_event: asyncio.Event
) -> None:
    """Set the shutdown event on SIGINT/SIGTERM; a second signal cancels all tasks."""

    def handle_signal(sig):
        logger.info(f"Received signal {sig.name}, initiating graceful shutdown...")
        if not shutdown_event.is_set():
            shutdown_event.set()
        else:
            logger.warning("Received second signal, forcing immediate shutdown...")
            for task in asyncio.all_tasks(loop):
                task.cancel()

    # Signal handlers are not supported on Windows
    if sys.platform == "win32":
        return

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))


def main(argv=None):
    """Main entry point."""
    global logger
    args = parse_args(argv)

    json_logs = os.getenv("JSON_LOGS", "true").lower() in ("true", "1", "yes")
    log_dir = Path(args.log_dir or os.getenv("LOG_DIR", "logs"))

    setup_logging(
        name="backup_ingest",
        stage="coordinator",
        log_dir=log_dir,
        json_format=json_logs,
        console_level=getattr(logging, args.log_level),
        worker_id=os.getenv("WORKER_ID", "ingest-coordinator"),
    )
    logger = get_logger(__name__)

    try:
        config = load_config(args.config)
        services = load_services_factory(args.services)(config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    if args.metrics_port:
        logger.info(f"Starting metrics server on port {args.metrics_port}")
        start_http_server(args.metrics_port)

    invoker = build_invoker(services, args.payload_format)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    shutdown_event = asyncio.Event()
    setup_signal_handlers(loop, shutdown_event)

    try:
        loop.run_until_complete(run(services, invoker, args.once, shutdown_event))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        loop.close()
        logger.info("Ingest coordinator shutdown complete")


if __name__ == "__main__":
    main()
