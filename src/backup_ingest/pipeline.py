"""
Backup result ingestion pipeline.

Per-message sequence:
1. Extract the original payload from the queue message
2. Extract backup result metadata via the extractor chain
3. Verify the originating client's identity
4. Fetch stored result content
5. Parse content into delivery-specific metrics
6. Persist metadata + metrics
7. Archive the stored content

Steps run strictly in sequence. Persistence and archival are not atomic: if
archival fails after a successful persist, the database already holds the
result while the caller sees the failure.
"""

import time
from typing import Any, Optional

from core.errors.exceptions import (
    InvalidBackupPayloadError,
    InvalidPayloadCode,
    UnexpectedDeliveryTypeError,
)
from core.logging.setup import log_exception
from backup_ingest import metrics
from backup_ingest.extractors.chain import MetadataExtractorChain
from backup_ingest.payload import (
    QueueMessagePayloadExtractor,
    UnimplementedPayloadExtractor,
)
from backup_ingest.schemas.meta import BackupResultMeta, DeliveryType
from backup_ingest.services import Services

# Restricted projection used for client verification
CLIENT_ATTRIBUTES = ["clientId", "clientKey"]


class IngestionPipeline:
    """
    Ingests queued backup result notifications.

    Holds no state across calls; each ingest is independent.

    Usage:
        >>> pipeline = IngestionPipeline(
        ...     services,
        ...     payload_extractor=SqsEnvelopePayloadExtractor(),
        ...     meta_chain=MetadataExtractorChain([
        ...         JsonEmailMetaExtractor(),
        ...         JsonHTTPPostMetaExtractor(),
        ...     ]),
        ... )
        >>> meta = await pipeline.ingest_queued_backup_result(ingest_id, message)
    """

    def __init__(
        self,
        services: Services,
        payload_extractor: Optional[QueueMessagePayloadExtractor] = None,
        meta_chain: Optional[MetadataExtractorChain] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            services: Shared collaborators (db, storage, parse, logger)
            payload_extractor: Unwraps queue envelopes (default: unimplemented)
            meta_chain: Metadata extractor chain (default: placeholder chain)
        """
        self.services = services
        self.payload_extractor = payload_extractor or UnimplementedPayloadExtractor()
        self.meta_chain = meta_chain or MetadataExtractorChain(logger=services.logger)
        self._logger = services.logger

    async def ingest_queued_backup_result(
        self, ingest_id: str, queue_message: Any
    ) -> BackupResultMeta:
        """
        Ingest one dequeued message.

        Args:
            ingest_id: Identifier of this ingest attempt
            queue_message: Raw message as received from the queue

        Returns:
            The extracted backup result metadata

        Raises:
            InvalidBackupPayloadError: Classified terminal failure
            Exception: Any other step failure, unchanged
        """
        self._logger.debug(
            "Extract queue message payload", extra={"ingest_id": ingest_id}
        )
        queue_payload = self.payload_extractor.extract(ingest_id, queue_message)

        self._logger.debug(
            "Extract backup result meta", extra={"ingest_id": ingest_id}
        )
        meta = self.meta_chain.extract_backup_result_meta(ingest_id, queue_payload)

        await self.ingest_backup_result(ingest_id, meta)
        return meta

    async def ingest_backup_result(
        self, ingest_id: str, meta: BackupResultMeta
    ) -> None:
        """
        Verify, parse, persist and archive one backup result.

        Args:
            ingest_id: Identifier of this ingest attempt
            meta: Extracted backup result metadata

        Raises:
            InvalidBackupPayloadError: CLIENT_NOT_FOUND, CLIENT_KEY_MISMATCH
                or EXTRACT_METRICS
            UnexpectedDeliveryTypeError: If delivery_type is not supported
            Exception: Storage, database and HTTP POST parse failures, unchanged
        """
        log_extra = {
            "ingest_id": ingest_id,
            "backup_id": meta.backup_id,
            "client_id": meta.client_id,
            "backup_type": meta.backup_type,
            "delivery_type": meta.delivery_type,
        }
        self._logger.debug("Ingesting backup result", extra=log_extra)

        start = time.perf_counter()
        outcome = "success"
        try:
            await self._verify_client(ingest_id, meta)

            content = await self.services.storage.get_backup_result_content(
                meta.backup_id
            )
            backup_metrics = await self._extract_metrics(ingest_id, meta, content)

            self._logger.debug("Add backup result to DB", extra=log_extra)
            await self.services.db.add_backup_result(meta, backup_metrics)

            self._logger.debug("Archive backup result content", extra=log_extra)
            try:
                await self.services.storage.archive_backup_result_content(
                    meta.backup_id, ingest_id
                )
            except Exception as e:
                log_exception(
                    self._logger,
                    e,
                    "Archive failed after backup result was persisted",
                    persisted=True,
                    **log_extra,
                )
                raise
        except InvalidBackupPayloadError as e:
            outcome = e.code.value
            raise
        except Exception as e:
            outcome = type(e).__name__
            raise
        finally:
            metrics.record_ingest_result(
                meta.delivery_type if meta.is_known_delivery_type else "unknown",
                outcome,
                time.perf_counter() - start,
            )

        self._logger.info("Backup result ingested", extra=log_extra)

    async def _verify_client(self, ingest_id: str, meta: BackupResultMeta) -> None:
        client_id = meta.client_id

        self._logger.debug(
            "Verify client", extra={"ingest_id": ingest_id, "client_id": client_id}
        )

        client = await self.services.db.get_client(client_id, CLIENT_ATTRIBUTES)
        if client is None:
            raise InvalidBackupPayloadError(
                f"Client not found: {client_id}",
                InvalidPayloadCode.CLIENT_NOT_FOUND,
                ingest_id,
                meta.backup_id,
                {"client_id": client_id},
            )

        if client.client_key != meta.client_key:
            raise InvalidBackupPayloadError(
                f"Client key mismatch for {client_id}",
                InvalidPayloadCode.CLIENT_KEY_MISMATCH,
                ingest_id,
                meta.backup_id,
                {"client_id": client_id},
            )

    async def _extract_metrics(
        self, ingest_id: str, meta: BackupResultMeta, content: bytes
    ) -> Any:
        parse = self.services.parse

        if meta.delivery_type == DeliveryType.EMAIL.value:
            self._logger.debug(
                "Extract metrics from e-mail delivery", extra={"ingest_id": ingest_id}
            )
            try:
                return await parse.extract_email_metrics(meta.backup_type, content)
            except Exception as e:
                raise InvalidBackupPayloadError(
                    "Extract metrics failed",
                    InvalidPayloadCode.EXTRACT_METRICS,
                    ingest_id,
                    meta.backup_id,
                    {"extract_metrics_error": e},
                    cause=e,
                ) from e

        if meta.delivery_type == DeliveryType.HTTPPOST.value:
            self._logger.debug(
                "Extract metrics from HTTP POST delivery", extra={"ingest_id": ingest_id}
            )
            # HTTP POST parse failures propagate unwrapped
            return await parse.extract_httppost_metrics(meta.backup_type, content)

        raise UnexpectedDeliveryTypeError(meta.delivery_type)
