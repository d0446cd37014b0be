"""
Fallback chain of delivery-specific metadata extractors.

Strategies are tried in order; the first one that returns metadata wins.
When none apply, every strategy's failure is collected into a single
INVALID_QUEUE_JSON error.
"""

import logging
import traceback
from typing import Any, Dict, Optional, Sequence

from core.errors.exceptions import (
    InvalidBackupPayloadError,
    InvalidPayloadCode,
    PayloadExtractError,
)
from backup_ingest import metrics
from backup_ingest.extractors.base import (
    BackupResultMetaExtractor,
    UnimplementedEmailMetaExtractor,
    UnimplementedHTTPPostMetaExtractor,
)
from backup_ingest.schemas.meta import BackupResultMeta


class MetadataExtractorChain:
    """
    Ordered list of metadata extractors evaluated in a simple loop.

    Usage:
        >>> chain = MetadataExtractorChain([
        ...     JsonEmailMetaExtractor(),
        ...     JsonHTTPPostMetaExtractor(),
        ... ])
        >>> meta = chain.extract_backup_result_meta(ingest_id, payload)
    """

    def __init__(
        self,
        extractors: Optional[Sequence[BackupResultMetaExtractor]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the chain.

        Args:
            extractors: Strategies in priority order (default: e-mail then
                HTTP POST placeholders, which never apply)
            logger: Logger to use (default: module logger)

        Raises:
            ValueError: If an empty list of extractors is given
        """
        if extractors is None:
            extractors = [
                UnimplementedEmailMetaExtractor(),
                UnimplementedHTTPPostMetaExtractor(),
            ]
        if not extractors:
            raise ValueError("At least one metadata extractor must be specified")

        self.extractors = list(extractors)
        self._logger = logger or logging.getLogger(__name__)

    @property
    def names(self):
        return [e.name for e in self.extractors]

    def extract_backup_result_meta(
        self, ingest_id: str, payload: Any
    ) -> BackupResultMeta:
        """
        Extract backup result metadata using the first applicable extractor.

        Args:
            ingest_id: Identifier of the ingest attempt
            payload: Delivery-agnostic queue payload

        Returns:
            Metadata from the first extractor that succeeded

        Raises:
            InvalidBackupPayloadError: INVALID_QUEUE_JSON if no extractor applied
        """
        extract_errors: Dict[str, str] = {}

        for extractor in self.extractors:
            try:
                meta = extractor.extract(payload)
            except PayloadExtractError as e:
                extract_errors[extractor.name] = e.message
                continue
            except Exception as e:
                self._logger.debug(
                    "Unexpected error from metadata extractor",
                    extra={
                        "ingest_id": ingest_id,
                        "error_type": type(e).__name__,
                        "error_message": str(e),
                    },
                    exc_info=True,
                )
                extract_errors[extractor.name] = "".join(
                    traceback.format_exception(type(e), e, e.__traceback__)
                )
                continue

            self._logger.debug(
                "Extracted backup result meta",
                extra={
                    "ingest_id": ingest_id,
                    "backup_id": meta.backup_id,
                    "delivery_type": meta.delivery_type,
                },
            )
            return meta

        metrics.record_metadata_extract_failure()
        raise InvalidBackupPayloadError(
            "Invalid queue JSON (failed to extract payload)",
            InvalidPayloadCode.INVALID_QUEUE_JSON,
            ingest_id,
            None,
            {
                "raw_json": payload,
                "extract_errors": extract_errors,
            },
        )
