"""
Delivery-specific metadata extractor contract.

An extractor either returns populated BackupResultMeta for a queue payload
or raises PayloadExtractError when the payload is not for its delivery
method.
"""

from typing import Any, Protocol, runtime_checkable

from core.errors.exceptions import PayloadExtractError
from backup_ingest.schemas.meta import BackupResultMeta, DeliveryType


@runtime_checkable
class BackupResultMetaExtractor(Protocol):
    """Strategy for extracting metadata for one delivery method."""

    name: str

    def extract(self, payload: Any) -> BackupResultMeta:
        """
        Extract metadata from a queue payload.

        Raises:
            PayloadExtractError: If the payload is not for this delivery method
        """
        ...


class UnimplementedEmailMetaExtractor:
    """Placeholder used when no e-mail extractor is supplied."""

    name = DeliveryType.EMAIL.value

    def extract(self, payload: Any) -> BackupResultMeta:
        raise PayloadExtractError("extract_backup_result_meta_email not implemented")


class UnimplementedHTTPPostMetaExtractor:
    """Placeholder used when no HTTP POST extractor is supplied."""

    name = DeliveryType.HTTPPOST.value

    def extract(self, payload: Any) -> BackupResultMeta:
        raise PayloadExtractError("extract_backup_result_meta_httppost not implemented")
