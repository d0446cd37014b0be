"""Delivery-specific metadata extractors and the fallback chain."""

from backup_ingest.extractors.base import (
    BackupResultMetaExtractor,
    UnimplementedEmailMetaExtractor,
    UnimplementedHTTPPostMetaExtractor,
)
from backup_ingest.extractors.chain import MetadataExtractorChain
from backup_ingest.extractors.json_meta import (
    EmailDeliveryPayload,
    HTTPPostDeliveryPayload,
    JsonEmailMetaExtractor,
    JsonHTTPPostMetaExtractor,
)

__all__ = [
    "BackupResultMetaExtractor",
    "UnimplementedEmailMetaExtractor",
    "UnimplementedHTTPPostMetaExtractor",
    "MetadataExtractorChain",
    "EmailDeliveryPayload",
    "HTTPPostDeliveryPayload",
    "JsonEmailMetaExtractor",
    "JsonHTTPPostMetaExtractor",
]
