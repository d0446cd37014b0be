"""Pydantic schemas for backup result ingestion."""

from backup_ingest.schemas.meta import BackupResultMeta, Client, DeliveryType

__all__ = ["BackupResultMeta", "Client", "DeliveryType"]
