"""
Backup result metadata and client identity schemas.

Contains Pydantic models for the structured metadata extracted from a
queued backup result notification and the client identity record it is
verified against.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DeliveryType(str, Enum):
    """Channel by which a backup result was delivered."""

    EMAIL = "email"
    HTTPPOST = "httppost"


class BackupResultMeta(BaseModel):
    """Schema for metadata describing one delivered backup result.

    Built once per ingest call by a delivery-specific extractor and never
    mutated afterwards. Delivery-specific fields (e.g. e-mail subject, HTTP
    remote address) are kept as extra attributes.

    Attributes:
        client_id: Identifier of the client that produced the backup
        client_key: Secret key the client presented with the result
        backup_id: Identifier of the stored backup result content
        backup_type: Backup software/format, selects the metrics parser
        delivery_type: Delivery channel (email or httppost)

    Example:
        >>> meta = BackupResultMeta(
        ...     client_id="client-1",
        ...     client_key="k-123",
        ...     backup_id="bk-456",
        ...     backup_type="veeam",
        ...     delivery_type="email",
        ... )
    """

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
    )

    client_id: str = Field(..., alias="clientId", min_length=1)
    client_key: str = Field(..., alias="clientKey")
    backup_id: str = Field(..., alias="backupId", min_length=1)
    backup_type: str = Field(..., alias="backupType", min_length=1)
    delivery_type: str = Field(..., alias="deliveryType", min_length=1)

    @field_validator("client_id", "backup_id", "backup_type", "delivery_type")
    @classmethod
    def validate_non_empty_strings(cls, v: str, info) -> str:
        """Ensure identifier fields are not whitespace-only."""
        if not v.strip():
            raise ValueError(f"{info.field_name} cannot be empty or whitespace")
        return v.strip()

    @property
    def is_known_delivery_type(self) -> bool:
        return self.delivery_type in {d.value for d in DeliveryType}


class Client(BaseModel):
    """Authoritative client identity record (read-only projection)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    client_id: str = Field(..., alias="clientId")
    client_key: str = Field(..., alias="clientKey")
