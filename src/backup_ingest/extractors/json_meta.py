"""
JSON metadata extractors for e-mail and HTTP POST deliveries.

Both delivery front-ends enqueue a JSON document describing the stored
result. The ``deliveryType`` field selects which extractor applies; the
rest of the document is validated against a delivery-specific schema.
"""

import json
from datetime import datetime
from typing import Any, ClassVar, Dict, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.errors.exceptions import PayloadExtractError
from backup_ingest.schemas.meta import BackupResultMeta, DeliveryType


class _DeliveryPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    client_id: str = Field(..., alias="clientId", min_length=1)
    client_key: str = Field(..., alias="clientKey")
    backup_id: str = Field(..., alias="backupId", min_length=1)
    backup_type: str = Field(..., alias="backupType", min_length=1)


class EmailDeliveryPayload(_DeliveryPayload):
    """Queue document for a backup result received by e-mail."""

    delivery_type: Literal["email"] = Field(..., alias="deliveryType")
    from_address: Optional[str] = Field(default=None, alias="from")
    subject: Optional[str] = None
    received_at: Optional[datetime] = Field(default=None, alias="receivedAt")


class HTTPPostDeliveryPayload(_DeliveryPayload):
    """Queue document for a backup result received by HTTP POST."""

    delivery_type: Literal["httppost"] = Field(..., alias="deliveryType")
    remote_address: Optional[str] = Field(default=None, alias="remoteAddress")
    content_type: Optional[str] = Field(default=None, alias="contentType")


def _format_validation_error(e: ValidationError) -> str:
    problems = []
    for err in e.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "<root>"
        problems.append(f"{loc}: {err['msg']}")
    return "; ".join(problems)


class JsonMetaExtractor:
    """Base for extractors that read a JSON queue document."""

    name: ClassVar[str]
    payload_model: ClassVar[Type[_DeliveryPayload]]

    def _load(self, payload: Any) -> Dict[str, Any]:
        if isinstance(payload, (bytes, bytearray)):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise PayloadExtractError("Payload is not UTF-8 text", cause=e) from e

        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                raise PayloadExtractError(f"Payload is not JSON: {e.msg}", cause=e) from e

        if not isinstance(payload, dict):
            raise PayloadExtractError(
                f"Payload must be a JSON object, got {type(payload).__name__}"
            )
        return payload

    def extract(self, payload: Any) -> BackupResultMeta:
        data = self._load(payload)

        delivery_type = data.get("deliveryType")
        if delivery_type != self.name:
            raise PayloadExtractError(
                f"Payload is not for {self.name} delivery (deliveryType={delivery_type!r})"
            )

        try:
            document = self.payload_model.model_validate(data)
        except ValidationError as e:
            raise PayloadExtractError(
                f"Invalid {self.name} payload: {_format_validation_error(e)}", cause=e
            ) from e

        return BackupResultMeta(**document.model_dump(exclude_none=True))


class JsonEmailMetaExtractor(JsonMetaExtractor):
    """Extract metadata for an e-mail delivered backup result."""

    name = DeliveryType.EMAIL.value
    payload_model = EmailDeliveryPayload


class JsonHTTPPostMetaExtractor(JsonMetaExtractor):
    """Extract metadata for an HTTP POST delivered backup result."""

    name = DeliveryType.HTTPPOST.value
    payload_model = HTTPPostDeliveryPayload
