# Payload normalization for inbound CRM account webhooks
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from crm_score_service.app.service.exceptions import PayloadValidationError, ValidationErrorKind

logger = logging.getLogger(__name__)

WRAPPER_FIELD = "data"
RECORD_FIELD = "currentImage"


class EnvelopeKind(str, Enum):
    WRAPPED = "wrapped" # CloudEvents style: {"data": {"currentImage": {...}}}
    DIRECT = "direct"   # {"currentImage": {...}}


class RecordSnapshot(BaseModel):
    """
    Typed view over a `currentImage` account snapshot.
    Only `id` is validated; the other attributes are passed through loosely
    because the raw mapping is what gets echoed back to the CRM.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    display_id: Optional[Any] = Field(default=None, alias="displayId")
    classification: Optional[Any] = Field(default=None, alias="customerABCClassification")
    extensions: Optional[Any] = None
    admin_data: Optional[Any] = Field(default=None, alias="adminData")

    @field_validator("id", mode="before")
    @classmethod
    def id_must_be_present(cls, v: Any) -> str:
        # Integer ids are tolerated and rendered as strings.
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if not isinstance(v, str) or not v:
            raise ValueError("id must be a non-empty string")
        return v


@dataclass(frozen=True)
class CrmEvent:
    envelope: EnvelopeKind
    snapshot: RecordSnapshot
    current_image: Dict[str, Any]

    @property
    def record_id(self) -> str:
        return self.snapshot.id

    @property
    def classification(self) -> Optional[Any]:
        return self.snapshot.classification


def _unwrap(body: Dict[str, Any]) -> Tuple[EnvelopeKind, Any]:
    wrapped = body.get(WRAPPER_FIELD)
    if wrapped is not None:
        return EnvelopeKind.WRAPPED, wrapped
    return EnvelopeKind.DIRECT, body


def normalize(body: Any) -> CrmEvent:
    """
    Extracts the canonical account snapshot from a webhook body.

    Raises:
        PayloadValidationError: EMPTY_BODY, MISSING_RECORD or MISSING_IDENTIFIER.
    """
    if body is None:
        raise PayloadValidationError(ValidationErrorKind.EMPTY_BODY)
    if not isinstance(body, dict):
        raise PayloadValidationError(ValidationErrorKind.MISSING_RECORD)

    envelope, payload = _unwrap(body)
    if not isinstance(payload, dict):
        raise PayloadValidationError(ValidationErrorKind.MISSING_RECORD)

    current_image = payload.get(RECORD_FIELD)
    if not isinstance(current_image, dict):
        raise PayloadValidationError(ValidationErrorKind.MISSING_RECORD)

    try:
        snapshot = RecordSnapshot.model_validate(current_image)
    except ValidationError as e:
        raise PayloadValidationError(ValidationErrorKind.MISSING_IDENTIFIER) from e

    logger.debug(f"Normalized {envelope.value} webhook payload for account {snapshot.id}")
    return CrmEvent(envelope=envelope, snapshot=snapshot, current_image=current_image)


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are not valid JSON.
    raise ValueError(f"Non-standard JSON constant: {name}")


def parse_event_body(raw: Union[bytes, str, None]) -> CrmEvent:
    """Decodes a raw request body and normalizes it into a CrmEvent."""
    if raw is None or not raw.strip():
        raise PayloadValidationError(ValidationErrorKind.EMPTY_BODY)
    try:
        body = json.loads(raw, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        # ValueError covers JSONDecodeError, UnicodeDecodeError and oversized integer literals.
        raise PayloadValidationError(ValidationErrorKind.MALFORMED_BODY) from e
    return normalize(body)
