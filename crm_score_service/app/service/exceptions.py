"""
Custom exceptions for the CRM Score webhook service.
"""
from enum import Enum
from typing import Optional


class BaseCrmScoreError(Exception):
    """Base class for exceptions in this module."""
    pass


class ValidationErrorKind(str, Enum):
    EMPTY_BODY = "EmptyBody"
    MALFORMED_BODY = "MalformedBody"
    MISSING_RECORD = "MissingRecord"
    MISSING_IDENTIFIER = "MissingIdentifier"


_VALIDATION_MESSAGES = {
    ValidationErrorKind.EMPTY_BODY: "Request body is empty",
    ValidationErrorKind.MALFORMED_BODY: "Request body is not valid JSON",
    ValidationErrorKind.MISSING_RECORD: "Missing currentImage object",
    ValidationErrorKind.MISSING_IDENTIFIER: "Missing account ID",
}

_VALIDATION_FIELDS = {
    ValidationErrorKind.EMPTY_BODY: "body",
    ValidationErrorKind.MALFORMED_BODY: "body",
    ValidationErrorKind.MISSING_RECORD: "currentImage",
    ValidationErrorKind.MISSING_IDENTIFIER: "currentImage.id",
}


class PayloadValidationError(BaseCrmScoreError):
    """Raised when an inbound webhook body cannot be turned into a CrmEvent.

    Always client-facing: the API layer maps it to a 400 response.
    """
    def __init__(self, kind: ValidationErrorKind):
        self.kind = kind
        self.field = _VALIDATION_FIELDS[kind]
        self.message = _VALIDATION_MESSAGES[kind]
        super().__init__(self.message)


class ApiErrorKind(str, Enum):
    HTTP_STATUS = "HttpStatus"
    CONFLICT = "Conflict"
    MISSING_TOKEN = "MissingToken"
    REQUEST_FAILED = "RequestFailed"


class CrmApiError(BaseCrmScoreError):
    """Raised when a call against the CRM account API does not succeed."""
    def __init__(
        self,
        kind: ApiErrorKind,
        status: Optional[int] = None,
        body: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        self.kind = kind
        self.status = status
        self.body = body
        if detail is None:
            detail = f"CRM API Error ({status}): {body}" if status is not None else kind.value
        self.detail = detail
        super().__init__(detail)


class ConfigurationError(BaseCrmScoreError):
    """Raised when a configuration issue is detected."""
    pass
