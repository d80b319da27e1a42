"""
Domain errors raised by the campaign, payment and analytics services.

Each error carries a stable code that API clients switch on; the HTTP layer
maps codes to status codes through ERROR_STATUS_CODES.
"""

from typing import Optional

# Typed error codes
VALIDATION_ERROR = "validation_error"
NOT_FOUND = "not_found"
FORBIDDEN = "forbidden"
UNAUTHENTICATED = "unauthenticated"
PAYMENT_NOT_CONFIRMED = "payment_not_confirmed"
NOT_PENDING = "not_pending"
ADS_CREATION_FAILED = "ads_creation_failed"
REFUND_FAILED = "refund_failed"

ERROR_STATUS_CODES = {
    VALIDATION_ERROR: 400,
    NOT_FOUND: 404,
    FORBIDDEN: 403,
    UNAUTHENTICATED: 401,
    PAYMENT_NOT_CONFIRMED: 409,
    NOT_PENDING: 409,
    ADS_CREATION_FAILED: 502,
    REFUND_FAILED: 502,
}


class CampaignError(Exception):
    """A campaign operation was refused or failed."""

    def __init__(
        self,
        code: str,
        message: str,
        field: Optional[str] = None,
        status_code: Optional[int] = None,
        headers: Optional[dict] = None,
    ):
        self.code = code
        self.message = message
        self.field = field
        self.status_code = status_code or ERROR_STATUS_CODES.get(code, 400)
        self.headers = headers
        super().__init__(message)

    def to_dict(self) -> dict:
        detail = {"error": self.code, "message": self.message}
        if self.field:
            detail["field"] = self.field
        return detail
