from __future__ import annotations

from datetime import datetime


class RedemptionError(Exception):
    """Caller-safe failure of a redemption operation.

    ``code`` is stable for clients, ``message`` is safe to show to end users.
    """

    status_code = 400
    code = "E_REDEMPTION"
    default_message = "Request could not be completed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidPinFormatError(RedemptionError):
    code = "E_PIN_FORMAT"
    default_message = "PIN must be exactly 4 digits"


class DealNotFoundError(RedemptionError):
    status_code = 404
    code = "E_DEAL_NOT_FOUND"
    default_message = "Deal not found"


class DealUnavailableError(RedemptionError):
    code = "E_DEAL_UNAVAILABLE"
    default_message = "This deal is not currently available"


class RateLimitedError(RedemptionError):
    status_code = 429
    code = "E_RATE_LIMITED"
    default_message = "Too many failed PIN attempts. Please try again later"

    def __init__(self, message: str | None = None, *, next_attempt_at: datetime | None = None) -> None:
        super().__init__(message)
        self.next_attempt_at = next_attempt_at


class InvalidPinError(RedemptionError):
    code = "E_PIN_INVALID"
    default_message = "Invalid PIN. Please check with the vendor"


class MembershipInsufficientError(RedemptionError):
    status_code = 403
    code = "E_MEMBERSHIP_REQUIRED"
    default_message = "Upgrade your membership to claim this deal"


class UserNotFoundError(RedemptionError):
    status_code = 404
    code = "E_USER_NOT_FOUND"
    default_message = "User not found"


class ClaimNotFoundError(RedemptionError):
    status_code = 404
    code = "E_CLAIM_NOT_FOUND"
    default_message = "No claim found for this deal"


class ClaimNotVerifiedError(RedemptionError):
    code = "E_CLAIM_NOT_VERIFIED"
    default_message = "Verify the deal PIN at the store before adding a bill"


class InvalidBillError(RedemptionError):
    code = "E_BILL_INVALID"
    default_message = "Valid bill amount and savings are required"


class HashingError(RedemptionError):
    code = "E_PIN_HASHING"
    default_message = "Failed to secure the PIN"


class WeakPinError(RedemptionError):
    code = "E_PIN_WEAK"
    default_message = "PIN is too easy to guess"


class DealAccessDeniedError(RedemptionError):
    status_code = 403
    code = "E_DEAL_ACCESS_DENIED"
    default_message = "Access denied"
