"""Exceptions raised along the coupon search pipeline."""


class CouponSearchError(Exception):
    """Base exception. Carries the HTTP status the API answers with."""

    status_code: int = 500

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class InvalidRequestError(CouponSearchError):
    """Raised when a required request field is missing or malformed."""

    status_code = 500


class UnauthorizedError(CouponSearchError):
    """Raised when the bearer token is missing or rejected."""

    status_code = 401


class QuotaExceededError(CouponSearchError):
    """The user has no searches left today. A decision, not a failure."""

    status_code = 429


class QuotaCheckError(CouponSearchError):
    """Raised when the quota lookup itself fails."""


class ProviderInvocationError(CouponSearchError):
    """Raised when the search provider cannot be reached or answers with an error."""


class ProviderResponseError(CouponSearchError):
    """Raised when the provider payload does not match the coupon schema."""


class CacheReadError(CouponSearchError):
    """Raised when fresh coupons cannot be read from the cache table."""


class CacheWriteError(CouponSearchError):
    """Raised when the coupon upsert fails. Absorbed by live searches."""

    status_code = 502


class UsageRecordError(CouponSearchError):
    """Raised when a search log or popularity update fails. Always absorbed."""


class ImportValidationError(InvalidRequestError):
    """Raised when a bulk coupon import payload is malformed."""

    status_code = 400
