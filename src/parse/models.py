"""Data models for coupons, quota decisions and search bookkeeping."""
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RawCoupon(BaseModel):
    """One coupon as returned by a search provider (camelCase wire names)."""

    model_config = ConfigDict(populate_by_name=True)

    code: StrictStr = Field(..., description="The actual coupon code")
    discount: StrictStr = Field(..., description="The discount amount")
    description: StrictStr = Field(..., description="What the coupon is for")
    expires_in: StrictStr = Field(..., alias="expiresIn", description='Expiry, or "Unknown"')
    verified: StrictBool = Field(..., description="Whether the source claims it works")
    restrictions: Optional[StrictStr] = None
    confidence_score: Optional[Union[StrictFloat, StrictInt]] = None
    source_url: Optional[StrictStr] = None


class ProviderPayload(BaseModel):
    """Validated provider answer."""

    coupons: list[RawCoupon]
    search_summary: Optional[StrictStr] = None


class CouponRecord(BaseModel):
    """One row of the coupon cache, unique on (website_domain, code)."""

    website_domain: str
    code: str
    discount: Optional[str] = None
    description: Optional[str] = None
    expires_in: Optional[str] = None
    verified: bool = False
    restrictions: Optional[str] = None
    confidence_score: Optional[float] = None
    source_url: Optional[str] = None
    cache_expires_at: datetime
    last_seen_at: Optional[datetime] = None

    @field_validator("verified", mode="before")
    @classmethod
    def _null_verified(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("cache_expires_at", "last_seen_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # PostgREST returns timestamptz with an offset, plain timestamp without
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def is_fresh(self, now: Optional[datetime] = None) -> bool:
        """True while cache_expires_at is strictly after now."""
        return self.cache_expires_at > (now or utcnow())

    def to_row(self, columns: Optional[Iterable[str]] = None) -> dict[str, Any]:
        """Row for the cache table. Every column unless columns is given, so upsert replaces."""
        if columns is None:
            return self.model_dump(mode="json")
        return self.model_dump(mode="json", include=set(columns))


class SearchRequest(BaseModel):
    """Body of POST /search-coupons."""

    website_domain: str
    website_name: Optional[str] = None
    from_cache: bool = False
    current_site: Optional[str] = None

    @field_validator("website_domain")
    @classmethod
    def _domain_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("website_domain is required")
        return value

    @property
    def display_name(self) -> str:
        return self.website_name or self.website_domain


class ImportCoupon(BaseModel):
    """One item of the bulk import payload."""

    code: Optional[str] = None
    website_domain: Optional[str] = None
    description: Optional[str] = None
    restrictions: Optional[str] = None


class QuotaStatus(BaseModel):
    """Today's search allowance for one user."""

    model_config = ConfigDict(extra="allow")

    can_search: bool
    searches_used: Optional[int] = 0
    searches_allowed: Optional[int] = None


class AuthenticatedUser(BaseModel):
    id: str
    email: Optional[str] = None


class SearchLogEntry(BaseModel):
    """Append-only record of one live search attempt."""

    user_id: str
    website_domain: str
    website_name: str
    coupons_found: int
    search_successful: bool
    ai_model_used: str
    search_duration_ms: int


class SearchResult(BaseModel):
    """Successful answer of the search endpoint."""

    success: bool = True
    coupons: list[CouponRecord] = Field(default_factory=list)
    from_cache: bool = False
    website_domain: str
    total_found: int = 0
