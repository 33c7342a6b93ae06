"""Turn provider coupons into cache records."""
from datetime import datetime, timedelta
from typing import Iterable, Optional

from src.config import config
from src.parse.models import CouponRecord, RawCoupon, utcnow


def dedup_key(domain: str, code: str) -> str:
    return f"{domain}_{code}"


def normalize(
    domain: str,
    raw_coupons: Iterable[RawCoupon],
    now: Optional[datetime] = None,
    ttl_hours: Optional[int] = None,
) -> list[CouponRecord]:
    """
    Deduplicate and reshape provider coupons for one domain.

    Entries sharing (domain, code) collapse to one record: the later entry's
    values win but the record keeps the position of the first occurrence.
    Empty codes are not filtered out here. Every record of the batch gets the
    same cache_expires_at (now + ttl) and last_seen_at (now).
    """
    now = now or utcnow()
    ttl = config.CACHE_TTL_HOURS if ttl_hours is None else ttl_hours
    expires_at = now + timedelta(hours=ttl)

    records: dict[str, CouponRecord] = {}
    for coupon in raw_coupons:
        records[dedup_key(domain, coupon.code)] = CouponRecord(
            website_domain=domain,
            code=coupon.code,
            discount=coupon.discount,
            description=coupon.description,
            expires_in=coupon.expires_in,
            verified=coupon.verified,
            restrictions=coupon.restrictions,
            confidence_score=coupon.confidence_score,
            source_url=coupon.source_url,
            cache_expires_at=expires_at,
            last_seen_at=now,
        )
    return list(records.values())
