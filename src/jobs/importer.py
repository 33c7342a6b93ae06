"""Bulk import of externally sourced coupons into the cache."""
import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import ValidationError

from src.config import config
from src.errors import ImportValidationError
from src.parse.models import CouponRecord, ImportCoupon, utcnow
from src.parse.normalizer import dedup_key
from src.store.cache_store import CouponCacheStore

logger = logging.getLogger(__name__)

# Columns an import writes; live-search fields on an existing row are left alone
IMPORT_COLUMNS = ("website_domain", "code", "description", "restrictions", "cache_expires_at")


def build_import_records(
    payload: Any,
    now: Optional[datetime] = None,
    ttl_hours: Optional[int] = None,
) -> list[CouponRecord]:
    """Validate an import payload and turn it into cache records."""
    if not isinstance(payload, list):
        raise ImportValidationError("Request body must be a JSON array of coupon objects")

    try:
        items = [ImportCoupon.model_validate(item) for item in payload]
    except ValidationError as e:
        raise ImportValidationError(
            "Request body must be a JSON array of coupon objects", detail=str(e)
        ) from e

    if any(not item.code for item in items):
        raise ImportValidationError("One or more items missing required field: code")
    if any(not item.website_domain for item in items):
        raise ImportValidationError("One or more items missing required field: website_domain")

    now = now or utcnow()
    ttl = config.IMPORT_TTL_HOURS if ttl_hours is None else ttl_hours
    expires_at = now + timedelta(hours=ttl)

    records: dict[str, CouponRecord] = {}
    for item in items:
        records[dedup_key(item.website_domain, item.code)] = CouponRecord(
            website_domain=item.website_domain,
            code=item.code,
            description=item.description,
            restrictions=item.restrictions,
            cache_expires_at=expires_at,
            last_seen_at=now,
        )
    return list(records.values())


async def import_coupons(payload: Any, cache_store: CouponCacheStore) -> list[dict]:
    """Upsert imported coupons. Raises ImportValidationError or CacheWriteError."""
    records = build_import_records(payload)
    await cache_store.upsert_all(records, columns=IMPORT_COLUMNS)
    logger.info(f"[IMPORT] Imported {len(records)} coupons")
    return [{"code": record.code, "success": True} for record in records]
