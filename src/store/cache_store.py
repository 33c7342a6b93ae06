"""Coupon cache table: fresh reads and (website_domain, code) upserts."""
import logging
from datetime import datetime
from typing import Iterable, Optional

from pydantic import ValidationError
from supabase import Client

from src.config import config
from src.errors import CacheReadError, CacheWriteError
from src.parse.models import CouponRecord, utcnow
from src.store.client import create_supabase_client, run_sync, store_retry

logger = logging.getLogger(__name__)

CONFLICT_COLUMNS = "website_domain,code"


def by_confidence(records: list[CouponRecord]) -> list[CouponRecord]:
    """Highest confidence first, records without a score last (stable)."""
    return sorted(
        records,
        key=lambda r: (r.confidence_score is None, -(r.confidence_score or 0.0)),
    )


class CouponCacheStore:
    """Reads and writes the coupon cache in Supabase."""

    def __init__(self, client: Optional[Client] = None, table: Optional[str] = None):
        self.client: Client = client or create_supabase_client()
        self.table = table or config.COUPON_TABLE

    async def read_fresh(self, domain: str, now: Optional[datetime] = None) -> list[CouponRecord]:
        """All records for domain whose cache_expires_at is after now."""
        now = now or utcnow()
        try:
            rows = await run_sync(self._select_fresh_sync, domain, now.isoformat())
        except Exception as e:
            logger.error(f"[CACHE] Read failed for {domain}: {e}")
            raise CacheReadError("Failed to read coupon cache", detail=str(e)) from e

        try:
            records = [CouponRecord.model_validate(row) for row in rows or []]
        except ValidationError as e:
            logger.error(f"[CACHE] Unreadable cache row for {domain}: {e}")
            raise CacheReadError("Failed to read coupon cache", detail=str(e)) from e

        fresh = [r for r in records if r.is_fresh(now)]
        logger.info(f"[CACHE] {len(fresh)} fresh coupons for {domain}")
        return by_confidence(fresh)

    @store_retry
    def _select_fresh_sync(self, domain: str, now_iso: str) -> list[dict]:
        """Synchronous select (called from thread pool)."""
        response = (
            self.client.table(self.table)
            .select("*")
            .eq("website_domain", domain)
            .gt("cache_expires_at", now_iso)
            .order("confidence_score", desc=True)
            .execute()
        )
        return response.data

    async def upsert_all(
        self,
        records: list[CouponRecord],
        columns: Optional[Iterable[str]] = None,
    ) -> list[CouponRecord]:
        """
        Insert or replace records keyed by (website_domain, code).
        With columns, only those are written and existing rows keep the rest.
        Returns the rows the store reports as persisted.
        """
        if not records:
            return []

        data = [record.to_row(columns) for record in records]
        try:
            rows = await run_sync(self._upsert_sync, data)
        except Exception as e:
            logger.error(f"[CACHE] Upsert of {len(records)} coupons failed: {e}")
            raise CacheWriteError("Failed to cache coupons", detail=str(e)) from e

        logger.info(f"[CACHE] Upserted {len(records)} coupons to {self.table}")
        try:
            return [CouponRecord.model_validate(row) for row in rows or []]
        except ValidationError as e:
            # Rows were written; only the echo is unreadable
            logger.warning(f"[CACHE] Could not read back upserted rows: {e}")
            return list(records)

    @store_retry
    def _upsert_sync(self, data: list[dict]) -> list[dict]:
        """Synchronous upsert (called from thread pool)."""
        response = (
            self.client.table(self.table)
            .upsert(data, on_conflict=CONFLICT_COLUMNS)
            .execute()
        )
        return response.data

    async def test_connection(self) -> bool:
        """Test Supabase connection."""
        try:
            await run_sync(
                lambda: (
                    self.client.table(self.table)
                    .select("code", count="exact")
                    .limit(1)
                    .execute()
                )
            )
            logger.info("Supabase connection successful")
            return True
        except Exception as e:
            logger.error(f"Supabase connection test failed: {e}")
            return False
