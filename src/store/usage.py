"""Search analytics: append-only search log and popularity counters."""
import logging
from typing import Optional

from supabase import Client

from src.config import config
from src.errors import UsageRecordError
from src.parse.models import SearchLogEntry
from src.store.client import create_supabase_client, run_sync, write_once_retry

logger = logging.getLogger(__name__)

POPULARITY_RPC = "update_popular_websites"


class UsageRecorder:
    """Records search outcomes. Callers treat every method as fire-and-forget."""

    def __init__(self, client: Optional[Client] = None, table: Optional[str] = None):
        self.client: Client = client or create_supabase_client()
        self.table = table or config.SEARCH_LOG_TABLE

    async def record_search(self, entry: SearchLogEntry) -> None:
        """Append one search log entry. Raises UsageRecordError."""
        try:
            await run_sync(self._insert_sync, entry.model_dump())
        except Exception as e:
            raise UsageRecordError("Failed to log search", detail=str(e)) from e
        logger.debug(f"[USAGE] Logged search for {entry.website_domain} ({entry.coupons_found} found)")

    async def record_popularity(
        self,
        domain: str,
        name: str,
        coupons_found: int,
        was_successful: bool,
    ) -> None:
        """Feed one search into the per-domain popularity aggregate."""
        params = {
            "p_website_domain": domain,
            "p_website_name": name,
            "p_coupons_found": coupons_found,
            "p_was_successful": was_successful,
        }
        try:
            await run_sync(self._rpc_sync, params)
        except Exception as e:
            raise UsageRecordError("Failed to update popular websites", detail=str(e)) from e

    async def record_search_safe(self, entry: SearchLogEntry) -> None:
        """Background task wrapper: log and swallow failures."""
        try:
            await self.record_search(entry)
        except Exception as e:
            logger.error(f"[USAGE] {e}")

    async def record_popularity_safe(
        self,
        domain: str,
        name: str,
        coupons_found: int,
        was_successful: bool,
    ) -> None:
        """Background task wrapper: log and swallow failures."""
        try:
            await self.record_popularity(domain, name, coupons_found, was_successful)
        except Exception as e:
            logger.error(f"[USAGE] {e}")

    @write_once_retry
    def _insert_sync(self, row: dict) -> None:
        """Synchronous insert (called from thread pool)."""
        self.client.table(self.table).insert(row).execute()

    @write_once_retry
    def _rpc_sync(self, params: dict) -> None:
        """Synchronous RPC (called from thread pool)."""
        self.client.rpc(POPULARITY_RPC, params).execute()
