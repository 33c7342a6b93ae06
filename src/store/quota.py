"""Per-user daily search quota, backed by Supabase RPCs."""
import logging
from typing import Optional

from pydantic import ValidationError
from supabase import Client

from src.errors import QuotaCheckError
from src.parse.models import QuotaStatus
from src.store.client import create_supabase_client, run_sync, store_retry, write_once_retry

logger = logging.getLogger(__name__)

QUOTA_RPC = "get_user_quota"
INCREMENT_RPC = "increment_search_count"


class QuotaGate:
    """Decides whether a user may run a live search today."""

    def __init__(self, client: Optional[Client] = None):
        self.client: Client = client or create_supabase_client()

    async def check_quota(self, user_id: str) -> QuotaStatus:
        """Read-only quota lookup. can_search=False is a normal answer."""
        try:
            rows = await run_sync(self._call_sync, QUOTA_RPC, user_id)
        except Exception as e:
            logger.error(f"[QUOTA] Quota check error for user {user_id}: {e}")
            raise QuotaCheckError("Failed to check quota", detail=str(e)) from e

        if isinstance(rows, dict):
            rows = [rows]
        if not rows:
            logger.error(f"[QUOTA] No quota row returned for user {user_id}")
            raise QuotaCheckError("Failed to check quota", detail="no quota row returned")

        try:
            status = QuotaStatus.model_validate(rows[0])
        except ValidationError as e:
            raise QuotaCheckError("Failed to check quota", detail=str(e)) from e

        logger.debug(
            f"[QUOTA] user={user_id} can_search={status.can_search} "
            f"used={status.searches_used} allowed={status.searches_allowed}"
        )
        return status

    async def increment_usage(self, user_id: str) -> None:
        """Count one dispatched search. Best effort: failures are only logged."""
        try:
            await run_sync(self._increment_sync, user_id)
        except Exception as e:
            logger.error(f"[QUOTA] Failed to increment search count for user {user_id}: {e}")

    @store_retry
    def _call_sync(self, function: str, user_id: str):
        """Synchronous RPC (called from thread pool)."""
        return self.client.rpc(function, {"p_user_id": user_id}).execute().data

    @write_once_retry
    def _increment_sync(self, user_id: str) -> None:
        """Synchronous increment (called from thread pool). Never resent once delivered."""
        self.client.rpc(INCREMENT_RPC, {"p_user_id": user_id}).execute()
