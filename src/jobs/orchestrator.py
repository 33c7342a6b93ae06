"""Coupon search orchestration: cache, quota, provider, persistence, usage."""
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from fastapi import BackgroundTasks

from src.errors import CacheWriteError, ProviderInvocationError, ProviderResponseError, QuotaExceededError
from src.fetch.providers import SearchProvider
from src.parse.models import AuthenticatedUser, SearchLogEntry, SearchRequest, SearchResult
from src.parse.normalizer import normalize
from src.parse.provider_payload import parse_provider_content
from src.store.cache_store import CouponCacheStore
from src.store.quota import QuotaGate
from src.store.usage import UsageRecorder

logger = logging.getLogger(__name__)

UPGRADE_MESSAGE = "You have reached your daily search limit. Upgrade to Pro for more searches!"


class SearchOrchestrator:
    """
    Runs one coupon search request.

    Cached mode only reads the cache, a miss returns an empty list and never
    falls through to a live search. Live mode checks the quota, calls the
    provider, normalizes and upserts the coupons, schedules the analytics
    writes, then counts the search against the user's quota.
    """

    def __init__(
        self,
        cache_store: CouponCacheStore,
        quota_gate: QuotaGate,
        provider: SearchProvider,
        usage_recorder: UsageRecorder,
        ttl_hours: Optional[int] = None,
    ):
        self.cache_store = cache_store
        self.quota_gate = quota_gate
        self.provider = provider
        self.usage_recorder = usage_recorder
        self.ttl_hours = ttl_hours

    async def search(
        self,
        user: AuthenticatedUser,
        request: SearchRequest,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> SearchResult:
        domain = request.website_domain
        logger.info(f"[SEARCH] Searching coupons for {domain} (user: {user.id}), from_cache={request.from_cache}")

        if request.from_cache:
            coupons = await self.cache_store.read_fresh(domain)
            logger.info(f"[SEARCH] Using cached coupons for {domain}: {len(coupons)}")
            return SearchResult(
                coupons=coupons,
                from_cache=True,
                website_domain=domain,
                total_found=len(coupons),
            )

        quota = await self.quota_gate.check_quota(user.id)
        if not quota.can_search:
            logger.info(f"[QUOTA] User {user.id} is out of searches ({quota.searches_used} used)")
            raise QuotaExceededError("Quota exceeded", detail=UPGRADE_MESSAGE)

        logger.info(f"[SEARCH] Calling {self.provider.name.value} for {domain}")
        start_time = time.time()
        try:
            content = await self.provider.search(domain)
            payload = parse_provider_content(content)
        except (ProviderInvocationError, ProviderResponseError) as e:
            logger.error(f"[SEARCH] {self.provider.name.value} search failed for {domain}: {e}")
            raise

        records = normalize(domain, payload.coupons, ttl_hours=self.ttl_hours)
        try:
            coupons = await self.cache_store.upsert_all(records)
        except CacheWriteError as e:
            logger.error(f"[SEARCH] Failed to cache coupons for {domain}: {e}")
            coupons = records

        duration_ms = int((time.time() - start_time) * 1000)
        found = len(coupons)
        logger.info(f"[SEARCH] Found {found} coupons for {domain} in {duration_ms}ms")

        entry = SearchLogEntry(
            user_id=user.id,
            website_domain=domain,
            website_name=request.display_name,
            coupons_found=found,
            search_successful=found > 0,
            ai_model_used=self.provider.name.value,
            search_duration_ms=duration_ms,
        )
        await self._dispatch(background_tasks, self.usage_recorder.record_search_safe, entry)
        await self._dispatch(
            background_tasks,
            self.usage_recorder.record_popularity_safe,
            domain,
            request.display_name,
            found,
            found > 0,
        )

        await self.quota_gate.increment_usage(user.id)

        return SearchResult(
            coupons=coupons,
            from_cache=False,
            website_domain=domain,
            total_found=found,
        )

    async def _dispatch(
        self,
        background_tasks: Optional[BackgroundTasks],
        task: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> None:
        """Run a side effect after the response when possible, else inline."""
        if background_tasks is not None:
            background_tasks.add_task(task, *args)
        else:
            await task(*args)
