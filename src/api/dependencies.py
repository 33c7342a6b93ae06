"""Process-wide service wiring and FastAPI dependencies."""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import APIKeyHeader
from supabase import Client

from src.auth.identity import IdentityService
from src.config import config
from src.fetch.providers import SearchProvider, build_provider
from src.jobs.orchestrator import SearchOrchestrator
from src.store.cache_store import CouponCacheStore
from src.store.client import create_supabase_client
from src.store.quota import QuotaGate
from src.store.usage import UsageRecorder

logger = logging.getLogger(__name__)

API_KEY_HEADER = APIKeyHeader(name="X-API-KEY", auto_error=False)


@dataclass
class Services:
    """Everything a request handler needs; one instance per process."""

    identity: IdentityService
    cache_store: CouponCacheStore
    orchestrator: SearchOrchestrator
    provider: SearchProvider

    async def aclose(self) -> None:
        await self.provider.aclose()


def build_services(
    client: Optional[Client] = None,
    provider: Optional[SearchProvider] = None,
) -> Services:
    """Wire stores, provider and orchestrator around one Supabase client."""
    client = client or create_supabase_client()
    provider = provider or build_provider(config.SEARCH_PROVIDER)
    cache_store = CouponCacheStore(client)
    orchestrator = SearchOrchestrator(
        cache_store=cache_store,
        quota_gate=QuotaGate(client),
        provider=provider,
        usage_recorder=UsageRecorder(client),
        ttl_hours=config.CACHE_TTL_HOURS,
    )
    logger.info(f"Services ready (provider={provider.name.value})")
    return Services(
        identity=IdentityService(client),
        cache_store=cache_store,
        orchestrator=orchestrator,
        provider=provider,
    )


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services are not initialized")
    return services


def verify_api_key(api_key: str = Depends(API_KEY_HEADER)) -> bool:
    """Verify API key if configured."""
    expected_key = config.API_KEY
    if expected_key:
        if not api_key or api_key != expected_key:
            raise HTTPException(status_code=403, detail="Invalid API key")
    return True
