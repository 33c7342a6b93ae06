"""Supabase client construction and thread-pool bridging."""
import asyncio
import logging
from typing import Any, Callable, TypeVar

import httpx
from supabase import create_client, Client
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from src.config import config

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Retry policy for idempotent Supabase calls (reads, keyed upserts)
store_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type((Exception,)),
    reraise=True,
)

# Writes that are not safe to repeat: retry only when the request never left
write_once_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(httpx.ConnectError),
    reraise=True,
)


def create_supabase_client() -> Client:
    """Create a service-role Supabase client."""
    if not config.SUPABASE_URL or not config.SUPABASE_SERVICE_ROLE_KEY:
        raise ValueError("Supabase configuration missing")
    return create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE_KEY)


async def run_sync(func: Callable[..., T], *args: Any) -> T:
    """Run a blocking Supabase call in the default thread pool."""
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, func, *args)
