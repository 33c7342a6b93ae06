"""Search providers: chat-completion APIs asked for coupon JSON."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from src.config import config
from src.errors import ProviderInvocationError, ProviderResponseError
from src.fetch.prompts import coupon_schema, system_prompt, user_prompt

logger = logging.getLogger(__name__)


class ProviderName(str, Enum):
    MISTRAL = "mistral"
    PERPLEXITY = "perplexity"


@dataclass(frozen=True)
class ProviderCredentials:
    """Immutable provider settings, built once per process."""

    api_key: str
    base_url: str
    model: str
    timeout: float = 120.0
    max_retries: int = 3

    @classmethod
    def from_config(cls, name: ProviderName) -> "ProviderCredentials":
        if name is ProviderName.MISTRAL:
            api_key, base_url, model = config.MISTRAL_API_KEY, config.MISTRAL_BASE_URL, config.MISTRAL_MODEL
        else:
            api_key, base_url, model = config.PERPLEXITY_API_KEY, config.PERPLEXITY_BASE_URL, config.PERPLEXITY_MODEL
        if not api_key:
            raise ValueError(f"API key for provider {name.value} is not configured")
        return cls(
            api_key=api_key,
            base_url=base_url.rstrip("/"),
            model=model,
            timeout=config.PROVIDER_TIMEOUT,
            max_retries=max(1, config.PROVIDER_MAX_RETRIES),
        )


def is_retryable(exc: BaseException) -> bool:
    """Network failures and 429/5xx answers are worth another attempt."""
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in (429, 500, 502, 503, 504)
    return False


class SearchProvider(ABC):
    """One chat-completions backend returning the coupon JSON as text."""

    name: ProviderName
    max_tokens: int = 2000

    def __init__(self, credentials: ProviderCredentials, client: Optional[httpx.AsyncClient] = None):
        self.credentials = credentials
        self.client = client or httpx.AsyncClient(timeout=credentials.timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    @property
    def completions_url(self) -> str:
        return f"{self.credentials.base_url}/chat/completions"

    @abstractmethod
    def build_payload(self, domain: str) -> dict[str, Any]:
        """Request body for one coupon search."""

    def messages(self, domain: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": system_prompt(domain)},
            {"role": "user", "content": user_prompt(domain)},
        ]

    async def search(self, domain: str) -> str:
        """Ask the provider for coupons of domain; returns the raw message content."""
        payload = self.build_payload(domain)
        headers = {
            "Authorization": f"Bearer {self.credentials.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.credentials.max_retries),
                wait=wait_exponential(multiplier=1, min=2, max=30),
                retry=retry_if_exception(is_retryable),
                reraise=True,
            ):
                with attempt:
                    response = await self.client.post(
                        self.completions_url,
                        json=payload,
                        headers=headers,
                        timeout=self.credentials.timeout,
                    )
                    response.raise_for_status()
        except httpx.HTTPStatusError as e:
            body = e.response.text[:500]
            logger.error(f"[PROVIDER] {self.name.value} answered {e.response.status_code}: {body}")
            raise ProviderInvocationError(
                f"{self.name.value} API error",
                detail=f"HTTP {e.response.status_code}: {body}",
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"[PROVIDER] {self.name.value} request failed: {e!r}")
            raise ProviderInvocationError(f"{self.name.value} API error", detail=str(e) or repr(e)) from e

        return self.extract_content(response)

    def extract_content(self, response: httpx.Response) -> str:
        try:
            body = response.json()
            content = body["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderResponseError(
                f"Unexpected {self.name.value} response shape", detail=repr(e)
            ) from e

        # Some models return content as a list of typed chunks
        if isinstance(content, list):
            content = "".join(
                chunk.get("text", "") for chunk in content if isinstance(chunk, dict)
            )
        if not isinstance(content, str) or not content:
            raise ProviderResponseError(f"Empty {self.name.value} response")
        return content


class MistralProvider(SearchProvider):
    name = ProviderName.MISTRAL
    max_tokens = 2000

    def build_payload(self, domain: str) -> dict[str, Any]:
        return {
            "model": self.credentials.model,
            "messages": self.messages(domain),
            "max_tokens": self.max_tokens,
            "temperature": 0,
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": "coupon_codes",
                    "schema": coupon_schema(),
                },
            },
        }


class PerplexityProvider(SearchProvider):
    name = ProviderName.PERPLEXITY
    max_tokens = 5000

    def messages(self, domain: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": system_prompt(domain)},
            {"role": "user", "content": f"Provide an exhaustive research to find discount codes for {domain}"},
        ]

    def build_payload(self, domain: str) -> dict[str, Any]:
        return {
            "model": self.credentials.model,
            "messages": self.messages(domain),
            "max_tokens": self.max_tokens,
            "temperature": 0,
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": "coupon_codes",
                    "strict": True,
                    "schema": coupon_schema(with_summary=True),
                },
            },
            "web_search_options": {"search_context_size": "low"},
        }


PROVIDERS: dict[ProviderName, type[SearchProvider]] = {
    ProviderName.MISTRAL: MistralProvider,
    ProviderName.PERPLEXITY: PerplexityProvider,
}


def build_provider(
    name: ProviderName | str,
    credentials: Optional[ProviderCredentials] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> SearchProvider:
    """Instantiate the provider for name (credentials default to config)."""
    provider_name = ProviderName(name.lower() if isinstance(name, str) else name)
    credentials = credentials or ProviderCredentials.from_config(provider_name)
    return PROVIDERS[provider_name](credentials, client=client)
