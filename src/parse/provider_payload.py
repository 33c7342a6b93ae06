"""Decode and validate the raw text a search provider answers with."""
import logging

import orjson
from pydantic import ValidationError

from src.errors import ProviderResponseError
from src.parse.models import ProviderPayload

logger = logging.getLogger(__name__)

THINK_MARKER = "</think>"


def strip_wrappers(content: str) -> str:
    """
    Remove what reasoning models put around the JSON document:
    a leading <think>...</think> block and markdown code fences.
    """
    text = content.strip()

    idx = text.rfind(THINK_MARKER)
    if idx != -1:
        text = text[idx + len(THINK_MARKER):].strip()

    if text.startswith("```json"):
        text = text[7:].strip()
    elif text.startswith("```"):
        text = text[3:].strip()
    if text.endswith("```"):
        text = text[:-3].strip()

    return text


def parse_provider_content(content: str | None) -> ProviderPayload:
    """Parse provider output into a ProviderPayload or raise ProviderResponseError."""
    if not content:
        raise ProviderResponseError("Empty response from search provider")

    text = strip_wrappers(content)
    try:
        data = orjson.loads(text)
    except orjson.JSONDecodeError as e:
        logger.warning(f"[PROVIDER] Response is not valid JSON ({len(text)} chars): {e}")
        raise ProviderResponseError("Failed to parse provider response", detail=str(e)) from e

    if not isinstance(data, dict):
        raise ProviderResponseError(
            "Failed to parse provider response",
            detail=f"expected a JSON object, got {type(data).__name__}",
        )

    try:
        return ProviderPayload.model_validate(data)
    except ValidationError as e:
        logger.warning(f"[PROVIDER] Response does not match coupon schema: {e.error_count()} errors")
        raise ProviderResponseError("Provider response does not match coupon schema", detail=str(e)) from e
