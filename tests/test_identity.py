"""Tests for bearer token resolution."""
import asyncio

import pytest
from src.auth.identity import IdentityService, extract_token
from src.errors import UnauthorizedError


def test_extract_token():
    assert extract_token("Bearer abc.def") == "abc.def"


def test_extract_token_missing_header():
    with pytest.raises(UnauthorizedError) as exc_info:
        extract_token(None)
    assert str(exc_info.value) == "Missing authorization header"


def test_resolve_valid_token(supabase):
    user = asyncio.run(IdentityService(supabase).resolve("Bearer good-token"))

    assert user.id == "user-1"
    assert user.email == "shopper@example.com"


def test_resolve_rejected_token(supabase):
    with pytest.raises(UnauthorizedError) as exc_info:
        asyncio.run(IdentityService(supabase).resolve("Bearer bad-token"))
    assert exc_info.value.status_code == 401
    assert str(exc_info.value) == "Unauthorized"
