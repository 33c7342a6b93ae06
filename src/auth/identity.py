"""Resolve a bearer token to a user through Supabase Auth."""
import logging
from typing import Optional

from supabase import Client

from src.errors import UnauthorizedError
from src.parse.models import AuthenticatedUser
from src.store.client import create_supabase_client, run_sync

logger = logging.getLogger(__name__)


def extract_token(authorization: Optional[str]) -> str:
    """Return the token part of an Authorization header."""
    if not authorization:
        raise UnauthorizedError("Missing authorization header")
    token = authorization.replace("Bearer ", "", 1).strip()
    if not token:
        raise UnauthorizedError("Missing authorization header")
    return token


class IdentityService:
    """Exchanges bearer tokens for user identities."""

    def __init__(self, client: Optional[Client] = None):
        self.client: Client = client or create_supabase_client()

    async def resolve(self, authorization: Optional[str]) -> AuthenticatedUser:
        token = extract_token(authorization)
        try:
            response = await run_sync(self.client.auth.get_user, token)
        except Exception as e:
            logger.warning(f"Token verification failed: {e}")
            raise UnauthorizedError("Unauthorized") from e

        user = getattr(response, "user", None)
        if user is None or not getattr(user, "id", None):
            raise UnauthorizedError("Unauthorized")
        return AuthenticatedUser(id=str(user.id), email=getattr(user, "email", None))
