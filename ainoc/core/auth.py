"""
Caller identity for the chat endpoint

Session tokens are issued by the web app's auth provider (NextAuth, HS256 JWT
signed with AUTH_SECRET). This module only decodes them: a request resolves to
either ``Authenticated(identity)`` or ``Unauthenticated(reason)`` and the result
is passed explicitly to every tool call. Nothing here raises for a missing or
bad token; user-scoped tools decide what to do with an unauthenticated caller.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from .config import settings

logger = logging.getLogger(__name__)

# Security scheme for bearer tokens
security = HTTPBearer(auto_error=False)

LOGIN_REQUIRED_MESSAGE = "You must be logged in to use this feature. Please sign in first."
SESSION_INVALID_MESSAGE = "Authentication failed. Please sign in again."


class Identity(BaseModel):
    """Signed-in user, as resolved from the session token"""
    id: str
    name: str
    email: str

    @property
    def bill_to_party_code(self) -> str:
        """
        Customer ownership key used to scope invoice queries.

        The display name doubles as the bill-to party code. Collisions and
        renames break this mapping; swap it for a real partner id once the
        auth provider carries one.
        """
        return self.name


@dataclass(frozen=True)
class Authenticated:
    identity: Identity


@dataclass(frozen=True)
class Unauthenticated:
    reason: str = LOGIN_REQUIRED_MESSAGE


AuthState = Union[Authenticated, Unauthenticated]


def decode_session_token(token: str) -> dict:
    """Decode and verify a session JWT. Raises JWTError on any failure."""
    if not settings.AUTH_SECRET:
        raise JWTError("AUTH_SECRET is not configured")

    return jwt.decode(
        token,
        settings.AUTH_SECRET,
        algorithms=[settings.AUTH_ALGORITHM],
        options={"verify_aud": False},
    )


def resolve_identity(token: Optional[str]) -> AuthState:
    """
    Resolve a bearer token into an auth state.

    Missing token -> Unauthenticated (login required).
    Invalid, expired or incomplete token -> Unauthenticated (sign in again).
    """
    if not token:
        return Unauthenticated()

    try:
        payload = decode_session_token(token)
    except JWTError as e:
        logger.info(f"Rejected session token: {e}")
        return Unauthenticated(SESSION_INVALID_MESSAGE)

    user_id = payload.get("id") or payload.get("sub")
    name = payload.get("name")
    email = payload.get("email")

    if not user_id or not name or not email:
        logger.info("Session token missing id, name or email")
        return Unauthenticated(SESSION_INVALID_MESSAGE)

    return Authenticated(Identity(id=str(user_id), name=name, email=email))


async def get_auth_state(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> AuthState:
    """
    FastAPI dependency: never rejects the request, only reports who is calling.

    Usage:
        @router.post("/chat")
        async def chat(auth: AuthState = Depends(get_auth_state)):
            ...
    """
    token = credentials.credentials if credentials else None
    return resolve_identity(token)
