"""FastAPI dependencies for actor identity and the notification boundary."""

from typing import Optional
from uuid import UUID

import jwt
from fastapi import Depends, Header
from jwt import PyJWTError

from ..schemas.common import Actor
from ..services.notifications import Notifier, get_notifier
from .config import settings
from .exceptions import AuthenticationError, AuthorizationError


def decode_actor_token(token: str) -> Actor:
    """
    Verify a bearer token and extract the acting account.

    Args:
        token: Encoded HS256 JWT

    Returns:
        Actor: Account id (``sub``) and optional email

    Raises:
        AuthenticationError: If the token is invalid, expired or lacks ``sub``
    """
    try:
        payload = jwt.decode(
            token,
            settings.bearer_token_secret,
            algorithms=["HS256"],
        )
    except PyJWTError as e:
        raise AuthenticationError(detail=f"Token validation failed: {e}") from e

    account_id = payload.get("sub")
    if account_id is None:
        raise AuthenticationError(detail="Invalid token payload")

    return Actor(account_id=str(account_id), email=payload.get("email"))


async def get_current_actor(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> Actor:
    """
    Authentication dependency that validates Bearer tokens.

    Raises:
        AuthenticationError: If the header is missing or malformed
    """
    if not authorization:
        raise AuthenticationError(detail="Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError(detail="Invalid authorization header format")

    if scheme.lower() != "bearer":
        raise AuthenticationError(detail="Invalid authentication scheme")

    return decode_actor_token(token)


async def get_current_host_id(actor: Actor = Depends(get_current_actor)) -> UUID:
    """
    Host identity of the caller.

    Hosts authenticate with their host id as the token subject.

    Raises:
        AuthorizationError: If the subject is not a host id
    """
    try:
        return UUID(actor.account_id)
    except ValueError:
        raise AuthorizationError(
            detail="This operation requires a host account",
            code="HOST_ACCOUNT_REQUIRED",
        )


async def get_current_notifier() -> Notifier:
    """Notification boundary used by services that message users."""
    return get_notifier()


CurrentActor = Depends(get_current_actor)
CurrentHostId = Depends(get_current_host_id)
CurrentNotifier = Depends(get_current_notifier)
