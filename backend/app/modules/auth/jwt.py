"""JWT access tokens identifying the calling actor.

Tokens are issued by the platform's identity service; the engine only
validates them. ``create_access_token`` exists for service accounts and
tests.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from app.core.config import settings


class TokenPayload(BaseModel):
    """JWT token payload structure."""

    sub: str  # Actor ID
    role: str = "user"
    exp: datetime
    iat: Optional[datetime] = None
    type: str = "access"
    jti: Optional[str] = None


def create_access_token(
    actor_id: str,
    role: str = "user",
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed access token.

    Args:
        actor_id: Subject of the token
        role: Platform role of the actor
        expires_delta: Lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        str: The encoded token
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {
        "sub": actor_id,
        "role": role,
        "exp": expire,
        "iat": now,
        "type": "access",
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> TokenPayload | None:
    """Decode and validate a JWT token.

    jose checks the signature and ``exp``.

    Args:
        token: Encoded JWT token

    Returns:
        TokenPayload | None: Decoded payload if valid, None otherwise
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return TokenPayload(**payload)
    except (JWTError, ValidationError):
        return None


def validate_token(token: str, expected_type: str = "access") -> TokenPayload | None:
    """Validate a token and check its type.

    Returns:
        TokenPayload | None: Decoded payload if valid, None otherwise
    """
    payload = decode_token(token)
    if payload is None or payload.type != expected_type:
        return None
    return payload
