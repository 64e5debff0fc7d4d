"""FastAPI dependencies resolving the calling actor."""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.modules.auth.actor import Actor, Authorizer, RoleAuthorizer
from app.modules.auth.jwt import validate_token

security = HTTPBearer(auto_error=False)


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Actor:
    """Extract the actor from the Bearer token.

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = validate_token(credentials.credentials, "access")
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Actor(id=payload.sub, role=payload.role)


def get_authorizer() -> Authorizer:
    return RoleAuthorizer()
