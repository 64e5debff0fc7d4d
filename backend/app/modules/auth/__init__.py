"""Authentication module."""

from app.modules.auth.actor import Actor, Authorizer, RoleAuthorizer
from app.modules.auth.dependencies import get_authorizer, get_current_actor
from app.modules.auth.jwt import (
    TokenPayload,
    create_access_token,
    decode_token,
    validate_token,
)

__all__ = [
    # Actor
    "Actor",
    "Authorizer",
    "RoleAuthorizer",
    # Dependencies
    "get_current_actor",
    "get_authorizer",
    # JWT
    "TokenPayload",
    "create_access_token",
    "decode_token",
    "validate_token",
]
