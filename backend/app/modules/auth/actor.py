"""Calling actor and the moderator capability check."""

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from app.core.config import settings


@dataclass(frozen=True)
class Actor:
    """Authenticated caller of the engine."""
    id: str
    role: str = "user"


class Authorizer(Protocol):
    """Decides whether an actor may moderate content."""

    def is_moderator(self, actor: Actor) -> bool: ...


class RoleAuthorizer:
    """Grant moderator capability to a fixed set of roles."""

    def __init__(self, roles: Optional[Iterable[str]] = None):
        self.roles = frozenset(roles if roles is not None else settings.MODERATOR_ROLES)

    def is_moderator(self, actor: Actor) -> bool:
        return actor.role in self.roles
