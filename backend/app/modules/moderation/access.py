"""Moderator capability checks used by every engine service."""

from app.modules.auth.actor import Actor, Authorizer
from app.modules.moderation.exceptions import Unauthorized


def ensure_moderator(authorizer: Authorizer, actor: Actor) -> None:
    """Raise ``Unauthorized`` unless the actor may moderate content."""
    if not authorizer.is_moderator(actor):
        raise Unauthorized(f"Actor {actor.id} lacks moderator capability")
