"""Moderation queue: filtered, sorted and paginated views over tracked content."""

from dataclasses import dataclass

from app.modules.auth.actor import Actor, Authorizer
from app.modules.moderation.access import ensure_moderator
from app.modules.moderation.filters import QueueQuery, total_pages
from app.modules.moderation.models import ModeratedContent, SpamRiskLevel
from app.modules.moderation.repository import ContentStore
from app.modules.moderation.spam import band_for_score


@dataclass
class QueueItem:
    content: ModeratedContent
    spam_risk: SpamRiskLevel


@dataclass
class QueuePage:
    """One page of the queue; totals reflect the applied filters."""
    items: list[QueueItem]
    total: int
    page: int
    page_size: int
    total_pages: int


class ModerationQueueService:
    """Build queue views for moderators."""

    def __init__(self, content_store: ContentStore, authorizer: Authorizer):
        self.content_store = content_store
        self.authorizer = authorizer

    async def list_queue(self, actor: Actor, query: QueueQuery) -> QueuePage:
        """List queue items matching ``query``.

        Raises:
            Unauthorized: If the actor is not a moderator
        """
        ensure_moderator(self.authorizer, actor)
        items, total = await self.content_store.list_queue(query)
        return QueuePage(
            items=[
                QueueItem(
                    content=item,
                    spam_risk=band_for_score(
                        item.spam_score, flag_threshold=query.flag_threshold
                    ),
                )
                for item in items
            ],
            total=total,
            page=query.page,
            page_size=query.page_size,
            total_pages=total_pages(total, query.page_size),
        )
