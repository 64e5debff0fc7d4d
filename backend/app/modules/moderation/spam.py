"""Spam score ingestion and risk banding.

Scores are produced by an external classifier; the engine stores them,
bands them for display and auto-flags pending items above the threshold.
"""

import logging
from typing import Optional

from app.core.config import settings
from app.core.logging import log_info
from app.modules.auth.actor import Actor, Authorizer
from app.modules.moderation.access import ensure_moderator
from app.modules.moderation.audit import AuditLog, build_entry
from app.modules.moderation.content_source import ContentSource, track_content
from app.modules.moderation.exceptions import ValidationFailed
from app.modules.moderation.models import (
    SYSTEM_ACTOR_ID,
    AuditAction,
    ContentRef,
    ContentStatus,
    ModeratedContent,
    SpamRiskLevel,
)
from app.modules.moderation.rate_limiter import RateLimiter, moderation_policy
from app.modules.moderation.repository import ContentStore

logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 100


def band_for_score(
    score: Optional[int],
    medium_threshold: Optional[int] = None,
    flag_threshold: Optional[int] = None,
) -> SpamRiskLevel:
    """Map a 0-100 score onto a risk band.

    ``low`` is below ``medium_threshold``, ``high`` is strictly above
    ``flag_threshold`` and ``medium`` is everything in between.
    """
    if score is None:
        return SpamRiskLevel.UNKNOWN
    medium = settings.SPAM_MEDIUM_RISK_THRESHOLD if medium_threshold is None else medium_threshold
    high = settings.SPAM_FLAG_THRESHOLD if flag_threshold is None else flag_threshold
    if score > high:
        return SpamRiskLevel.HIGH
    if score >= medium:
        return SpamRiskLevel.MEDIUM
    return SpamRiskLevel.LOW


class SpamScoreService:
    """Store externally computed scores on the content projection."""

    def __init__(
        self,
        content_store: ContentStore,
        content_source: ContentSource,
        audit_log: AuditLog,
        authorizer: Authorizer,
        rate_limiter: RateLimiter,
        flag_threshold: Optional[int] = None,
    ):
        self.content_store = content_store
        self.content_source = content_source
        self.audit_log = audit_log
        self.authorizer = authorizer
        self.rate_limiter = rate_limiter
        self.flag_threshold = (
            settings.SPAM_FLAG_THRESHOLD if flag_threshold is None else flag_threshold
        )

    async def record_score(self, actor: Actor, ref: ContentRef, score: int) -> ModeratedContent:
        """Store a score and flag the item if it crosses the threshold.

        A flag is only raised from ``pending``; an item a moderator has
        already decided keeps its status.

        Raises:
            Unauthorized: If the actor is not a moderator or classifier account
            ValidationFailed: If the score is outside 0-100
            RateLimited: If the actor exhausted the moderator action window
            ContentNotFound: If the content does not exist
        """
        ensure_moderator(self.authorizer, actor)
        if not MIN_SCORE <= score <= MAX_SCORE:
            raise ValidationFailed(f"Spam score must be between {MIN_SCORE} and {MAX_SCORE}")
        await self.rate_limiter.enforce(actor.id, moderation_policy())

        item = await track_content(self.content_store, self.content_source, ref)
        await self.content_store.set_spam_score(ref, score)

        if score > self.flag_threshold and item.status == ContentStatus.PENDING.value:
            flagged = await self.content_store.compare_and_set_status(
                ref, ContentStatus.PENDING.value, ContentStatus.FLAGGED.value
            )
            if flagged:
                await self.audit_log.record(
                    build_entry(
                        ref,
                        AuditAction.AUTO_FLAG,
                        SYSTEM_ACTOR_ID,
                        f"Spam score {score} above {self.flag_threshold}",
                        ContentStatus.PENDING,
                        ContentStatus.FLAGGED,
                    )
                )
                log_info(logger, "Content auto-flagged", content_ref=str(ref), spam_score=score)

        return await self.content_store.get(ref)
