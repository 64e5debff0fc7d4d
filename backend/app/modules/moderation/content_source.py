"""Client for the external content store.

The engine never owns articles, topics, replies or job postings. When an
item is first reported or scored it asks the content store for the few
fields the moderation queue needs.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

import httpx

from app.modules.moderation.exceptions import ContentNotFound, StorageUnavailable
from app.modules.moderation.models import (
    ContentRef,
    ContentStatus,
    ContentType,
    ModeratedContent,
)
from app.modules.moderation.repository import ContentStore

EXCERPT_LENGTH = 200

RESOURCE_PATHS = {
    ContentType.ARTICLE: "articles",
    ContentType.TOPIC: "topics",
    ContentType.REPLY: "replies",
    ContentType.JOB: "jobs",
}


@dataclass(frozen=True)
class ContentSnapshot:
    """Moderation-relevant fields of an externally stored content item."""
    ref: ContentRef
    title: Optional[str]
    excerpt: Optional[str]
    author_id: Optional[str]
    created_at: datetime

    def to_projection(self) -> ModeratedContent:
        return ModeratedContent(
            content_type=self.ref.content_type.value,
            content_id=self.ref.content_id,
            title=self.title,
            excerpt=self.excerpt,
            author_id=self.author_id,
            content_created_at=self.created_at,
            status=ContentStatus.PENDING.value,
            report_count=0,
        )


def _parse_timestamp(value: str) -> datetime:
    created_at = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if created_at.tzinfo is None:
        return created_at.replace(tzinfo=timezone.utc)
    return created_at


class ContentSource(Protocol):
    """Lookup of content items in the external store."""

    async def get_content(self, ref: ContentRef) -> Optional[ContentSnapshot]: ...


class HttpContentSource:
    """Fetch content snapshots over the content service's REST API.

    ``GET {base_url}/{articles|topics|replies|jobs}/{id}`` answering JSON
    with ``title``, ``excerpt`` or ``content``, ``authorId`` and ``createdAt``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def get_content(self, ref: ContentRef) -> Optional[ContentSnapshot]:
        """Fetch one item.

        Returns:
            The snapshot, or None when the content store answers 404

        Raises:
            StorageUnavailable: If the content store cannot be reached
                or answers with a malformed item
        """
        url = f"{self.base_url}/{RESOURCE_PATHS[ref.content_type]}/{ref.content_id}"
        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.get(url, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise StorageUnavailable(f"Content service unreachable: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise StorageUnavailable(
                f"Content service request failed: {response.status_code}"
            )

        try:
            return self._parse_snapshot(ref, response.json())
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StorageUnavailable(f"Content service sent a malformed item for {ref}: {e!r}") from e

    @staticmethod
    def _parse_snapshot(ref: ContentRef, data: dict) -> ContentSnapshot:
        author_id = data.get("authorId")
        excerpt = data.get("excerpt") or (data.get("content") or "")[:EXCERPT_LENGTH] or None
        return ContentSnapshot(
            ref=ref,
            title=data.get("title"),
            excerpt=excerpt,
            author_id=str(author_id) if author_id is not None else None,
            created_at=_parse_timestamp(data["createdAt"]),
        )


async def track_content(store: ContentStore, source: ContentSource, ref: ContentRef) -> ModeratedContent:
    """Return the tracked projection of ``ref``, creating it on first sight.

    Raises:
        ContentNotFound: If the content store does not know the item
    """
    item = await store.get(ref)
    if item is not None:
        return item

    snapshot = await source.get_content(ref)
    if snapshot is None:
        raise ContentNotFound(f"Content {ref} not found")
    return await store.add(snapshot.to_projection())
