"""
Canonical data shapes, shared truth for typing between layers.

Typical contents:
- Session (user id + auth status).
- Post (a read-only copy of a stored blog post).
- Draft (the form's transient field state).
- Collection/document path helpers for the per-user post collection.

Testing: Trivial; mostly types. Ordering lives in sort_posts().
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional


POSTS_COLLECTION = "blog_posts"
TIMESTAMP_FIELD = "timestamp"
TEXT_FIELDS = ("title", "description", "author")


class SessionStatus(str, Enum):
    UNAUTHENTICATED = "Unauthenticated"
    AUTHENTICATING = "Authenticating"
    AUTHENTICATED = "Authenticated"
    FAILED = "Failed"


@dataclass(frozen=True)
class Session:
    status: SessionStatus = SessionStatus.UNAUTHENTICATED
    user_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.status == SessionStatus.AUTHENTICATED and bool(self.user_id)


@dataclass(frozen=True)
class Post:
    id: str
    title: str
    description: str
    author: str
    created_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        """True while the server timestamp has not come back yet."""
        return self.created_at is None

    @classmethod
    def from_document(
        cls, doc: Mapping[str, Any], *, submitted_at: Optional[datetime] = None
    ) -> "Post":
        """Build a Post from a snapshot document ({"id": ..., **fields})."""
        if not doc.get("id"):
            raise ValueError(f"Snapshot document without id: {doc!r}")
        created = doc.get(TIMESTAMP_FIELD)
        if created is not None and not isinstance(created, datetime):
            raise ValueError(f"Unsupported timestamp value: {created!r}")
        if created is not None and created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return cls(
            id=str(doc["id"]),
            title=str(doc.get("title") or ""),
            description=str(doc.get("description") or ""),
            author=str(doc.get("author") or ""),
            created_at=created,
            submitted_at=submitted_at if created is None else None,
        )


@dataclass
class Draft:
    title: str = ""
    description: str = ""
    author: str = ""
    editing_id: Optional[str] = None

    @property
    def is_editing(self) -> bool:
        return self.editing_id is not None

    def fields(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in TEXT_FIELDS}


@dataclass
class PendingWrites:
    """Local submission times for created posts still awaiting their echo."""

    submitted: dict[str, datetime] = field(default_factory=dict)

    def mark(self, post_id: str, when: datetime) -> None:
        self.submitted[post_id] = when

    def get(self, post_id: str) -> Optional[datetime]:
        return self.submitted.get(post_id)

    def forget(self, post_id: str) -> None:
        self.submitted.pop(post_id, None)


def collection_path(app_id: str, user_id: str) -> tuple[str, ...]:
    """Path of one user's post collection inside the application namespace."""
    if not app_id or not user_id:
        raise ValueError("collection_path needs both app_id and user_id")
    return ("artifacts", app_id, "users", user_id, POSTS_COLLECTION)


def document_path(app_id: str, user_id: str, post_id: str) -> tuple[str, ...]:
    if not post_id:
        raise ValueError("document_path needs a post id")
    return collection_path(app_id, user_id) + (post_id,)


def join_path(path: tuple[str, ...]) -> str:
    return "/".join(path)


def _sort_key(post: Post) -> tuple:
    if post.created_at is None:
        return (0, 0.0, post.id)
    return (1, -post.created_at.timestamp(), post.id)


def sort_posts(posts) -> list[Post]:
    """Newest first; posts still waiting for a server timestamp on top."""
    return sorted(posts, key=_sort_key)
