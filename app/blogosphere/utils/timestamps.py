"""Display helpers for post timestamps."""

from __future__ import annotations
from datetime import datetime
from typing import Optional

from ..models import Post

DISPLAY_FORMAT = "%c"


def _local(dt: datetime) -> datetime:
    return dt.astimezone() if dt.tzinfo else dt


def format_datetime(dt: Optional[datetime], fmt: str = DISPLAY_FORMAT) -> str:
    if dt is None:
        return "N/A"
    return _local(dt).strftime(fmt)


def format_timestamp(post: Post, fmt: str = DISPLAY_FORMAT) -> str:
    """
    Server time once resolved; until then the local time captured at submit,
    silently replaced when the next snapshot carries the real value.
    """
    if post.created_at is not None:
        return format_datetime(post.created_at, fmt)
    return format_datetime(post.submitted_at, fmt)
