"""
Purpose: The single orchestration point for the post form. Owns the Draft.
It centralizes the create/update/cancel transitions and the delete flow so the
UI never talks to the store directly.

Key responsibilities:
- Hold the Draft (three text fields + the id being edited, if any).
- Apply guardrails (services.security) before any network call.
- Issue create/update/delete against the signed-in user's collection.
- Reset the Draft only after the store accepted the write.

The list is never touched here: the store's own snapshot is the only path by
which a write becomes visible.

Testing: Pure unit tests with persistence.memory fakes; assert the calls the
store received and the Draft afterwards.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from .controller_session import SessionController
from .errors import ValidationError, WriteError
from .interfaces import RemoteStore
from .models import (
    Draft,
    Post,
    TEXT_FIELDS,
    TIMESTAMP_FIELD,
    collection_path,
    document_path,
    join_path,
)
from .persistence.post_store import PostListStore
from .services.security import DefaultSecurity

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PostFormController:
    def __init__(
        self,
        store: RemoteStore,
        session: SessionController,
        app_id: str,
        *,
        posts: Optional[PostListStore] = None,
        clock: Callable[[], datetime] = _now,
    ):
        self.store: RemoteStore = store
        self.session = session
        self.app_id = app_id
        self.posts = posts
        self.security = DefaultSecurity()
        self.clock = clock
        self.draft = Draft()

    @property
    def is_editing(self) -> bool:
        return self.draft.is_editing

    @property
    def heading(self) -> str:
        return "Edit Blog Post" if self.is_editing else "Create New Post"

    @property
    def submit_label(self) -> str:
        return "Update Post" if self.is_editing else "Add Post"

    def set_field(self, name: str, value: str) -> None:
        """Set one of title / description / author on the Draft."""
        if name not in TEXT_FIELDS:
            raise ValueError(f"Unknown draft field: {name!r}")
        setattr(self.draft, name, value or "")

    def start_edit(self, post: Post) -> None:
        """Copy a post's text fields and id into the Draft."""
        self.draft = Draft(
            title=post.title,
            description=post.description,
            author=post.author,
            editing_id=post.id,
        )

    def cancel(self) -> None:
        """Reset the Draft to all-empty (also leaves edit mode)."""
        self.draft = Draft()

    def _require_user(self) -> str:
        user_id = self.session.user_id if self.session.is_authenticated() else None
        if not user_id:
            raise ValidationError("Not signed in yet. Please wait and try again.")
        return user_id

    def submit(self) -> str:
        """
        Validate the Draft and issue one create or update call.
        Returns the post id. The Draft is reset only on success; on WriteError
        it is left intact so no input is lost.
        """
        fields = self.security.validate_draft(self.draft)
        user_id = self._require_user()
        editing_id = self.draft.editing_id

        try:
            if editing_id:
                path = document_path(self.app_id, user_id, editing_id)
                self.store.update(path, fields)
                post_id = editing_id
                logger.info("Updated post %s", join_path(path))
            else:
                path = collection_path(self.app_id, user_id)
                submitted_at = self.clock()
                post_id = self.store.create(
                    path, {**fields, TIMESTAMP_FIELD: self.store.server_timestamp()}
                )
                if self.posts is not None:
                    self.posts.mark_pending(post_id, submitted_at)
                logger.info("Created post %s/%s", join_path(path), post_id)
        except Exception as e:
            logger.exception("Error adding/updating document")
            raise WriteError(f"Could not save the post: {e}") from e

        self.cancel()
        return post_id

    def delete(self, post_id: str) -> None:
        """Delete a post. No confirmation, no undo; the list follows the store."""
        user_id = self._require_user()
        path = document_path(self.app_id, user_id, post_id)
        try:
            self.store.delete(path)
        except Exception as e:
            logger.exception("Error deleting document")
            raise WriteError(f"Could not delete the post: {e}") from e
        logger.info("Deleted post %s", join_path(path))
