"""
Purpose: Local, read-only copy of the signed-in user's posts.

What is inside:
PostListStore follows the SessionController. For each authenticated user id it
keeps exactly one live subscription on that user's collection and replaces
the whole list with every snapshot it receives. The old subscription is
always closed before a new one opens.

Snapshots may arrive on the backend's listener thread (Firestore watch), so
the store swaps whole lists under a small lock and tags every subscription
with a generation number; events from a closed generation are dropped.

Testing:
Drive it with InMemoryRemoteStore + InMemoryIdentityProvider.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from datetime import datetime
from typing import Any, Callable, Optional

from ..errors import AuthenticationError, BloggerError, SubscriptionError
from ..interfaces import RemoteStore, Subscription, Unsubscribe
from ..models import (
    PendingWrites,
    Post,
    Session,
    SessionStatus,
    collection_path,
    join_path,
    sort_posts,
)

logger = logging.getLogger(__name__)


class PostListStore:
    def __init__(
        self,
        store: RemoteStore,
        app_id: str,
        *,
        snapshot_timeout_seconds: float = 15.0,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store: RemoteStore = store
        self.app_id = app_id
        self.snapshot_timeout_seconds = snapshot_timeout_seconds
        self._monotonic = monotonic

        self._lock = threading.Lock()
        self._posts: list[Post] = []
        self._loading: bool = True
        self._error: Optional[BloggerError] = None
        self._user_id: Optional[str] = None
        self._subscription: Optional[Subscription] = None
        self._generation: int = 0
        self._activated_at: Optional[float] = None
        self._pending = PendingWrites()
        self._unbind: Optional[Unsubscribe] = None

    # -- read side (View) ------------------------------------------------------

    def current_list(self) -> list[Post]:
        """The latest snapshot, newest first."""
        with self._lock:
            return list(self._posts)

    def is_loading(self) -> bool:
        """True until the first snapshot arrives or activation fails/times out."""
        with self._lock:
            if (
                self._loading
                and self._activated_at is not None
                and self._monotonic() - self._activated_at > self.snapshot_timeout_seconds
            ):
                self._loading = False
                self._error = SubscriptionError(
                    f"No posts received within {self.snapshot_timeout_seconds:g}s."
                )
                logger.warning(
                    "Snapshot timeout for user %s after %ss",
                    self._user_id,
                    self.snapshot_timeout_seconds,
                )
            return self._loading

    @property
    def last_error(self) -> Optional[BloggerError]:
        with self._lock:
            return self._error

    @property
    def active_user_id(self) -> Optional[str]:
        return self._user_id

    def has_subscription(self) -> bool:
        return self._subscription is not None

    # -- session binding -------------------------------------------------------

    def bind(self, session_controller) -> None:
        """Follow a SessionController; syncs with its current state at once."""
        if self._unbind is not None:
            self._unbind()
        self._unbind = session_controller.add_listener(self.on_session)
        self.on_session(session_controller.session)

    def on_session(self, session: Session) -> None:
        if session.is_authenticated:
            if session.user_id != self._user_id:
                self.deactivate()
                self.activate(session.user_id)
            return

        self.deactivate()
        if session.status == SessionStatus.FAILED:
            with self._lock:
                self._loading = False
                self._error = AuthenticationError(session.error or "Sign-in failed.")

    def close(self) -> None:
        if self._unbind is not None:
            self._unbind()
            self._unbind = None
        self.deactivate()

    # -- subscription lifecycle ------------------------------------------------

    def activate(self, user_id: str) -> None:
        """Open the one subscription for `user_id`. Call deactivate() first."""
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._user_id = user_id
            self._posts = []
            self._loading = True
            self._error = None
            self._activated_at = self._monotonic()

        path = collection_path(self.app_id, user_id)
        logger.info("Subscribing to %s", join_path(path))
        try:
            subscription = self.store.subscribe(
                path,
                lambda docs: self._on_snapshot(generation, docs),
                lambda exc: self._on_error(generation, exc),
            )
        except Exception as e:
            self._on_error(generation, e)
            return

        with self._lock:
            current = generation == self._generation
            if current:
                self._subscription = subscription
        if not current:
            subscription.unsubscribe()

    def deactivate(self) -> None:
        """Close the live subscription (synchronously) and forget the user's posts."""
        with self._lock:
            subscription = self._subscription
            user_id = self._user_id
            self._subscription = None
            self._generation += 1
            self._user_id = None
            self._posts = []
            self._loading = True
            self._error = None
            self._activated_at = None
            self._pending = PendingWrites()
        if subscription is not None:
            subscription.unsubscribe()
            logger.info("Closed subscription for user %s", user_id)

    # -- pending writes --------------------------------------------------------

    def mark_pending(self, post_id: str, submitted_at: datetime) -> None:
        """Remember when a create was submitted, for display until it resolves."""
        with self._lock:
            self._pending.mark(post_id, submitted_at)
            self._posts = [
                dataclasses.replace(p, submitted_at=submitted_at)
                if p.id == post_id and p.is_pending
                else p
                for p in self._posts
            ]

    # -- backend callbacks -----------------------------------------------------

    def _on_snapshot(self, generation: int, docs: list[dict[str, Any]]) -> None:
        with self._lock:
            if generation != self._generation:
                logger.debug("Dropping snapshot from closed subscription")
                return
            try:
                posts = [
                    Post.from_document(doc, submitted_at=self._pending.get(doc.get("id")))
                    for doc in docs
                ]
            except (TypeError, ValueError) as e:
                err = SubscriptionError(f"Malformed snapshot: {e}")
                logger.error("Failed to fetch blogs: %s", err)
                self._loading = False
                self._error = err
                return

            for post_id in list(self._pending.submitted):
                if not any(p.id == post_id and p.is_pending for p in posts):
                    self._pending.forget(post_id)

            self._posts = sort_posts(posts)
            self._loading = False
            self._error = None

    def _on_error(self, generation: int, exc: Exception) -> None:
        err = exc if isinstance(exc, SubscriptionError) else SubscriptionError(str(exc))
        with self._lock:
            if generation != self._generation:
                return
            self._loading = False
            self._error = err
        logger.error("Failed to fetch blogs: %s", err)
