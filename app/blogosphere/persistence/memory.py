"""
In-memory identity provider and document store.

Used when BLOGGER_USE_IN_MEMORY_BACKENDS is set (local development without a
Firebase project) and as the test doubles for the controllers. Snapshot
fan-out is synchronous: a write notifies every live subscriber of its
collection before returning.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from ..errors import AuthenticationError
from ..interfaces import ErrorCallback, SnapshotCallback
from ..utils.listeners import AuthStateNotifier

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryIdentityProvider(AuthStateNotifier):
    """Test double for Firebase Authentication."""

    def __init__(
        self,
        *,
        tokens: Optional[dict[str, str]] = None,
        id_prefix: str = "anon",
        id_factory: Optional[Callable[[], str]] = None,
        fail_with: Optional[Exception] = None,
    ):
        super().__init__()
        self.tokens: dict[str, str] = dict(tokens or {})
        self.id_prefix = id_prefix
        self.fail_with = fail_with
        self.calls: list[tuple[str, Optional[str]]] = []
        # Unique per process: every browser session builds its own provider.
        self.id_factory = id_factory or self._random_id

    def _random_id(self) -> str:
        return f"{self.id_prefix}-{uuid.uuid4().hex[:12]}"

    def sign_in_anonymously(self) -> str:
        self.calls.append(("anonymous", None))
        if self.fail_with is not None:
            raise self.fail_with
        user_id = self.id_factory()
        self._set_user(user_id)
        return user_id

    def sign_in_with_token(self, token: str) -> str:
        self.calls.append(("token", token))
        if self.fail_with is not None:
            raise self.fail_with
        user_id = self.tokens.get(token)
        if not user_id:
            raise AuthenticationError("INVALID_CUSTOM_TOKEN")
        self._set_user(user_id)
        return user_id

    def sign_out(self) -> None:
        self.calls.append(("sign_out", None))
        self._set_user(None)


@dataclass(eq=False)
class _MemorySubscription:
    store: "InMemoryRemoteStore"
    path: tuple[str, ...]
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback
    active: bool = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self.store._detach(self)


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass
class InMemoryRemoteStore:
    """Test double for the Firestore document store."""

    clock: Callable[[], datetime] = _utcnow
    resolve_timestamps: bool = True
    collections: dict = field(default_factory=dict)
    calls: list = field(default_factory=list)
    _subscribers: dict = field(default_factory=dict)
    _failures: dict = field(default_factory=dict)
    _pending: list = field(default_factory=list)

    # -- failure injection -------------------------------------------------

    def fail_next(self, op: str, exc: Exception) -> None:
        """Make the next `op` call ("create", "update", "delete") raise exc."""
        self._failures[op] = exc

    def _maybe_fail(self, op: str) -> None:
        exc = self._failures.pop(op, None)
        if exc is not None:
            raise exc

    def emit_error(self, path: tuple[str, ...], exc: Exception) -> None:
        """Break the push channel of every live subscriber on `path`."""
        for sub in list(self._subscribers.get(tuple(path), [])):
            sub.on_error(exc)

    # -- RemoteStore ---------------------------------------------------------

    def server_timestamp(self) -> Any:
        return SERVER_TIMESTAMP

    def subscribe(
        self,
        path: tuple[str, ...],
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> _MemorySubscription:
        path = tuple(path)
        self.calls.append(("subscribe", path, None))
        sub = _MemorySubscription(self, path, on_snapshot, on_error)
        self._subscribers.setdefault(path, []).append(sub)
        on_snapshot(self.snapshot(path))
        return sub

    def create(self, path: tuple[str, ...], fields: dict[str, Any]) -> str:
        path = tuple(path)
        self.calls.append(("create", path, dict(fields)))
        self._maybe_fail("create")
        doc_id = uuid.uuid4().hex[:20]
        self.collections.setdefault(path, {})[doc_id] = self._stamp(
            path + (doc_id,), fields
        )
        self._notify(path)
        return doc_id

    def update(self, path: tuple[str, ...], fields: dict[str, Any]) -> None:
        path = tuple(path)
        self.calls.append(("update", path, dict(fields)))
        self._maybe_fail("update")
        docs = self.collections.get(path[:-1], {})
        if path[-1] not in docs:
            raise LookupError(f"No document to update: {'/'.join(path)}")
        docs[path[-1]].update(self._stamp(path, fields))
        self._notify(path[:-1])

    def delete(self, path: tuple[str, ...]) -> None:
        path = tuple(path)
        self.calls.append(("delete", path, None))
        self._maybe_fail("delete")
        if self.collections.get(path[:-1], {}).pop(path[-1], None) is not None:
            self._notify(path[:-1])

    # -- helpers -------------------------------------------------------------

    def snapshot(self, path: tuple[str, ...]) -> list[dict[str, Any]]:
        docs = self.collections.get(tuple(path), {})
        return [{"id": doc_id, **copy.deepcopy(data)} for doc_id, data in docs.items()]

    def subscriber_count(self, path: tuple[str, ...]) -> int:
        return len(self._subscribers.get(tuple(path), []))

    def resolve_pending(self) -> None:
        """Resolve timestamps held back while resolve_timestamps is False."""
        touched = set()
        for doc_path, name in self._pending:
            doc = self.collections.get(doc_path[:-1], {}).get(doc_path[-1])
            if doc is not None:
                doc[name] = self.clock()
                touched.add(doc_path[:-1])
        self._pending.clear()
        for path in touched:
            self._notify(path)

    def _stamp(self, doc_path: tuple[str, ...], fields: dict[str, Any]) -> dict:
        data = {}
        for name, value in fields.items():
            if value is SERVER_TIMESTAMP:
                if self.resolve_timestamps:
                    value = self.clock()
                else:
                    self._pending.append((doc_path, name))
                    value = None
            data[name] = value
        return data

    def _notify(self, path: tuple[str, ...]) -> None:
        docs = self.snapshot(path)
        for sub in list(self._subscribers.get(path, [])):
            sub.on_snapshot(copy.deepcopy(docs))

    def _detach(self, sub: _MemorySubscription) -> None:
        self.calls.append(("unsubscribe", sub.path, None))
        subs = self._subscribers.get(sub.path, [])
        if sub in subs:
            subs.remove(sub)
        logger.debug("Closed in-memory subscription on %s", "/".join(sub.path))
