"""
Purpose: Cloud Firestore adapter behind the RemoteStore protocol.

Snapshots come from a collection watch (`on_snapshot`), which calls back on
the client library's own thread with the full collection every time.
Writes carry an explicit timeout and `retry=None`: failures surface to the
caller instead of being retried inside the client library.
"""

from __future__ import annotations

import logging
from typing import Any

from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from ..interfaces import ErrorCallback, SnapshotCallback
from ..models import join_path

logger = logging.getLogger(__name__)


class FirestoreSubscription:
    def __init__(self, watch, path: tuple[str, ...]):
        self.watch = watch
        self.path = path
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self.watch.unsubscribe()
        logger.debug("Stopped watch on %s", join_path(self.path))


class FirestoreRemoteStore:
    def __init__(self, client, *, timeout: float = 10.0):
        self.client = client
        self.timeout = timeout

    def server_timestamp(self) -> Any:
        return SERVER_TIMESTAMP

    def subscribe(
        self,
        path: tuple[str, ...],
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> FirestoreSubscription:
        def _callback(col_snapshot, changes, read_time):
            try:
                docs = [{"id": doc.id, **(doc.to_dict() or {})} for doc in col_snapshot]
                on_snapshot(docs)
            except Exception as e:
                logger.exception("Snapshot handler failed for %s", join_path(path))
                on_error(e)

        watch = self.client.collection(*path).on_snapshot(_callback)
        return FirestoreSubscription(watch, tuple(path))

    def create(self, path: tuple[str, ...], fields: dict[str, Any]) -> str:
        _, ref = self.client.collection(*path).add(
            fields, retry=None, timeout=self.timeout
        )
        return ref.id

    def update(self, path: tuple[str, ...], fields: dict[str, Any]) -> None:
        self.client.document(*path).update(fields, retry=None, timeout=self.timeout)

    def delete(self, path: tuple[str, ...]) -> None:
        self.client.document(*path).delete(retry=None, timeout=self.timeout)
