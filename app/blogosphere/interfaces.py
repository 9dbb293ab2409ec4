"""
Abstractions for the two external collaborators. Inversion of control: the
controllers depend on these protocols, not on Firebase, so they can be driven
by the in-memory backends in tests and local development.

Common protocols:
- IdentityProvider.sign_in_anonymously() / sign_in_with_token(token) -> user id
- IdentityProvider.on_state_change(callback) -> unsubscribe
- RemoteStore.subscribe(path, on_snapshot, on_error) -> Subscription
- RemoteStore.create/update/delete

Testing: Use persistence.memory fakes to test controllers without network calls.
"""

from __future__ import annotations
from typing import Any, Callable, Optional, Protocol


AuthStateCallback = Callable[[Optional[str]], None]
SnapshotCallback = Callable[[list[dict[str, Any]]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class IdentityProvider(Protocol):
    def sign_in_anonymously(self) -> str: ...

    def sign_in_with_token(self, token: str) -> str: ...

    def sign_out(self) -> None: ...

    def on_state_change(self, callback: AuthStateCallback) -> Unsubscribe:
        """Register for user changes. The current state is replayed at once."""
        ...


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class RemoteStore(Protocol):
    def subscribe(
        self,
        path: tuple[str, ...],
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        """Push the full collection as a list of {"id": ..., **fields} dicts."""
        ...

    def create(self, path: tuple[str, ...], fields: dict[str, Any]) -> str: ...

    def update(self, path: tuple[str, ...], fields: dict[str, Any]) -> None: ...

    def delete(self, path: tuple[str, ...]) -> None: ...

    def server_timestamp(self) -> Any:
        """Sentinel asking the store to stamp the write with server time."""
        ...
