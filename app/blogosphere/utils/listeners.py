"""Auth-state fan-out shared by the identity providers."""

from __future__ import annotations
from typing import Optional

from ..interfaces import AuthStateCallback, Unsubscribe


class AuthStateNotifier:
    """
    Holds the current user id and replays it to listeners, the way Firebase's
    onAuthStateChanged does: once on registration, then on every change.
    """

    def __init__(self) -> None:
        self._user: Optional[str] = None
        self._listeners: list[AuthStateCallback] = []

    @property
    def current_user(self) -> Optional[str]:
        return self._user

    def on_state_change(self, callback: AuthStateCallback) -> Unsubscribe:
        self._listeners.append(callback)
        callback(self._user)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def listener_count(self) -> int:
        return len(self._listeners)

    def _set_user(self, user_id: Optional[str]) -> None:
        if user_id == self._user:
            return
        self._user = user_id
        for callback in list(self._listeners):
            # A listener may have signed in again; the nested change already
            # reached the remaining listeners with the newer state.
            if self._user != user_id:
                break
            callback(user_id)
