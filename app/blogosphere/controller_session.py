"""
Controller for the authentication lifecycle. Resolves the browser session to
one stable user id, or to a Failed state the View can render without hanging.

Identity-provider errors are recorded and logged, never retried: a new
sign-in attempt only happens on the next "no user" event (e.g. after a
sign-out).
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .errors import AuthenticationError
from .interfaces import IdentityProvider, Unsubscribe
from .models import Session, SessionStatus

logger = logging.getLogger(__name__)

SessionListener = Callable[[Session], None]


class SessionController:
    def __init__(
        self,
        identity: IdentityProvider,
        *,
        bootstrap_token: Optional[str] = None,
    ):
        self.identity: IdentityProvider = identity
        self.bootstrap_token = bootstrap_token or None
        self._session = Session()
        self._listeners: list[SessionListener] = []
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def session(self) -> Session:
        return self._session

    @property
    def user_id(self) -> Optional[str]:
        return self._session.user_id

    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    def is_started(self) -> bool:
        return self._unsubscribe is not None

    def add_listener(self, callback: SessionListener) -> Unsubscribe:
        """Call `callback(session)` after every state change."""
        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    def start(self) -> None:
        """Register with the identity provider once for the process lifetime."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.identity.on_state_change(self._on_auth_state)

    def shutdown(self) -> None:
        """Release the provider subscription and drop all listeners."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._listeners.clear()

    def sign_out(self) -> None:
        """Sign out; the provider's next event starts a fresh sign-in."""
        logger.info("Signing out user %s", self.user_id)
        self.identity.sign_out()

    def _set(self, session: Session) -> None:
        self._session = session
        for callback in list(self._listeners):
            callback(session)

    def _on_auth_state(self, user_id: Optional[str]) -> None:
        if user_id:
            logger.info("Signed in as: %s", user_id)
            self._set(Session(status=SessionStatus.AUTHENTICATED, user_id=user_id))
            return

        self._set(Session(status=SessionStatus.AUTHENTICATING))
        try:
            if self.bootstrap_token:
                signed_in = self.identity.sign_in_with_token(self.bootstrap_token)
            else:
                signed_in = self.identity.sign_in_anonymously()
        except Exception as e:
            err = e if isinstance(e, AuthenticationError) else AuthenticationError(str(e))
            logger.error("Authentication error: %s", err)
            self._set(Session(status=SessionStatus.FAILED, error=str(err)))
            return

        # Providers normally announce the new user themselves.
        if signed_in and self._session.status == SessionStatus.AUTHENTICATING:
            self._on_auth_state(signed_in)
