"""
Purpose: Thin client for Firebase Authentication's Identity Toolkit REST API.
One place for the API key, request timeouts and error normalization.

Anonymous sign-in uses accounts:signUp; the bootstrap token goes through
accounts:signInWithCustomToken followed by accounts:lookup to learn the uid.
No retries: a rejected or timed-out call raises AuthenticationError.

Only the uid is kept. It selects the per-user collection path; the ID and
refresh tokens are discarded because Firestore is reached through the Admin
SDK, so per-user scoping is a client-side convention and is not enforced by
security rules.

Testing: Patch the requests session; assert URLs, payloads and error mapping.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from ..errors import AuthenticationError, ConfigurationError
from ..utils.listeners import AuthStateNotifier

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"


class FirebaseIdentityProvider(AuthStateNotifier):
    def __init__(
        self,
        api_key: str,
        *,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        base_url: str = IDENTITY_TOOLKIT_URL,
    ):
        super().__init__()
        if not api_key:
            raise ConfigurationError("Missing Firebase apiKey")
        self.api_key = api_key
        self.timeout = timeout
        self.http = session or requests.Session()
        self.base_url = base_url.rstrip("/")

    def _post(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/accounts:{method}"
        try:
            resp = self.http.post(
                url,
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AuthenticationError(f"{method} failed: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}

        if resp.status_code >= 400:
            message = (body.get("error") or {}).get("message") or resp.reason
            raise AuthenticationError(f"{method} rejected: {message}")
        return body

    def _signed_in(self, user_id: Optional[str]) -> str:
        if not user_id:
            raise AuthenticationError("Sign-in response did not include a user id")
        self._set_user(user_id)
        return user_id

    def sign_in_anonymously(self) -> str:
        body = self._post("signUp", {"returnSecureToken": True})
        return self._signed_in(body.get("localId"))

    def sign_in_with_token(self, token: str) -> str:
        body = self._post(
            "signInWithCustomToken", {"token": token, "returnSecureToken": True}
        )
        id_token = body.get("idToken")
        if not id_token:
            raise AuthenticationError("signInWithCustomToken returned no idToken")
        users = self._post("lookup", {"idToken": id_token}).get("users") or []
        user_id = users[0].get("localId") if users else None
        return self._signed_in(user_id)

    def sign_out(self) -> None:
        self._set_user(None)
