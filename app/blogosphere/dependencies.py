"""
Dependency wiring: settings -> backends -> controllers.

The Firestore client (and the in-memory store, in development) is shared by
the whole process; identity providers and controllers are built per browser
session, since each session signs in as its own user. Streamlit runs every
session on its own script thread, so the shared singletons are built under a
lock, and live per-session apps are tracked here so their subscriptions can be
closed once the browser session is gone (see sweep_apps) or at exit.
"""

from __future__ import annotations

import atexit
import logging
import threading
from dataclasses import dataclass
from typing import Callable

from .config import Settings, get_settings
from .controller import PostFormController
from .controller_session import SessionController
from .errors import ConfigurationError
from .interfaces import IdentityProvider, RemoteStore
from .persistence.memory import InMemoryIdentityProvider, InMemoryRemoteStore
from .persistence.post_store import PostListStore

logger = logging.getLogger(__name__)

_backend_lock = threading.Lock()
_firestore_client = None
_memory_store: InMemoryRemoteStore | None = None

_apps_lock = threading.Lock()
_live_apps: dict[str, "BlogApp"] = {}


def get_firestore_client(settings: Settings):
    """Return a singleton Firestore client from the default Firebase app."""
    global _firestore_client
    with _backend_lock:
        if _firestore_client is not None:
            return _firestore_client

        import firebase_admin
        from firebase_admin import credentials, firestore

        try:
            try:
                app = firebase_admin.get_app()
            except ValueError:
                cred = (
                    credentials.Certificate(settings.credentials_path)
                    if settings.credentials_path
                    else credentials.ApplicationDefault()
                )
                app = firebase_admin.initialize_app(
                    cred, {"projectId": settings.project_id}
                )
            _firestore_client = firestore.client(app)
        except Exception as e:
            logger.exception("Firebase initialization error")
            raise ConfigurationError(f"Firebase initialization error: {e}") from e
        return _firestore_client


def get_remote_store(settings: Settings | None = None) -> RemoteStore:
    global _memory_store
    settings = settings or get_settings()
    if settings.use_in_memory_backends:
        with _backend_lock:
            if _memory_store is None:
                _memory_store = InMemoryRemoteStore()
            return _memory_store

    from .services.firestore_store import FirestoreRemoteStore

    return FirestoreRemoteStore(
        get_firestore_client(settings), timeout=settings.request_timeout_seconds
    )


def get_identity_provider(settings: Settings | None = None) -> IdentityProvider:
    settings = settings or get_settings()
    if settings.use_in_memory_backends:
        return InMemoryIdentityProvider()

    from .services.firebase_auth import FirebaseIdentityProvider

    return FirebaseIdentityProvider(
        settings.api_key, timeout=settings.request_timeout_seconds
    )


@dataclass
class BlogApp:
    """Per-session bundle of the three controllers, wired together."""

    session: SessionController
    posts: PostListStore
    form: PostFormController

    def start(self) -> None:
        self.posts.bind(self.session)
        self.session.start()

    def shutdown(self) -> None:
        self.posts.close()
        self.session.shutdown()


def create_blog_app(
    settings: Settings | None = None,
    *,
    identity: IdentityProvider | None = None,
    store: RemoteStore | None = None,
) -> BlogApp:
    """Validate settings and build (but do not start) a BlogApp."""
    settings = settings or get_settings()
    settings.require_backend()

    store = store or get_remote_store(settings)
    identity = identity or get_identity_provider(settings)

    session = SessionController(identity, bootstrap_token=settings.initial_auth_token)
    posts = PostListStore(
        store,
        settings.app_id,
        snapshot_timeout_seconds=settings.snapshot_timeout_seconds,
    )
    form = PostFormController(store, session, settings.app_id, posts=posts)
    return BlogApp(session=session, posts=posts, form=form)


# ---------------------------
# Live app registry
# ---------------------------
def register_app(key: str, app: BlogApp) -> None:
    """Track the app built for browser session `key`, replacing any older one."""
    with _apps_lock:
        previous = _live_apps.get(key)
        _live_apps[key] = app
    if previous is not None and previous is not app:
        previous.shutdown()


def live_app_count() -> int:
    with _apps_lock:
        return len(_live_apps)


def sweep_apps(is_alive: Callable[[str], bool]) -> int:
    """Shut down apps whose browser session has ended. Returns how many."""
    with _apps_lock:
        dead = [key for key in _live_apps if not is_alive(key)]
        apps = [_live_apps.pop(key) for key in dead]
    for key, app in zip(dead, apps):
        logger.info("Releasing blog app of closed session %s", key)
        app.shutdown()
    return len(apps)


def shutdown_all() -> None:
    """Shut down every tracked app; registered to run at interpreter exit."""
    with _apps_lock:
        apps = list(_live_apps.values())
        _live_apps.clear()
    for app in apps:
        app.shutdown()


atexit.register(shutdown_all)
