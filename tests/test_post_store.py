import itertools
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from blogosphere.controller_session import SessionController
from blogosphere.errors import AuthenticationError, SubscriptionError
from blogosphere.models import SessionStatus, collection_path
from blogosphere.persistence.memory import InMemoryIdentityProvider, InMemoryRemoteStore
from blogosphere.persistence.post_store import PostListStore

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def sequential_ids(prefix="anon"):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


class StepClock:
    def __init__(self, start=T0, step=timedelta(minutes=1)):
        self.now = start
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


def capturing_store():
    """A store that records subscriptions without delivering anything."""
    store = MagicMock()
    captured = []

    def subscribe(path, on_snapshot, on_error):
        sub = MagicMock()
        captured.append((path, on_snapshot, on_error, sub))
        return sub

    store.subscribe.side_effect = subscribe
    return store, captured


class PostListStoreTests(unittest.TestCase):
    def setUp(self):
        self.identity = InMemoryIdentityProvider(id_factory=sequential_ids())
        self.store = InMemoryRemoteStore(clock=StepClock())
        self.session = SessionController(self.identity)
        self.posts = PostListStore(self.store, "app1")
        self.posts.bind(self.session)

    def add(self, user_id, title):
        return self.store.create(
            collection_path("app1", user_id),
            {
                "title": title,
                "description": "d",
                "author": "a",
                "timestamp": self.store.server_timestamp(),
            },
        )

    def test_loading_until_session_resolves(self):
        self.assertTrue(self.posts.is_loading())
        self.assertFalse(self.posts.has_subscription())

        self.session.start()

        self.assertFalse(self.posts.is_loading())
        self.assertEqual(self.posts.active_user_id, "anon-1")
        self.assertEqual(self.store.subscriber_count(collection_path("app1", "anon-1")), 1)
        self.assertEqual(self.posts.current_list(), [])

    def test_snapshot_replaces_list_newest_first(self):
        self.session.start()
        self.add("anon-1", "first")
        self.add("anon-1", "second")
        self.add("anon-1", "third")

        self.assertEqual(
            [p.title for p in self.posts.current_list()], ["third", "second", "first"]
        )

    def test_same_snapshot_twice_is_idempotent(self):
        self.session.start()
        post_id = self.add("anon-1", "first")
        self.add("anon-1", "second")
        before = self.posts.current_list()

        self.store.update(
            ("artifacts", "app1", "users", "anon-1", "blog_posts", post_id),
            {"title": "first"},
        )

        self.assertEqual(self.posts.current_list(), before)

    def test_user_switch_closes_old_subscription_first(self):
        self.session.start()
        self.add("anon-1", "mine")
        old_path = collection_path("app1", "anon-1")
        new_path = collection_path("app1", "anon-2")

        self.identity.sign_out()

        self.assertEqual(self.posts.active_user_id, "anon-2")
        self.assertEqual(self.store.subscriber_count(old_path), 0)
        self.assertEqual(self.store.subscriber_count(new_path), 1)
        ops = [(op, path) for op, path, _ in self.store.calls]
        self.assertLess(ops.index(("unsubscribe", old_path)), ops.index(("subscribe", new_path)))
        self.assertEqual(self.posts.current_list(), [])

        self.add("anon-1", "late write for old user")
        self.assertEqual(self.posts.current_list(), [])

    def test_events_from_closed_subscription_are_dropped(self):
        store, captured = capturing_store()
        posts = PostListStore(store, "app1")
        posts.activate("u1")
        _, old_on_snapshot, old_on_error, old_sub = captured[0]

        posts.deactivate()
        posts.activate("u2")
        old_sub.unsubscribe.assert_called_once_with()

        old_on_snapshot([{"id": "x", "title": "u1 secret", "timestamp": T0}])
        old_on_error(RuntimeError("old channel closed"))
        self.assertEqual(posts.current_list(), [])
        self.assertIsNone(posts.last_error)
        self.assertTrue(posts.is_loading())

        captured[1][1]([{"id": "y", "title": "u2 post", "timestamp": T0}])
        self.assertEqual([p.title for p in posts.current_list()], ["u2 post"])

    def test_subscription_error_keeps_last_list(self):
        self.session.start()
        self.add("anon-1", "kept")

        self.store.emit_error(collection_path("app1", "anon-1"), RuntimeError("stream closed"))

        self.assertFalse(self.posts.is_loading())
        self.assertIsInstance(self.posts.last_error, SubscriptionError)
        self.assertEqual([p.title for p in self.posts.current_list()], ["kept"])

    def test_error_before_first_snapshot_clears_loading(self):
        store, captured = capturing_store()
        posts = PostListStore(store, "app1")
        posts.activate("u1")
        self.assertTrue(posts.is_loading())

        captured[0][2](RuntimeError("permission denied"))

        self.assertFalse(posts.is_loading())
        self.assertIn("permission denied", str(posts.last_error))

    def test_subscribe_raising_clears_loading(self):
        store = MagicMock()
        store.subscribe.side_effect = RuntimeError("no route to host")
        posts = PostListStore(store, "app1")

        posts.activate("u1")

        self.assertFalse(posts.is_loading())
        self.assertIsInstance(posts.last_error, SubscriptionError)
        self.assertFalse(posts.has_subscription())

    def test_first_snapshot_timeout(self):
        now = [100.0]
        store, captured = capturing_store()
        posts = PostListStore(
            store, "app1", snapshot_timeout_seconds=15, monotonic=lambda: now[0]
        )
        posts.activate("u1")
        self.assertTrue(posts.is_loading())

        now[0] = 116.0
        self.assertFalse(posts.is_loading())
        self.assertIsInstance(posts.last_error, SubscriptionError)

        captured[0][1]([{"id": "p1", "title": "late", "timestamp": T0}])
        self.assertIsNone(posts.last_error)
        self.assertEqual([p.title for p in posts.current_list()], ["late"])

    def test_malformed_snapshot_is_reported(self):
        store, captured = capturing_store()
        posts = PostListStore(store, "app1")
        posts.activate("u1")

        captured[0][1]([{"title": "no id"}])

        self.assertFalse(posts.is_loading())
        self.assertIsInstance(posts.last_error, SubscriptionError)

    def test_failed_sign_in_never_subscribes(self):
        identity = InMemoryIdentityProvider(fail_with=AuthenticationError("OPERATION_NOT_ALLOWED"))
        session = SessionController(identity)
        posts = PostListStore(self.store, "app1")
        posts.bind(session)

        session.start()

        self.assertEqual(session.session.status, SessionStatus.FAILED)
        self.assertFalse(posts.is_loading())
        self.assertIsInstance(posts.last_error, AuthenticationError)
        self.assertFalse(any(op == "subscribe" for op, _, _ in self.store.calls))

    def test_pending_timestamp_uses_submission_time(self):
        self.store.resolve_timestamps = False
        self.session.start()
        post_id = self.add("anon-1", "pending")
        submitted = datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)

        self.posts.mark_pending(post_id, submitted)

        post = self.posts.current_list()[0]
        self.assertTrue(post.is_pending)
        self.assertEqual(post.submitted_at, submitted)

        self.store.resolve_pending()

        post = self.posts.current_list()[0]
        self.assertFalse(post.is_pending)
        self.assertIsNone(post.submitted_at)

    def test_close_unbinds_and_unsubscribes(self):
        self.session.start()
        path = collection_path("app1", "anon-1")

        self.posts.close()

        self.assertEqual(self.store.subscriber_count(path), 0)
        self.identity.sign_out()
        self.assertIsNone(self.posts.active_user_id)
        self.assertEqual(self.store.subscriber_count(collection_path("app1", "anon-2")), 0)


if __name__ == "__main__":
    unittest.main()
