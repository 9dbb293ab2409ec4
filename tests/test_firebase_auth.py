import unittest
from unittest.mock import MagicMock

import requests

from blogosphere.errors import AuthenticationError, ConfigurationError
from blogosphere.services.firebase_auth import IDENTITY_TOOLKIT_URL, FirebaseIdentityProvider


def _response(status_code, body):
    resp = MagicMock()
    resp.status_code = status_code
    resp.reason = "Bad Request" if status_code >= 400 else "OK"
    resp.json.return_value = body
    return resp


class FirebaseIdentityProviderTests(unittest.TestCase):
    def setUp(self):
        self.http = MagicMock()
        self.provider = FirebaseIdentityProvider("KEY", timeout=5.0, session=self.http)
        self.seen = []
        self.provider.on_state_change(self.seen.append)

    def test_registration_replays_current_state(self):
        self.assertEqual(self.seen, [None])

    def test_anonymous_sign_in(self):
        self.http.post.return_value = _response(
            200, {"localId": "u1", "idToken": "id-1", "refreshToken": "r-1"}
        )

        self.assertEqual(self.provider.sign_in_anonymously(), "u1")

        self.http.post.assert_called_once_with(
            f"{IDENTITY_TOOLKIT_URL}/accounts:signUp",
            params={"key": "KEY"},
            json={"returnSecureToken": True},
            timeout=5.0,
        )
        self.assertEqual(self.provider.current_user, "u1")
        self.assertEqual(self.seen, [None, "u1"])
        self.assertFalse(hasattr(self.provider, "id_token"))
        self.assertFalse(hasattr(self.provider, "refresh_token"))

    def test_custom_token_sign_in_looks_up_uid(self):
        self.http.post.side_effect = [
            _response(200, {"idToken": "id-7", "refreshToken": "r-7"}),
            _response(200, {"users": [{"localId": "u7"}]}),
        ]

        self.assertEqual(self.provider.sign_in_with_token("custom"), "u7")

        first, second = self.http.post.call_args_list
        self.assertTrue(first.args[0].endswith("accounts:signInWithCustomToken"))
        self.assertEqual(first.kwargs["json"], {"token": "custom", "returnSecureToken": True})
        self.assertTrue(second.args[0].endswith("accounts:lookup"))
        self.assertEqual(second.kwargs["json"], {"idToken": "id-7"})
        self.assertEqual(self.seen, [None, "u7"])

    def test_rejected_sign_in(self):
        self.http.post.return_value = _response(
            400, {"error": {"code": 400, "message": "INVALID_CUSTOM_TOKEN"}}
        )

        with self.assertRaises(AuthenticationError) as ctx:
            self.provider.sign_in_with_token("bad")

        self.assertIn("INVALID_CUSTOM_TOKEN", str(ctx.exception))
        self.assertIsNone(self.provider.current_user)
        self.assertEqual(self.http.post.call_count, 1)

    def test_network_error_is_not_retried(self):
        self.http.post.side_effect = requests.ConnectionError("down")

        with self.assertRaises(AuthenticationError):
            self.provider.sign_in_anonymously()
        self.assertEqual(self.http.post.call_count, 1)

    def test_response_without_user_id(self):
        self.http.post.return_value = _response(200, {"idToken": "id-1"})
        with self.assertRaises(AuthenticationError):
            self.provider.sign_in_anonymously()

    def test_sign_out_notifies(self):
        self.http.post.return_value = _response(200, {"localId": "u1", "idToken": "id-1"})
        self.provider.sign_in_anonymously()

        self.provider.sign_out()

        self.assertIsNone(self.provider.current_user)
        self.assertEqual(self.seen, [None, "u1", None])

    def test_missing_api_key(self):
        with self.assertRaises(ConfigurationError):
            FirebaseIdentityProvider("", session=self.http)


if __name__ == "__main__":
    unittest.main()
