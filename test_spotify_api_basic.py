import json
import logging
import os
import tempfile
import unittest
import urllib.parse

import httpx

# Ensure local imports work when running this file directly.
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
if THIS_DIR not in os.sys.path:
    os.sys.path.insert(0, THIS_DIR)

from config import DEFAULT_CONFIG, check_spotify_credentials, load_config, save_config, validate_config
from spotify_web.client import SpotifyClient
from spotify_web.errors import LoginError
from spotify_web.login import (
    DEFAULT_OAUTH_STATE,
    LoginState,
    SpotifyLogin,
    build_authorize_url,
    extract_token_from_redirect_url,
)
from spotify_web.permissions import SpotifyPermission, parse_permissions, scope_string
from spotify_web.token import TokenInfo
from utils.logger import setup_logging


def _offline_client() -> SpotifyClient:
    def refuse(request):
        raise AssertionError(f"Unexpected request: {request.url}")

    return SpotifyClient({}, http_client=httpx.AsyncClient(transport=httpx.MockTransport(refuse)))


class TestSpotifyPermissions(unittest.TestCase):
    def test_scope_values_match_authorization_server(self):
        self.assertEqual(
            [p.value for p in SpotifyPermission],
            [
                "playlist-read-private",
                "playlist-modify-private",
                "playlist-modify-public",
                "streaming",
                "user-follow-modify",
                "user-follow-read",
                "user-library-read",
                "user-library-modify",
                "user-read-private",
                "user-read-birthdate",
                "user-read-email",
            ],
        )

    def test_scope_string_space_joins_and_dedupes(self):
        scopes = [
            SpotifyPermission.USER_LIBRARY_READ,
            SpotifyPermission.PLAYLIST_READ_PRIVATE,
            SpotifyPermission.USER_LIBRARY_READ,
        ]
        self.assertEqual(scope_string(scopes), "user-library-read playlist-read-private")

    def test_parse_permissions_rejects_unknown_scope(self):
        self.assertEqual(parse_permissions(["streaming", " "]), [SpotifyPermission.STREAM])
        with self.assertRaises(ValueError):
            parse_permissions(["user-read-everything"])


class TestAuthorizeUrl(unittest.TestCase):
    def test_build_authorize_url_implicit_grant(self):
        url = build_authorize_url(
            "example-client-id",
            "myapp",
            [SpotifyPermission.USER_LIBRARY_READ, SpotifyPermission.PLAYLIST_MODIFY_PUBLIC],
        )

        self.assertTrue(url.startswith("https://accounts.spotify.com/authorize/?"))
        self.assertIn("client_id=example-client-id", url)
        self.assertIn("response_type=token", url)
        self.assertIn("redirect_uri=myapp://", url)
        self.assertIn(f"state={DEFAULT_OAUTH_STATE}", url)
        self.assertIn("scope=user-library-read%20playlist-modify-public", url)

        qs = urllib.parse.parse_qs(urllib.parse.urlsplit(url).query)
        self.assertEqual(qs["scope"], ["user-library-read playlist-modify-public"])

    def test_full_redirect_uri_is_kept(self):
        url = build_authorize_url("cid", "http://127.0.0.1:8888/callback", [SpotifyPermission.STREAM])
        qs = urllib.parse.parse_qs(urllib.parse.urlsplit(url).query)
        self.assertEqual(qs["redirect_uri"], ["http://127.0.0.1:8888/callback"])

    def test_missing_client_id(self):
        with self.assertRaises(ValueError):
            build_authorize_url("", "myapp", [])


class TestRedirectParsing(unittest.TestCase):
    def test_extract_token_from_fragment(self):
        parsed = extract_token_from_redirect_url(
            "myapp://callback#access_token=XYZ&token_type=Bearer&expires_in=3600&state=34fFs29kd09"
        )
        self.assertEqual(parsed["access_token"], "XYZ")
        self.assertEqual(parsed["expires_in"], "3600")
        self.assertEqual(parsed["state"], "34fFs29kd09")

    def test_extract_error(self):
        self.assertEqual(
            extract_token_from_redirect_url("myapp://callback#error=access_denied"),
            {"error": "access_denied"},
        )

    def test_query_and_fragment_together(self):
        parsed = extract_token_from_redirect_url("myapp://callback?foo=1#access_token=XYZ")
        self.assertEqual(parsed, {"foo": "1", "access_token": "XYZ"})

    def test_no_parameters(self):
        self.assertEqual(extract_token_from_redirect_url("myapp://callback"), {})


class TestSpotifyLogin(unittest.TestCase):
    def setUp(self):
        self.client = _offline_client()
        self.login = SpotifyLogin(self.client)
        self.calls = []

    def start(self):
        return self.login.login(
            "cid",
            "myapp",
            [SpotifyPermission.USER_LIBRARY_READ],
            lambda success, error: self.calls.append((success, error)),
        )

    def test_starts_idle(self):
        self.assertIs(self.login.state, LoginState.IDLE)
        self.assertFalse(self.login.handle_redirect("myapp://callback#access_token=XYZ"))
        self.assertIsNone(self.client.access_token)

    def test_token_redirect_sets_client_token_and_fires_success(self):
        url = self.start()
        self.assertIn("response_type=token", url)
        self.assertIs(self.login.state, LoginState.AWAITING_REDIRECT)

        handled = self.login.handle_redirect("myapp://callback#access_token=XYZ&state=34fFs29kd09")

        self.assertTrue(handled)
        self.assertIs(self.login.state, LoginState.TOKEN_EXTRACTED)
        self.assertEqual(self.client.access_token, "XYZ")
        self.assertEqual(self.calls, [(True, None)])

    def test_error_redirect_fires_failure(self):
        self.start()

        self.login.handle_redirect("myapp://callback#error=access_denied")

        self.assertIs(self.login.state, LoginState.ERROR_EXTRACTED)
        self.assertIsNone(self.client.access_token)
        self.assertEqual(len(self.calls), 1)
        success, error = self.calls[0]
        self.assertFalse(success)
        self.assertIsInstance(error, LoginError)
        self.assertEqual(error.reason, "access_denied")

    def test_state_mismatch_is_an_error(self):
        self.start()

        self.login.handle_redirect("myapp://callback#access_token=XYZ&state=forged")

        self.assertIs(self.login.state, LoginState.ERROR_EXTRACTED)
        self.assertIsNone(self.client.access_token)
        self.assertEqual(self.calls[0][1].reason, "state_mismatch")

    def test_redirect_without_token_or_error_keeps_waiting(self):
        self.start()

        self.assertFalse(self.login.handle_redirect("myapp://callback#foo=bar"))
        self.assertIs(self.login.state, LoginState.AWAITING_REDIRECT)
        self.assertEqual(self.calls, [])

    def test_foreign_scheme_redirect_is_ignored(self):
        self.start()

        handled = self.login.handle_redirect("https://evil.example/cb#access_token=STOLEN&state=34fFs29kd09")

        self.assertFalse(handled)
        self.assertIsNone(self.client.access_token)
        self.assertIs(self.login.state, LoginState.AWAITING_REDIRECT)
        self.assertEqual(self.calls, [])

        # The real redirect still completes the login afterwards.
        self.assertTrue(self.login.handle_redirect("myapp://callback#access_token=XYZ&state=34fFs29kd09"))
        self.assertEqual(self.client.access_token, "XYZ")

    def test_callback_fires_only_once(self):
        self.start()
        self.login.handle_redirect("myapp://callback#access_token=XYZ")
        self.login.handle_redirect("myapp://callback#access_token=OTHER")

        self.assertEqual(self.calls, [(True, None)])
        self.assertEqual(self.client.access_token, "XYZ")

    def test_is_redirect_matches_scheme_case_insensitively(self):
        self.assertFalse(self.login.is_redirect("myapp://callback"))
        self.login.login("cid", "MyApp", [])
        self.assertTrue(self.login.is_redirect("myapp://callback#access_token=XYZ"))
        self.assertFalse(self.login.is_redirect("https://accounts.spotify.com/login"))

    def test_open_url_receives_authorize_url(self):
        opened = []
        login = SpotifyLogin(self.client, config={"spotify_oauth_state": "s1"}, open_url=opened.append)
        url = login.login("cid", "myapp", [SpotifyPermission.STREAM])
        self.assertEqual(opened, [url])
        self.assertIn("state=s1", url)


class TestTokenInfo(unittest.TestCase):
    def test_from_redirect_params(self):
        token = TokenInfo.from_redirect_params(
            {"access_token": "XYZ", "token_type": "Bearer", "expires_in": "3600", "state": "s"},
            now=1000.0,
        )
        self.assertEqual(token.access_token, "XYZ")
        self.assertEqual(token.expires_at, 4600.0)
        self.assertFalse(token.is_expired(now=2000.0))
        self.assertTrue(token.is_expired(now=4590.0))

    def test_missing_or_bad_expiry_never_expires(self):
        self.assertIsNone(TokenInfo.from_redirect_params({"access_token": "a"}).expires_at)
        token = TokenInfo.from_redirect_params({"access_token": "a", "expires_in": "soon"})
        self.assertIsNone(token.expires_at)
        self.assertFalse(token.is_expired())


class TestLoggerSetup(unittest.TestCase):
    def tearDown(self):
        setup_logging("WARNING")

    def test_setup_logging_sets_level_and_quiets_httpx(self):
        setup_logging("debug")
        self.assertEqual(logging.getLogger().level, logging.DEBUG)
        self.assertEqual(logging.getLogger("httpx").level, logging.WARNING)

    def test_unknown_level_falls_back_to_info(self):
        setup_logging("chatty")
        self.assertEqual(logging.getLogger().level, logging.INFO)


class TestConfig(unittest.TestCase):
    def test_defaults_are_valid(self):
        ok, errors = validate_config(dict(DEFAULT_CONFIG))
        self.assertTrue(ok, errors)

    def test_validation_errors(self):
        cfg = dict(DEFAULT_CONFIG)
        cfg.update({"spotify_scopes": ["streaming", "user-read-everything"], "spotify_playlist_page_limit": 100, "spotify_timeout": True})
        ok, errors = validate_config(cfg)
        self.assertFalse(ok)
        joined = "\n".join(errors)
        self.assertIn("user-read-everything", joined)
        self.assertIn("spotify_playlist_page_limit", joined)
        self.assertIn("spotify_timeout", joined)

    def test_load_applies_defaults(self):
        with tempfile.TemporaryDirectory() as td:
            path = os.path.join(td, "config.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"spotify_client_id": "cid"}, f)

            cfg = load_config(path)
            self.assertEqual(cfg["spotify_client_id"], "cid")
            self.assertEqual(cfg["spotify_playlist_page_limit"], 50)

            cfg["spotify_redirect_uri"] = "myapp"
            self.assertTrue(save_config(cfg, path))
            self.assertEqual(load_config(path)["spotify_redirect_uri"], "myapp")

    def test_missing_file(self):
        missing = os.path.join(tempfile.gettempdir(), "does-not-exist", "config.json")
        with self.assertRaises(FileNotFoundError):
            load_config(missing)
        self.assertEqual(load_config(missing, allow_missing=True), DEFAULT_CONFIG)

    def test_check_spotify_credentials(self):
        self.assertFalse(check_spotify_credentials(DEFAULT_CONFIG)["ok"])
        status = check_spotify_credentials({**DEFAULT_CONFIG, "spotify_client_id": "cid"})
        self.assertTrue(status["ok"])
        self.assertEqual(status["redirect_uri"], DEFAULT_CONFIG["spotify_redirect_uri"])


if __name__ == "__main__":
    unittest.main(verbosity=2)
