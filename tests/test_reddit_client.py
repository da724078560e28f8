"""Tests for the Reddit client, with the HTTP session mocked out."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
import requests

from salewatch.config import RedditConfig
from salewatch.listings.reddit import (
    AuthState,
    MissingHeaderError,
    ReauthenticateError,
    RedditClient,
)


def _response(json_data=None, headers=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data or {}
    response.headers = headers or {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Error")
    return response


def _listing_response(*ids: str) -> dict:
    return {
        "data": {
            "children": [
                {
                    "kind": "t3",
                    "data": {
                        "id": pid,
                        "created_utc": 1700000000.0,
                        "ups": 3,
                        "downs": 0,
                        "link_flair_text": None,
                        "title": f"[GPU] card {pid} $100",
                        "url": f"https://example.com/{pid}",
                        "subreddit": "buildapcsales",
                        "permalink": f"/r/buildapcsales/comments/{pid}/",
                    },
                }
                for pid in ids
            ]
        }
    }


RATELIMIT_HEADERS = {
    "X-Ratelimit-Used": "4",
    "X-Ratelimit-Remaining": "596.0",
    "X-Ratelimit-Reset": "120",
}


@pytest.fixture
def config(temp_dir) -> RedditConfig:
    return RedditConfig(
        token_file=temp_dir / "token.json",
        username="watcher",
        password="hunter2",
        client_id="client",
        client_secret="secret",
        wait_time_secs=5,
    )


@pytest.fixture
def session() -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture
def client(config: RedditConfig, session: MagicMock) -> RedditClient:
    return RedditClient(config, session=session)


def _authenticate(client: RedditClient, session: MagicMock) -> None:
    session.post.return_value = _response({"access_token": "tok", "expires_in": 3600})
    client.authenticate()


class TestAuthentication:
    def test_new_client_needs_auth(self, client: RedditClient):
        assert client.is_auth_expired() is True

    def test_sets_user_agent(self, client: RedditClient, session: MagicMock):
        assert session.headers["User-Agent"] == "salewatch/0.1"

    def test_authenticate_uses_password_grant(self, client: RedditClient, session: MagicMock):
        _authenticate(client, session)

        args, kwargs = session.post.call_args
        assert args[0] == "https://www.reddit.com/api/v1/access_token"
        assert kwargs["data"] == {
            "grant_type": "password",
            "username": "watcher",
            "password": "hunter2",
        }
        assert kwargs["auth"] == ("client", "secret")
        assert client.is_auth_expired() is False

    def test_authenticate_persists_token(self, client: RedditClient, session: MagicMock, config):
        _authenticate(client, session)

        saved = AuthState.model_validate_json(config.token_file.read_text())
        assert saved.access_token == "tok"

    def test_failed_authentication_raises(self, client: RedditClient, session: MagicMock):
        session.post.return_value = _response(status_code=401)
        with pytest.raises(requests.HTTPError):
            client.authenticate()

    def test_read_auth_from_file(self, client: RedditClient, session: MagicMock, config):
        _authenticate(client, session)

        restarted = RedditClient(config, session=session)
        restarted.read_auth_from_file()
        assert restarted.auth is not None
        assert restarted.auth.access_token == "tok"
        assert restarted.is_auth_expired() is False

    def test_expired_token_file_is_ignored(self, client: RedditClient, config):
        now = datetime.now(timezone.utc)
        config.token_file.write_text(
            AuthState(
                access_token="old",
                expires_at=now - timedelta(minutes=1),
                ratelimit_reset_at=now,
            ).model_dump_json()
        )

        client.read_auth_from_file()
        assert client.auth is None

    def test_missing_token_file(self, client: RedditClient):
        client.read_auth_from_file()
        assert client.auth is None


class TestFetchNew:
    def test_requires_auth(self, client: RedditClient):
        with pytest.raises(ReauthenticateError, match="Need auth"):
            client.fetch_new("buildapcsales", 10)

    def test_fetches_and_parses(self, client: RedditClient, session: MagicMock):
        _authenticate(client, session)
        session.get.return_value = _response(_listing_response("a1", "b2"), RATELIMIT_HEADERS)

        listings = client.fetch_new("buildapcsales", 10)

        assert [listing.id for listing in listings] == ["a1", "b2"]
        args, kwargs = session.get.call_args
        assert args[0] == "https://oauth.reddit.com/r/buildapcsales/new"
        assert kwargs["params"] == {"limit": 10, "count": 0}
        assert kwargs["headers"] == {"Authorization": "bearer tok"}

    def test_updates_ratelimit(self, client: RedditClient, session: MagicMock, config):
        _authenticate(client, session)
        session.get.return_value = _response(_listing_response(), RATELIMIT_HEADERS)

        client.fetch_new("buildapcsales", 10)

        assert client.auth.ratelimit_used == 4
        assert client.auth.ratelimit_remaining == 596
        saved = AuthState.model_validate_json(config.token_file.read_text())
        assert saved.ratelimit_remaining == 596

    def test_missing_header(self, client: RedditClient, session: MagicMock):
        _authenticate(client, session)
        headers = dict(RATELIMIT_HEADERS)
        del headers["X-Ratelimit-Reset"]
        session.get.return_value = _response(_listing_response(), headers)

        with pytest.raises(MissingHeaderError, match="X-Ratelimit-Reset"):
            client.fetch_new("buildapcsales", 10)


class TestWaitTime:
    def test_default_interval(self, client: RedditClient, session: MagicMock):
        assert client.get_wait_time() == 5.0
        _authenticate(client, session)
        assert client.get_wait_time() == 5.0

    def test_waits_for_reset_when_quota_exhausted(self, client: RedditClient, session: MagicMock):
        _authenticate(client, session)
        session.get.return_value = _response(
            _listing_response(),
            {
                "X-Ratelimit-Used": "600",
                "X-Ratelimit-Remaining": "0",
                "X-Ratelimit-Reset": "300",
            },
        )

        client.fetch_new("buildapcsales", 10)

        assert 290 < client.get_wait_time() <= 300
