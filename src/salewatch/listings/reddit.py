"""Reddit API client for polling new posts.

Handles the OAuth password grant, persists the access token together with
the latest rate-limit feedback so a restart can reuse it, and decides how
long to wait before the next poll.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from urllib.parse import urljoin

import requests
from pydantic import BaseModel, ValidationError

from salewatch.config import RedditConfig
from salewatch.listings.models import Listing
from salewatch.logging import get_logger

logger = get_logger(__name__)

# Quota assumed right after authenticating, before any API response is seen
_INITIAL_REMAINING = 1
_INITIAL_RESET = timedelta(hours=1)


class RedditError(Exception):
    """Base class for listing source errors."""


class ReauthenticateError(RedditError):
    """Raised when an API call is attempted without a valid token."""

    def __init__(self) -> None:
        super().__init__("Need auth")


class MissingHeaderError(RedditError):
    """Raised when a response lacks a rate-limit header."""

    def __init__(self, header: str) -> None:
        self.header = header
        super().__init__(f"Missing header: {header}")


class AuthState(BaseModel):
    """Access token and the rate-limit feedback of the last API call."""

    access_token: str
    expires_at: datetime
    ratelimit_used: int = 0
    ratelimit_remaining: int = _INITIAL_REMAINING
    ratelimit_reset_at: datetime


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RedditClient:
    """Client for the authenticated Reddit API.

    Not safe for concurrent use: the ingestion stage owns the only instance.
    """

    def __init__(self, config: RedditConfig, session: requests.Session | None = None):
        """Initialize the client.

        Args:
            config: Reddit configuration.
            session: Optional requests session, mainly for tests.
        """
        self.config = config
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = config.user_agent
        self.auth: AuthState | None = None

    def is_auth_expired(self) -> bool:
        """Check whether a new token is needed."""
        return self.auth is None or self.auth.expires_at < _now()

    def get_wait_time(self) -> float:
        """Seconds to wait before the next poll.

        The configured interval, unless the remote quota is exhausted, in
        which case the time left until the reported reset.
        """
        wait = float(self.config.wait_time_secs)
        if self.auth is None or self.auth.ratelimit_remaining > 0:
            return wait
        return max((self.auth.ratelimit_reset_at - _now()).total_seconds(), 0.0)

    def authenticate(self) -> None:
        """Obtain a new access token with the password grant.

        Raises:
            requests.RequestException: If the token request fails.
        """
        url = urljoin(self.config.auth_host, "access_token")
        request_time = _now()

        response = self.session.post(
            url,
            data={
                "grant_type": "password",
                "username": self.config.username,
                "password": self.config.password,
            },
            auth=(self.config.client_id, self.config.client_secret),
            timeout=self.config.timeout_seconds,
        )
        response.raise_for_status()
        body = response.json()

        self.auth = AuthState(
            access_token=body["access_token"],
            expires_at=request_time + timedelta(seconds=body["expires_in"]),
            ratelimit_reset_at=request_time + _INITIAL_RESET,
        )
        logger.info("Authenticated with Reddit", expires_at=self.auth.expires_at.isoformat())
        self._write_auth_to_file()

    def read_auth_from_file(self) -> None:
        """Reuse a persisted token if it has not expired yet.

        A missing, unreadable or expired token file leaves the client
        unauthenticated.
        """
        token_file = self.config.token_file
        if not token_file.exists():
            logger.info("No saved token", path=str(token_file))
            return

        try:
            auth = AuthState.model_validate_json(token_file.read_text())
        except ValidationError as e:
            logger.warning("Ignoring unreadable token file", path=str(token_file), error=str(e))
            return

        if auth.expires_at > _now():
            self.auth = auth
            logger.info("Loaded saved token", expires_at=auth.expires_at.isoformat())
        else:
            logger.info("Saved token has expired", path=str(token_file))

    def _write_auth_to_file(self) -> None:
        if self.auth is None:
            return
        token_file = self.config.token_file
        token_file.parent.mkdir(parents=True, exist_ok=True)
        token_file.write_text(self.auth.model_dump_json())
        logger.debug("Saved token", path=str(token_file))

    def _auth_header(self) -> dict[str, str]:
        if self.auth is None or self.is_auth_expired():
            raise ReauthenticateError()
        return {"Authorization": f"bearer {self.auth.access_token}"}

    def fetch_new(self, subreddit: str, page_size: int) -> list[Listing]:
        """Fetch the newest posts of a subreddit.

        Args:
            subreddit: Subreddit name without the ``r/`` prefix.
            page_size: Number of posts to request.

        Returns:
            Listings, newest first.

        Raises:
            ReauthenticateError: If there is no valid token.
            MissingHeaderError: If the rate-limit headers are absent.
            requests.RequestException: On transport or HTTP errors.
        """
        url = urljoin(self.config.api_host, f"r/{subreddit}/new")
        response = self.session.get(
            url,
            params={"limit": page_size, "count": 0},
            headers=self._auth_header(),
            timeout=self.config.timeout_seconds,
        )
        response.raise_for_status()

        self._update_ratelimit(response)

        children = response.json()["data"]["children"]
        listings = [Listing.model_validate(child["data"]) for child in children]
        logger.debug("Fetched listings", subreddit=subreddit, count=len(listings))
        return listings

    def _update_ratelimit(self, response: requests.Response) -> None:
        """Record the quota feedback of a response and persist it."""
        if self.auth is None:
            return

        values = {}
        for header in ("X-Ratelimit-Used", "X-Ratelimit-Remaining", "X-Ratelimit-Reset"):
            raw = response.headers.get(header)
            if raw is None:
                raise MissingHeaderError(header)
            values[header] = int(float(raw))

        self.auth.ratelimit_used = values["X-Ratelimit-Used"]
        self.auth.ratelimit_remaining = values["X-Ratelimit-Remaining"]
        self.auth.ratelimit_reset_at = _now() + timedelta(seconds=values["X-Ratelimit-Reset"])

        logger.debug(
            "Rate limit updated",
            used=self.auth.ratelimit_used,
            remaining=self.auth.ratelimit_remaining,
            reset_at=self.auth.ratelimit_reset_at.isoformat(),
        )
        self._write_auth_to_file()
