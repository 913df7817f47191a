"""Twitter/X API v2 adapter for mentions, tweet lookups and replies."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

import requests

from ..errors import ErrorType, TwitterAPIError, classify_request_error
from ..models.tweet import Tweet, TwitterUser

logger = logging.getLogger(__name__)

TWEET_FIELDS = ",".join(
    [
        "created_at",
        "author_id",
        "conversation_id",
        "in_reply_to_user_id",
        "referenced_tweets",
        "entities",
        "public_metrics",
    ]
)
USER_FIELDS = "username,name,public_metrics"
EXPANSIONS = ",".join(
    [
        "author_id",
        "in_reply_to_user_id",
        "referenced_tweets.id",
        "referenced_tweets.id.author_id",
        "entities.mentions.username",
    ]
)

# Titles the v2 API uses for per-resource errors in an otherwise 200 response
_RESOURCE_ERROR_TYPES = {
    "Not Found Error": ErrorType.TWITTER_NOT_FOUND,
    "Authorization Error": ErrorType.TWITTER_FORBIDDEN,
    "Forbidden": ErrorType.TWITTER_FORBIDDEN,
}

TokenCallback = Callable[[str, str], None]


@dataclass
class MentionPage:
    """One page of the user mentions timeline."""

    mentions: List[Tweet] = field(default_factory=list)
    users: List[TwitterUser] = field(default_factory=list)
    tweets: List[Tweet] = field(default_factory=list)
    next_token: Optional[str] = None


def _parse_includes(payload: Dict[str, Any]) -> tuple[List[TwitterUser], List[Tweet]]:
    includes = payload.get("includes") or {}
    users = [TwitterUser.from_api(u) for u in includes.get("users") or []]
    tweets = [Tweet.from_api(t) for t in includes.get("tweets") or []]
    return users, tweets


class TwitterAPIAdapter:
    """Twitter/X API v2 adapter using an OAuth 2.0 user-context token."""

    def __init__(
        self,
        access_token: str,
        refresh_token: str = "",
        client_id: str = "",
        client_secret: str = "",
        base_url: str = "https://api.twitter.com",
        on_token_refresh: Optional[TokenCallback] = None,
        timeout: int = 30,
    ):
        """Initialize Twitter API adapter.

        Args:
            access_token: OAuth 2.0 user-context bearer token for the bot account
            refresh_token: Refresh token used by ``refresh_auth``
            client_id: OAuth 2.0 client id (required for refreshing)
            client_secret: OAuth 2.0 client secret (confidential clients only)
            base_url: Base URL for the API (default: https://api.twitter.com)
            on_token_refresh: Called with (access_token, refresh_token) after a refresh
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.refresh_token = refresh_token
        self.client_id = client_id
        self.client_secret = client_secret
        self.on_token_refresh = on_token_refresh
        self.timeout = timeout
        self._set_access_token(access_token)

    def _set_access_token(self, access_token: str) -> None:
        self.access_token = access_token
        self.headers = {
            "Authorization": f"Bearer {access_token}",
        }

    def _request(
        self,
        method: str,
        path: str,
        label: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(
                method,
                url,
                headers=self.headers,
                params=params,
                json=json,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            err = classify_request_error(e, label=label)
            logger.error(f"Twitter API request failed ({err.error_type.value}): {e}")
            raise err from e

    def _raise_resource_error(self, payload: dict, label: str) -> None:
        errors = payload.get("errors") or []
        if not errors:
            raise TwitterAPIError(f"Empty response {label}", error_type=ErrorType.UNKNOWN)
        first = errors[0]
        error_type = _RESOURCE_ERROR_TYPES.get(first.get("title", ""), ErrorType.UNKNOWN)
        raise TwitterAPIError(
            f"Error {label}: {first.get('detail') or first.get('title')}",
            error_type=error_type,
        )

    def get_me(self) -> TwitterUser:
        """Get the authenticated (bot) user."""
        payload = self._request(
            "GET", "/2/users/me", "fetching current user", params={"user.fields": USER_FIELDS}
        )
        if not payload.get("data"):
            self._raise_resource_error(payload, "fetching current user")
        return TwitterUser.from_api(payload["data"])

    def get_user(self, user_id: str) -> TwitterUser:
        payload = self._request(
            "GET",
            f"/2/users/{user_id}",
            f"fetching user {user_id}",
            params={"user.fields": USER_FIELDS},
        )
        if not payload.get("data"):
            self._raise_resource_error(payload, f"fetching user {user_id}")
        return TwitterUser.from_api(payload["data"])

    def get_user_mentions_page(
        self,
        user_id: str,
        since_id: Optional[str] = None,
        pagination_token: Optional[str] = None,
        max_results: int = 100,
    ) -> dict:
        """Get one raw page of mentions for a user.

        Args:
            user_id: Id of the mentioned user
            since_id: Only return mentions newer than this tweet id
            pagination_token: ``meta.next_token`` of the previous page
            max_results: Page size (5-100)

        Returns:
            API response with data, includes and meta

        Raises:
            TwitterAPIError: If API request fails
        """
        params = {
            "max_results": max_results,
            "expansions": EXPANSIONS,
            "tweet.fields": TWEET_FIELDS,
            "user.fields": USER_FIELDS,
        }
        # since_id=0 is rejected by the API
        if since_id and since_id != "0":
            params["since_id"] = since_id
        if pagination_token:
            params["pagination_token"] = pagination_token

        return self._request(
            "GET", f"/2/users/{user_id}/mentions", "fetching user mentions", params=params
        )

    def iter_user_mentions(
        self,
        user_id: str,
        since_id: Optional[str] = None,
        max_results: int = 100,
    ) -> Iterator[MentionPage]:
        """Iterate over all pages of mentions newer than ``since_id``.

        NOTE: even with pagination, only the 800 most recent mentions can be
        retrieved from this endpoint.
        """
        pagination_token = None
        while True:
            payload = self.get_user_mentions_page(
                user_id,
                since_id=since_id,
                pagination_token=pagination_token,
                max_results=max_results,
            )
            users, tweets = _parse_includes(payload)
            pagination_token = (payload.get("meta") or {}).get("next_token")
            yield MentionPage(
                mentions=[Tweet.from_api(t) for t in payload.get("data") or []],
                users=users,
                tweets=tweets,
                next_token=pagination_token,
            )
            if not pagination_token:
                break

    def get_tweet(self, tweet_id: str) -> Tweet:
        """Get a single tweet by id.

        Raises:
            TwitterAPIError: With type ``twitter:not-found`` for deleted tweets and
                ``twitter:forbidden`` for protected ones
        """
        payload = self._request(
            "GET",
            f"/2/tweets/{tweet_id}",
            f"fetching tweet {tweet_id}",
            params={"expansions": EXPANSIONS, "tweet.fields": TWEET_FIELDS, "user.fields": USER_FIELDS},
        )
        if not payload.get("data"):
            self._raise_resource_error(payload, f"fetching tweet {tweet_id}")
        return Tweet.from_api(payload["data"])

    def get_tweets(self, tweet_ids: List[str]) -> MentionPage:
        """Look up several tweets (and their authors) at once.

        Missing tweets are silently omitted from the result.
        """
        payload = self._request(
            "GET",
            "/2/tweets",
            "fetching tweets",
            params={
                "ids": ",".join(tweet_ids),
                "expansions": EXPANSIONS,
                "tweet.fields": TWEET_FIELDS,
                "user.fields": USER_FIELDS,
            },
        )
        users, tweets = _parse_includes(payload)
        return MentionPage(
            mentions=[Tweet.from_api(t) for t in payload.get("data") or []],
            users=users,
            tweets=tweets,
        )

    def create_reply(self, in_reply_to_tweet_id: str, text: str) -> str:
        """Post ``text`` as a reply and return the id of the new tweet."""
        payload = self._request(
            "POST",
            "/2/tweets",
            f"replying to tweet {in_reply_to_tweet_id}",
            json={"text": text, "reply": {"in_reply_to_tweet_id": in_reply_to_tweet_id}},
        )
        data = payload.get("data") or {}
        if not data.get("id"):
            self._raise_resource_error(payload, f"replying to tweet {in_reply_to_tweet_id}")
        return data["id"]

    def refresh_auth(self) -> None:
        """Exchange the refresh token for a new access token.

        Twitter rotates refresh tokens, so the new pair is handed to
        ``on_token_refresh`` for persistence.
        """
        if not self.refresh_token or not self.client_id:
            logger.warning("No refresh token configured; keeping current access token")
            return

        auth = (self.client_id, self.client_secret) if self.client_secret else None
        data = {
            "grant_type": "refresh_token",
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
        }
        try:
            response = requests.post(
                f"{self.base_url}/2/oauth2/token",
                data=data,
                auth=auth,
                timeout=self.timeout,
            )
            response.raise_for_status()
            token = response.json()
        except requests.exceptions.RequestException as e:
            err = classify_request_error(e, label="refreshing twitter auth")
            logger.error(f"Twitter token refresh failed: {e}")
            raise err from e

        self._set_access_token(token["access_token"])
        self.refresh_token = token.get("refresh_token", self.refresh_token)
        logger.info("✅ Twitter access token refreshed")

        if self.on_token_refresh:
            self.on_token_refresh(self.access_token, self.refresh_token)
