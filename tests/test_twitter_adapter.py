"""Tests for the Twitter API adapter.

These tests mock HTTP calls made through requests and check request
parameters, response parsing and error classification.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from xbot.errors import ErrorType, TwitterAPIError
from xbot.sources.twitter import TwitterAPIAdapter


def _response(payload=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status_code} Error", response=response
        )
    return response


def _tweet(tweet_id, **extra):
    return {"id": tweet_id, "text": f"@xbot tweet {tweet_id}", "author_id": "101", **extra}


@pytest.fixture
def adapter():
    """Create an adapter with test credentials."""
    return TwitterAPIAdapter(access_token="test-token", refresh_token="refresh", client_id="client")


class TestTwitterAPIAdapter:
    """Tests for TwitterAPIAdapter requests and parsing."""

    @patch("xbot.sources.twitter.requests.request")
    def test_get_me(self, mock_request, adapter):
        """Test the authenticated user is parsed."""
        mock_request.return_value = _response(
            {"data": {"id": "1", "username": "xbot", "public_metrics": {"followers_count": 42}}}
        )

        user = adapter.get_me()

        assert user.id == "1"
        assert user.username == "xbot"
        assert user.followers_count == 42
        args, kwargs = mock_request.call_args
        assert args == ("GET", "https://api.twitter.com/2/users/me")
        assert kwargs["headers"]["Authorization"] == "Bearer test-token"

    @patch("xbot.sources.twitter.requests.request")
    def test_mentions_pagination(self, mock_request, adapter):
        """Test pages are followed via meta.next_token."""
        mock_request.side_effect = [
            _response(
                {
                    "data": [_tweet("1002"), _tweet("1001")],
                    "includes": {"users": [{"id": "101", "username": "alice"}]},
                    "meta": {"next_token": "page2"},
                }
            ),
            _response({"data": [_tweet("1000")], "meta": {}}),
        ]

        pages = list(adapter.iter_user_mentions("1", since_id="999"))

        assert [[m.id for m in page.mentions] for page in pages] == [["1002", "1001"], ["1000"]]
        assert pages[0].users[0].username == "alice"
        first_params = mock_request.call_args_list[0].kwargs["params"]
        second_params = mock_request.call_args_list[1].kwargs["params"]
        assert first_params["since_id"] == "999"
        assert "pagination_token" not in first_params
        assert second_params["pagination_token"] == "page2"
        assert mock_request.call_args_list[0].args[1].endswith("/2/users/1/mentions")

    @patch("xbot.sources.twitter.requests.request")
    def test_mentions_omit_zero_since_id(self, mock_request, adapter):
        """Test since_id=0 is not sent to the API."""
        mock_request.return_value = _response({"meta": {"result_count": 0}})

        pages = list(adapter.iter_user_mentions("1", since_id="0"))

        assert pages[0].mentions == []
        assert "since_id" not in mock_request.call_args.kwargs["params"]

    @patch("xbot.sources.twitter.requests.request")
    def test_get_tweet_parses_references(self, mock_request, adapter):
        """Test referenced tweets and metrics are parsed."""
        mock_request.return_value = _response(
            {
                "data": _tweet(
                    "1001",
                    created_at="2025-01-01T12:00:00.000Z",
                    referenced_tweets=[{"type": "replied_to", "id": "1000"}],
                    public_metrics={"like_count": 7},
                )
            }
        )

        tweet = adapter.get_tweet("1001")

        assert tweet.replied_to_id == "1000"
        assert tweet.metric("like_count") == 7
        assert tweet.created_at.year == 2025

    @patch("xbot.sources.twitter.requests.request")
    def test_get_tweet_not_found_in_body(self, mock_request, adapter):
        """Test a 200 response carrying a Not Found error is classified."""
        mock_request.return_value = _response(
            {"errors": [{"title": "Not Found Error", "detail": "Could not find tweet"}]}
        )

        with pytest.raises(TwitterAPIError) as exc_info:
            adapter.get_tweet("1001")

        assert exc_info.value.error_type == ErrorType.TWITTER_NOT_FOUND
        assert exc_info.value.is_final

    @pytest.mark.parametrize(
        "status_code,error_type,is_final",
        [
            (429, ErrorType.TWITTER_RATE_LIMIT, False),
            (401, ErrorType.TWITTER_AUTH, False),
            (403, ErrorType.TWITTER_FORBIDDEN, True),
            (404, ErrorType.TWITTER_NOT_FOUND, True),
            (503, ErrorType.NETWORK, False),
            (400, ErrorType.UNKNOWN, True),
        ],
    )
    @patch("xbot.sources.twitter.requests.request")
    def test_http_errors_are_classified(self, mock_request, status_code, error_type, is_final, adapter):
        """Test HTTP status codes map to error types."""
        mock_request.return_value = _response({}, status_code=status_code)

        with pytest.raises(TwitterAPIError) as exc_info:
            adapter.get_tweet("1001")

        assert exc_info.value.error_type == error_type
        assert exc_info.value.status == status_code
        assert exc_info.value.is_final is is_final

    @patch("xbot.sources.twitter.requests.request")
    def test_connection_error_is_network(self, mock_request, adapter):
        """Test connection failures are classified as network errors."""
        mock_request.side_effect = requests.exceptions.ConnectionError("connection reset")

        with pytest.raises(TwitterAPIError) as exc_info:
            adapter.get_user("101")

        assert exc_info.value.error_type == ErrorType.NETWORK
        assert not exc_info.value.is_final

    @patch("xbot.sources.twitter.requests.request")
    def test_create_reply(self, mock_request, adapter):
        """Test replies are posted with the in_reply_to tweet id."""
        mock_request.return_value = _response({"data": {"id": "2001", "text": "hi"}})

        reply_id = adapter.create_reply("1001", "hi")

        assert reply_id == "2001"
        args, kwargs = mock_request.call_args
        assert args == ("POST", "https://api.twitter.com/2/tweets")
        assert kwargs["json"] == {"text": "hi", "reply": {"in_reply_to_tweet_id": "1001"}}

    @patch("xbot.sources.twitter.requests.request")
    def test_get_tweets_batch_lookup(self, mock_request, adapter):
        """Test several tweets and their authors are looked up at once."""
        mock_request.return_value = _response(
            {
                "data": [_tweet("1001"), _tweet("1002")],
                "includes": {"users": [{"id": "101", "username": "alice"}]},
            }
        )

        page = adapter.get_tweets(["1001", "1002"])

        assert [t.id for t in page.mentions] == ["1001", "1002"]
        assert mock_request.call_args.kwargs["params"]["ids"] == "1001,1002"


class TestRefreshAuth:
    """Tests for OAuth 2.0 token refresh."""

    @patch("xbot.sources.twitter.requests.post")
    def test_refresh_rotates_tokens(self, mock_post):
        """Test new tokens are applied and handed to the persistence callback."""
        on_refresh = MagicMock()
        adapter = TwitterAPIAdapter(
            access_token="old", refresh_token="old-refresh", client_id="client", on_token_refresh=on_refresh
        )
        mock_post.return_value = _response({"access_token": "new", "refresh_token": "new-refresh"})

        adapter.refresh_auth()

        assert adapter.headers["Authorization"] == "Bearer new"
        assert adapter.refresh_token == "new-refresh"
        on_refresh.assert_called_once_with("new", "new-refresh")
        assert mock_post.call_args.kwargs["data"]["grant_type"] == "refresh_token"

    @patch("xbot.sources.twitter.requests.post")
    def test_refresh_without_refresh_token_is_noop(self, mock_post):
        """Test refreshing is skipped when no refresh token is configured."""
        adapter = TwitterAPIAdapter(access_token="token")

        adapter.refresh_auth()

        mock_post.assert_not_called()
        assert adapter.access_token == "token"

    @patch("xbot.sources.twitter.requests.post")
    def test_refresh_failure_is_classified(self, mock_post, adapter):
        """Test a rejected refresh raises an auth error."""
        mock_post.return_value = _response({}, status_code=401)

        with pytest.raises(TwitterAPIError) as exc_info:
            adapter.refresh_auth()

        assert exc_info.value.error_type == ErrorType.TWITTER_AUTH
