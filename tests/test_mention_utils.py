"""Tests for bot-noise classification, prompt helpers and priority scoring."""

import pytest

from xbot.ingestion.known_bots import is_known_bot, is_likely_bot
from xbot.ingestion.mention_utils import get_num_mentions, get_prompt, get_tweet_url
from xbot.ingestion.priority import PriorityPolicy
from xbot.models.tweet import compare_twitter_ids, max_twitter_id
from tests.conftest import make_tweet


class TestIsLikelyBot:
    """Tests for the bot-noise classifier."""

    @pytest.mark.parametrize(
        "username",
        ["threadreaderapp", "ThreadReaderApp", "SaveToNotion", "foobot", "SuperGPT", "ServerStatus"],
    )
    def test_bots(self, username):
        """Test known accounts and bot-like suffixes are flagged."""
        assert is_likely_bot(username)

    @pytest.mark.parametrize("username", ["alice", "botany_fan", "gpt_news_reader"])
    def test_humans(self, username):
        """Test ordinary usernames are not flagged."""
        assert not is_likely_bot(username)

    def test_custom_lists(self):
        """Test the known-bot set and suffixes are swappable."""
        assert is_likely_bot("alice", known_bots={"alice"}, suffixes=())
        assert not is_likely_bot("foobot", known_bots=set(), suffixes=())
        assert is_known_bot("PingThread")


class TestGetPrompt:
    """Tests for prompt normalization."""

    def test_strips_reply_prefix(self):
        """Test leading @mentions are removed."""
        assert get_prompt("@alice @xbot what is 2+2?", "@xbot") == "what is 2+2?"

    def test_strips_inline_bot_handle(self):
        """Test the bot handle is removed case-insensitively."""
        assert get_prompt("hey @XBot   tell me a joke", "@xbot") == "hey tell me a joke"

    def test_keeps_other_mentions(self):
        """Test mentions of other users inside the text are kept."""
        assert get_prompt("is @bob right? @xbot", "@xbot") == "is @bob right?"

    def test_unescapes_html(self):
        """Test HTML entities from the API are decoded."""
        assert get_prompt("@xbot fish &amp; chips &gt; pizza?", "@xbot") == "fish & chips > pizza?"

    def test_only_mentions_is_empty(self):
        """Test a bare mention yields an empty prompt."""
        assert get_prompt("@xbot @alice", "@xbot") == ""


class TestMentionHelpers:
    """Tests for mention counting and URLs."""

    def test_num_mentions_from_entities(self):
        """Test entity mentions are preferred over parsing the text."""
        tweet = make_tweet("1001", text="@a @b hi")
        tweet.entities = {"mentions": [{"username": "a"}]}

        assert get_num_mentions(tweet) == 1

    def test_num_mentions_from_text(self):
        """Test mentions are counted from the text without entities."""
        assert get_num_mentions(make_tweet("1001", text="@a @b hi x@y")) == 2

    def test_tweet_url(self):
        """Test canonical tweet URLs."""
        assert get_tweet_url("alice", "1001") == "https://twitter.com/alice/status/1001"


class TestPriorityPolicy:
    """Tests for the default priority policy."""

    def test_more_followers_scores_higher(self):
        """Test follower count increases priority."""
        policy = PriorityPolicy()

        assert policy(10000, 0, False) > policy(10, 0, False)

    def test_direct_mention_bonus(self):
        """Test direct mentions outrank replies from the same author."""
        policy = PriorityPolicy()

        assert policy(100, 0, False) > policy(100, 0, True)

    def test_deeper_threads_score_higher(self):
        """Test ongoing conversations are favored."""
        policy = PriorityPolicy()

        assert policy(100, 2, True) > policy(100, 0, True)


class TestTwitterIds:
    """Tests for numeric-string id ordering."""

    def test_compare_by_length_first(self):
        """Test longer ids are newer regardless of lexical order."""
        assert compare_twitter_ids("999", "1000") == -1
        assert compare_twitter_ids("1001", "1000") == 1
        assert compare_twitter_ids("1000", "1000") == 0

    def test_max_ignores_empty(self):
        """Test empty and missing ids are skipped."""
        assert max_twitter_id(None, "", "999", "1000") == "1000"
        assert max_twitter_id(None) is None
