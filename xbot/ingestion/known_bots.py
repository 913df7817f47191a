"""Known automated Twitter accounts which should never trigger a reply."""

from typing import Iterable

# Stored as case-insensitive, lowercase usernames
KNOWN_BOTS = frozenset(
    name.lower()
    for name in [
        "threadreaderapp",
        "SaveToNotion",
        "ChatGPTBot",
        "AskDexa",
        "PingThread",
        "readwiseio",
        "threader",
        "unrollthread",
        "ReplyGPT",
        "ChatSonicAI",
        "dustyplaylist",
        "pikaso_me",
        "RemindMe_OfThis",
        "SaveMyVideo",
        "QuotedReplies",
        "poet_this",
        "MakeItAQuote",
        "colorize_bot",
        "DearAssistant",
        "WhatTheFare",
        "wayback_exe",
        "TayTweets",
        "deepquestionbot",
        "MoMARobot",
        "phasechase",
        "poem_exe",
        "desires_exe",
        "HundredZeros",
        "dscovr_epic",
        "MagicRealismBot",
        "MuseumBot",
        "TwoHeadlines",
        "pentametron",
        "earthquakebot",
        "_grammar_",
        "netflix_bot",
        "redbox_bot",
        "nicetipsbot",
        "the_ephemerides",
        "year_progress",
        "IFindPlanets",
        "emojimashupbot",
        "translatorbot",
        "MetaculusAlert",
        "hashtagify",
        "GooogleFactss",
        "Timer",
        "DownloaderBot",
        "QuakesToday",
        "Savevidbot",
        "Growthoid",
        "greatartbot",
        "Stupidcounter",
        "everyword",
        "fuckeveryword",
        "big_ben_clock",
        "LetKanyeFinish",
        "RedScareBot",
        "EnjoyTheFilm",
        "DBZNappa",
        "Exosaurs",
        "exoslash",
        "BloombrgNewsish",
        "AutoCharts",
        "HottestStartups",
        "metaphorminute",
        "unchartedatlas",
        "YesYoureRacist",
        "YesYoureSexist",
        "accidental575",
        "EarthRoverBot",
        "happened_today",
        "anagramatron",
        "pentametron",
        "stealthmountain",
        "SortingBot",
        "flycolony",
        "chernobylstatus",
        "blitz_bot_test",
        "unescobot",
        "wahlumfrageBot",
        "NeonaziWallets",
        "LatencyAt",
        "teololstoy",
        "trumpretruth",
        "UnrollHelper",
        "bot4thread",
    ]
)

LIKELY_BOT_SUFFIXES = ("bot", "gpt", "status")


def is_known_bot(username: str, known_bots: Iterable[str] = KNOWN_BOTS) -> bool:
    return username.lower() in known_bots


def is_likely_bot(
    username: str,
    known_bots: Iterable[str] = KNOWN_BOTS,
    suffixes: Iterable[str] = LIKELY_BOT_SUFFIXES,
) -> bool:
    """Whether ``username`` looks like an automated broadcaster account."""
    username = username.lower()

    if is_known_bot(username, known_bots):
        return True

    return any(username.endswith(suffix) for suffix in suffixes)
