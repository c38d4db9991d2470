from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from voice_assistant.errors import ParseError, UnsupportedIntent
from voice_assistant.interpreter import CommandInterpreter
from voice_assistant.models import SUPPORTED_ACTIONS, Provider

# Sunday
NOW = datetime(2026, 10, 18, 9, 30, tzinfo=ZoneInfo("America/New_York"))


@pytest.fixture
def interpreter():
    return CommandInterpreter(timezone="America/New_York")


@pytest.mark.parametrize(
    "text, provider, action",
    [
        ("what's on my calendar today", Provider.CALENDAR, "listEvents"),
        ("Hey Jarvis, do I have any meetings tomorrow?", Provider.CALENDAR, "listEvents"),
        ("schedule a meeting called Standup tomorrow at 9am", Provider.CALENDAR, "createEvent"),
        ("delete event id abc123", Provider.CALENDAR, "deleteEvent"),
        ("rename event id abc123 to Team sync", Provider.CALENDAR, "updateEvent"),
        ("check my unread emails", Provider.GMAIL, "listMessages"),
        ("send an email to bob@example.com saying running late", Provider.GMAIL, "sendMessage"),
        ("read email id 18c2f0a9d1", Provider.GMAIL, "getMessage"),
        ("search youtube for cat videos", Provider.YOUTUBE, "search"),
        ("play lofi beats on youtube", Provider.YOUTUBE, "search"),
        ("open https://www.youtube.com/watch?v=dQw4w9WgXcQ", Provider.YOUTUBE, "getVideo"),
        ("create a playlist called Road Trip", Provider.YOUTUBE, "createPlaylist"),
        ("show my amazon music playlists", Provider.AMAZON_MUSIC, "getPlaylists"),
        ("search amazon music for Miles Davis", Provider.AMAZON_MUSIC, "search"),
        ("play Kind of Blue on amazon music", Provider.AMAZON_MUSIC, "play"),
        ("play some jazz", Provider.AMAZON_MUSIC, "play"),
    ],
)
def test_known_commands_map_to_their_action(interpreter, text, provider, action):
    intent = interpreter.interpret(text, "42", now=NOW)

    assert (intent.provider, intent.action) == (provider, action)
    assert intent.action in SUPPORTED_ACTIONS[intent.provider]
    assert intent.user_id == "42"


def test_calendar_today(interpreter):
    intent = interpreter.interpret("what's on my calendar today", "42", now=NOW)
    assert intent.parameters == {"date": "2026-10-18", "days": 1}


@pytest.mark.parametrize(
    "text, date, days",
    [
        ("what's on my calendar tomorrow", "2026-10-19", 1),
        ("show my schedule this week", "2026-10-18", 7),
        ("what meetings do I have next week", "2026-10-19", 7),
        ("what's on my calendar on friday", "2026-10-23", 1),
        ("any events on 2026-12-24", "2026-12-24", 1),
    ],
)
def test_calendar_day_ranges(interpreter, text, date, days):
    intent = interpreter.interpret(text, "42", now=NOW)
    assert intent.parameters == {"date": date, "days": days}


def test_create_event_with_time_and_duration(interpreter):
    intent = interpreter.interpret("add an event called Dentist on friday at 3:30pm for 30 minutes", "42", now=NOW)

    assert intent.parameters["title"] == "Dentist"
    assert intent.parameters["all_day"] is False
    assert intent.parameters["start"] == "2026-10-23T15:30:00-04:00"
    assert intent.parameters["end"] == "2026-10-23T16:00:00-04:00"


def test_create_event_without_time_is_all_day(interpreter):
    intent = interpreter.interpret("schedule an appointment called Passport renewal tomorrow", "42", now=NOW)

    assert intent.parameters["all_day"] is True
    assert intent.parameters["start"] == "2026-10-19"
    assert intent.parameters["end"] == "2026-10-20"


def test_spoken_email_address(interpreter):
    intent = interpreter.interpret(
        "send an email to bob at example dot com about lunch saying see you at noon", "42", now=NOW
    )

    assert intent.parameters == {"to": "bob@example.com", "subject": "lunch", "body": "see you at noon"}


def test_unread_mail_query(interpreter):
    intent = interpreter.interpret("read my new emails from alice@example.com", "42", now=NOW)
    assert intent.parameters["query"] == "category:primary is:unread from:alice@example.com"


def test_play_strips_filler(interpreter):
    intent = interpreter.interpret("play the song Bohemian Rhapsody", "42", now=NOW)
    assert intent.parameters == {"query": "Bohemian Rhapsody"}


@pytest.mark.parametrize(
    "text",
    [
        "turn off the lights",
        "delete my youtube playlist",
        "order a pizza",
        "what's the weather like",
    ],
)
def test_unknown_commands_are_unsupported(interpreter, text):
    with pytest.raises(UnsupportedIntent):
        interpreter.interpret(text, "42", now=NOW)


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "play",
        "play music",
        "schedule a meeting",
        "send an email",
        "send an email to bob saying hi",
    ],
)
def test_incomplete_commands_are_parse_errors(interpreter, text):
    with pytest.raises(ParseError):
        interpreter.interpret(text, "42", now=NOW)


def test_user_is_required(interpreter):
    with pytest.raises(ParseError):
        interpreter.interpret("what's on my calendar today", "", now=NOW)


def test_structured_intent(interpreter):
    intent = interpreter.structured("youtube", "getVideo", {"video_id": "dQw4w9WgXcQ", "x": None}, "42")

    assert intent.provider == Provider.YOUTUBE
    assert intent.parameters == {"video_id": "dQw4w9WgXcQ"}


@pytest.mark.parametrize("provider, action", [("youtube", "deleteVideo"), ("spotify", "play")])
def test_structured_unknown_pair_is_unsupported(interpreter, provider, action):
    with pytest.raises(UnsupportedIntent):
        interpreter.structured(provider, action, {}, "42")


@pytest.mark.parametrize(
    "text",
    [
        "schedule a meeting called Standup tomorrow at 9am for 99999999 hours",
        "schedule a meeting called Standup tomorrow at 9am for 25 hours",
        "schedule a meeting called Standup 9999-12-31",
        "schedule a meeting called Standup 9999-12-31 at 11pm",
    ],
)
def test_out_of_range_events_are_parse_errors(interpreter, text):
    with pytest.raises(ParseError):
        interpreter.interpret(text, "42", now=NOW)
