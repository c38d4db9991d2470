"""Command interpreter - maps spoken commands to intents.

Free text is matched against an ordered table of rules. The first rule whose
pattern matches builds the parameters; a rule may raise ``ParseError`` when it
recognises the command but something it needs is missing. Text that no rule
recognises is an ``UnsupportedIntent``.
"""

import re
from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from voice_assistant.errors import ParseError, UnsupportedIntent
from voice_assistant.models import Intent, Provider, is_supported

Builder = Callable[[re.Match, "_Context"], dict[str, Any]]

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
_DAY = r"today|tomorrow|(?:on\s+)?(?:" + "|".join(WEEKDAYS) + r")|(?:on\s+)?\d{4}-\d{2}-\d{2}"
_TIME = r"\d{1,2}(?::\d{2})?\s*(?:am|pm|a\.m\.|p\.m\.)?"
_FILLER = re.compile(r"^(?:some|the song|the album|songs by|music by|a song by|the)\s+", re.I)
MAX_EVENT_MINUTES = 24 * 60


class _Context:
    def __init__(self, now: datetime, timezone: str):
        self.now = now
        self.today = now.date()
        self.timezone = timezone
        self.tz = now.tzinfo


def _clean(raw_text: str) -> str:
    text = raw_text.replace("’", "'").strip()
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"^(?:hey\s+\w+[,!]?\s+|ok(?:ay)?\s+\w+[,!]?\s+)", "", text, flags=re.I)
    text = re.sub(r"^(?:please\s+|can you\s+|could you\s+)", "", text, flags=re.I)
    return text.rstrip(" ?.!")


def _resolve_day(phrase: str | None, today: date) -> date:
    if not phrase:
        return today
    phrase = phrase.lower().removeprefix("on ").strip()
    if phrase == "today":
        return today
    if phrase == "tomorrow":
        return today + timedelta(days=1)
    if phrase == "yesterday":
        return today - timedelta(days=1)
    if phrase in WEEKDAYS:
        return today + timedelta(days=(WEEKDAYS.index(phrase) - today.weekday()) % 7)
    try:
        return date.fromisoformat(phrase)
    except ValueError:
        raise ParseError(f"I don't know which day '{phrase}' is")


def _find_range(text: str, today: date) -> tuple[date, int]:
    """Day window mentioned anywhere in the text, defaulting to today."""
    lowered = text.lower()
    if "this week" in lowered:
        return today, 7
    if "next week" in lowered:
        return today + timedelta(days=7 - today.weekday()), 7
    match = re.search(r"\b(today|tomorrow|yesterday|" + "|".join(WEEKDAYS) + r"|\d{4}-\d{2}-\d{2})\b", lowered)
    return _resolve_day(match.group(1) if match else None, today), 1


def _resolve_time(phrase: str) -> time:
    phrase = phrase.lower().replace(".", "").replace(" ", "")
    match = re.fullmatch(r"(\d{1,2})(?::(\d{2}))?(am|pm)?", phrase)
    if not match:
        raise ParseError(f"I don't understand the time '{phrase}'")
    hour, minute, meridiem = int(match.group(1)), int(match.group(2) or 0), match.group(3)
    if meridiem == "pm" and hour < 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0
    if hour > 23 or minute > 59:
        raise ParseError(f"I don't understand the time '{phrase}'")
    return time(hour, minute)


def _spoken_email(text: str) -> str:
    """Turn 'bob at example dot com' into 'bob@example.com'."""
    address = re.sub(r"\s+at\s+", "@", text.strip(), flags=re.I)
    address = re.sub(r"\s+dot\s+", ".", address, flags=re.I)
    return address.replace(" ", "").lower()


# Builders

def _create_event(m: re.Match, ctx: _Context) -> dict[str, Any]:
    title = m.group("title").strip()
    day = _resolve_day(m.group("day"), ctx.today)
    params: dict[str, Any] = {"title": title, "timezone": ctx.timezone}

    if not m.group("time"):
        params.update(all_day=True, start=day.isoformat(), end=(day + timedelta(days=1)).isoformat())
        return params

    start = datetime.combine(day, _resolve_time(m.group("time")), tzinfo=ctx.tz)
    minutes = 60
    if m.group("duration"):
        minutes = int(m.group("duration")) * (60 if m.group("unit").startswith("hour") else 1)
    if not 0 < minutes <= MAX_EVENT_MINUTES:
        raise ParseError("Events can last up to 24 hours")
    params.update(
        all_day=False,
        start=start.isoformat(),
        end=(start + timedelta(minutes=minutes)).isoformat(),
    )
    return params


def _incomplete(message: str) -> Builder:
    def build(m: re.Match, ctx: _Context) -> dict[str, Any]:
        raise ParseError(message)
    return build


def _list_events(m: re.Match, ctx: _Context) -> dict[str, Any]:
    day, days = _find_range(m.string, ctx.today)
    return {"date": day.isoformat(), "days": days}


def _send_message(m: re.Match, ctx: _Context) -> dict[str, Any]:
    to = _spoken_email(m.group("to"))
    if "@" not in to:
        raise ParseError("Who should I send it to? I need an email address")
    params = {"to": to, "body": m.group("body").strip()}
    if m.group("subject"):
        params["subject"] = m.group("subject").strip()
    return params


def _list_messages(m: re.Match, ctx: _Context) -> dict[str, Any]:
    lowered = m.string.lower()
    query = ["category:primary"]
    if re.search(r"\b(?:unread|new)\b", lowered):
        query.append("is:unread")
    sender = re.search(r"\bfrom\s+([\w.@+-]+)", m.string, re.I)
    if sender:
        query.append(f"from:{sender.group(1)}")
    if "today" in lowered:
        query.append("newer_than:1d")
    return {"query": " ".join(query), "max_results": 10}


def _group(name: str, key: str | None = None) -> Builder:
    def build(m: re.Match, ctx: _Context) -> dict[str, Any]:
        return {key or name: m.group(name).strip()}
    return build


def _play(m: re.Match, ctx: _Context) -> dict[str, Any]:
    query = _FILLER.sub("", m.group("query").strip())
    if query.lower() in ("", "music", "something", "anything", "a song"):
        raise ParseError("What would you like to hear?")
    return {"query": query}


_RULES: list[tuple[Provider, str, re.Pattern, Builder]] = [
    # Calendar
    (Provider.CALENDAR, "createEvent", re.compile(
        r"^(?:add|create|schedule|book)\s+(?:an?\s+)?(?:new\s+)?(?:event|meeting|appointment)\s+"
        r"(?:called\s+|titled\s+|named\s+|for\s+)?(?P<title>.+?)\s+(?P<day>" + _DAY + r")"
        r"(?:\s+at\s+(?P<time>" + _TIME + r"))?"
        r"(?:\s+for\s+(?P<duration>\d+)\s+(?P<unit>minutes?|hours?))?$", re.I), _create_event),
    (Provider.CALENDAR, "createEvent", re.compile(
        r"^(?:add|create|schedule|book)\s+(?:an?\s+)?(?:new\s+)?(?:event|meeting|appointment)\b", re.I),
        _incomplete("What should I call the event, and which day is it?")),
    (Provider.CALENDAR, "deleteEvent", re.compile(
        r"^(?:delete|cancel|remove)\s+(?:the\s+)?(?:event|meeting|appointment)\s+id\s+(?P<event_id>[\w-]+)$", re.I),
        _group("event_id")),
    (Provider.CALENDAR, "updateEvent", re.compile(
        r"^rename\s+(?:the\s+)?(?:event|meeting|appointment)\s+id\s+(?P<event_id>[\w-]+)\s+to\s+(?P<title>.+)$", re.I),
        lambda m, ctx: {"event_id": m.group("event_id"), "title": m.group("title").strip()}),

    # Gmail
    (Provider.GMAIL, "sendMessage", re.compile(
        r"^(?:send|write)\s+(?:an?\s+)?(?:email|e-mail|mail|message)\s+to\s+(?P<to>.+?)"
        r"(?:\s+(?:about|with subject)\s+(?P<subject>.+?))?"
        r"\s*(?:\s+saying|\s+that says|:)\s*(?P<body>.+)$", re.I), _send_message),
    (Provider.GMAIL, "sendMessage", re.compile(
        r"^(?:send|write)\s+(?:an?\s+)?(?:email|e-mail|mail)\b", re.I),
        _incomplete("Who is the email for, and what should it say?")),
    (Provider.GMAIL, "getMessage", re.compile(
        r"^(?:read|open|show)\s+(?:the\s+|me\s+)?(?:email|message)\s+id\s+(?P<message_id>[0-9a-f]+)$", re.I),
        _group("message_id")),

    # YouTube
    (Provider.YOUTUBE, "getVideo", re.compile(
        r"(?:youtube\.com/watch\?v=|youtu\.be/)(?P<video_id>[\w-]{11})", re.I), _group("video_id")),
    (Provider.YOUTUBE, "getVideo", re.compile(
        r"^(?:play|show|open|get)\s+(?:the\s+)?(?:youtube\s+)?video\s+id\s+(?P<video_id>[\w-]{11})$", re.I),
        _group("video_id")),
    (Provider.YOUTUBE, "createPlaylist", re.compile(
        r"^(?:create|make|start)\s+(?:a\s+)?(?:new\s+)?(?:youtube\s+)?playlist\s+"
        r"(?:called|named|titled)\s+(?P<title>.+)$", re.I), _group("title")),
    (Provider.YOUTUBE, "search", re.compile(
        r"^(?:search|look up|find)\s+(?:on\s+)?(?:youtube|videos?)\s+for\s+(?P<query>.+)$", re.I),
        _group("query")),
    (Provider.YOUTUBE, "search", re.compile(
        r"^(?:search\s+for\s+|find\s+|look\s+up\s+|show\s+me\s+|play\s+|watch\s+)?(?:videos?\s+of\s+)?"
        r"(?P<query>.+?)\s+(?:on|from)\s+youtube$", re.I), _group("query")),

    # Amazon Music
    (Provider.AMAZON_MUSIC, "getPlaylists", re.compile(
        r"^(?:show|list|read|what are|get|open)\s+(?:me\s+)?my\s+(?:amazon\s+music\s+|music\s+)?playlists$"
        r"|^what\s+playlists\s+do\s+i\s+have", re.I),
        lambda m, ctx: {}),
    (Provider.AMAZON_MUSIC, "search", re.compile(
        r"^(?:search|find|look up)\s+(?:on\s+)?(?:amazon\s+music|music|songs?)\s+for\s+(?P<query>.+)$", re.I),
        _group("query")),
    (Provider.AMAZON_MUSIC, "search", re.compile(
        r"^(?:search\s+for|find|look\s+up)\s+(?P<query>.+?)\s+on\s+amazon(?:\s+music)?$", re.I),
        _group("query")),

    # Broad matches last
    (Provider.CALENDAR, "listEvents", re.compile(
        r"^(?:what|what's|whats|show|list|read|check|tell me|do i have|any|how)\b.*"
        r"\b(?:calendar|schedule|agenda|events?|meetings?|appointments?)\b", re.I), _list_events),
    (Provider.GMAIL, "listMessages", re.compile(
        r"^(?:read|check|show|list|get|any|do i have|what|what's|whats|open)\b.*"
        r"\b(?:emails?|e-mails?|inbox|mail|messages)\b", re.I), _list_messages),
    (Provider.AMAZON_MUSIC, "play", re.compile(
        r"^play\s+(?P<query>.+?)(?:\s+on\s+amazon(?:\s+music)?)?$", re.I), _play),
    (Provider.AMAZON_MUSIC, "play", re.compile(r"^play$", re.I),
        _incomplete("What would you like to hear?")),
]


class CommandInterpreter:
    """Turns raw command text into an Intent. Has no side effects."""

    def __init__(self, timezone: str = "America/New_York"):
        self.timezone = timezone
        self._tz = ZoneInfo(timezone)

    def interpret(self, raw_text: str, user_id: str, now: datetime | None = None) -> Intent:
        if not user_id or not str(user_id).strip():
            raise ParseError("A user is required")
        if not raw_text or not raw_text.strip():
            raise ParseError("I didn't catch that")

        text = _clean(raw_text)
        if not text:
            raise ParseError("I didn't catch that")

        now = now.astimezone(self._tz) if now else datetime.now(self._tz)
        ctx = _Context(now, self.timezone)

        for provider, action, pattern, build in _RULES:
            match = pattern.search(text)
            if match:
                try:
                    parameters = build(match, ctx)
                except (OverflowError, ValueError):
                    raise ParseError("That date is out of range")
                return Intent(provider=provider, action=action, parameters=parameters, user_id=str(user_id))

        raise UnsupportedIntent(f"Sorry, I don't know how to \"{text}\" yet")

    def structured(
        self,
        provider: Provider | str,
        action: str,
        parameters: dict[str, Any],
        user_id: str,
    ) -> Intent:
        """Build an intent from an already structured request (REST routes, tools)."""
        if not user_id or not str(user_id).strip():
            raise ParseError("A user is required")
        try:
            provider = Provider(provider)
        except ValueError:
            raise UnsupportedIntent(f"Unknown service: {provider}")
        if not is_supported(provider, action):
            raise UnsupportedIntent(f"{provider.value} does not support '{action}'")

        return Intent(
            provider=provider,
            action=action,
            parameters={k: v for k, v in parameters.items() if v is not None},
            user_id=str(user_id),
        )
