import base64
import json

import httpx
import pytest

from conftest import make_credential
from voice_assistant.errors import AuthError, RateLimited, UpstreamError, ValidationError
from voice_assistant.models import SUPPORTED_ACTIONS, Provider
from voice_assistant.providers import (
    AmazonMusicAdapter,
    GmailAdapter,
    GoogleCalendarAdapter,
    YouTubeAdapter,
)


def transport(handler):
    requests: list[httpx.Request] = []

    def _handle(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    mock = httpx.MockTransport(_handle)
    mock.requests = requests
    return mock


def test_adapters_cover_exactly_the_supported_actions():
    adapters = [GoogleCalendarAdapter(), GmailAdapter(), YouTubeAdapter(), AmazonMusicAdapter()]
    for adapter in adapters:
        assert adapter.actions == SUPPORTED_ACTIONS[adapter.provider]


@pytest.mark.asyncio
async def test_calendar_list_events_normalizes_items():
    items = {
        "items": [
            {"id": "a", "summary": "Standup", "start": {"dateTime": "2026-10-18T09:00:00-04:00"},
             "end": {"dateTime": "2026-10-18T09:15:00-04:00"}},
            {"id": "b", "start": {"date": "2026-10-18"}, "end": {"date": "2026-10-19"}, "location": "Home"},
        ]
    }
    mock = transport(lambda request: httpx.Response(200, json=items))
    adapter = GoogleCalendarAdapter(timezone="America/New_York", transport=mock)

    payload = await adapter.execute("listEvents", {"date": "2026-10-18", "days": 1}, make_credential())

    assert payload["count"] == 2
    assert payload["events"][0]["title"] == "Standup"
    assert payload["events"][1] == {
        "id": "b", "title": "(No title)", "start": "2026-10-18", "end": "2026-10-19",
        "all_day": True, "location": "Home",
    }
    request = mock.requests[0]
    assert request.headers["Authorization"] == "Bearer access-1"
    assert request.url.params["timeMin"] == "2026-10-18T00:00:00-04:00"
    assert request.url.params["timeMax"] == "2026-10-19T00:00:00-04:00"


@pytest.mark.asyncio
async def test_calendar_create_event_requires_fields():
    mock = transport(lambda request: httpx.Response(200, json={}))
    adapter = GoogleCalendarAdapter(transport=mock)

    with pytest.raises(ValidationError):
        await adapter.execute("createEvent", {"title": "Lunch"}, make_credential())
    assert mock.requests == []


@pytest.mark.asyncio
async def test_calendar_create_all_day_event():
    created = {"id": "new", "summary": "Trip", "start": {"date": "2026-10-19"}, "end": {"date": "2026-10-20"}}
    mock = transport(lambda request: httpx.Response(200, json=created))
    adapter = GoogleCalendarAdapter(transport=mock)

    payload = await adapter.execute(
        "createEvent",
        {"title": "Trip", "start": "2026-10-19", "end": "2026-10-20", "all_day": True},
        make_credential(),
    )

    assert payload["event"]["id"] == "new"
    assert payload["event"]["all_day"] is True
    body = json.loads(mock.requests[0].content)
    assert body == {"summary": "Trip", "start": {"date": "2026-10-19"}, "end": {"date": "2026-10-20"}}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, error",
    [
        (401, AuthError),
        (403, AuthError),
        (429, RateLimited),
        (400, ValidationError),
        (404, ValidationError),
        (500, UpstreamError),
        (503, UpstreamError),
    ],
)
async def test_status_codes_map_to_error_taxonomy(status, error):
    body = {"error": {"code": status, "message": "internal detail", "status": "SOMETHING"}}
    mock = transport(lambda request: httpx.Response(status, json=body))
    adapter = GoogleCalendarAdapter(transport=mock)

    with pytest.raises(error) as exc_info:
        await adapter.execute("deleteEvent", {"event_id": "abc"}, make_credential())

    assert "internal detail" not in exc_info.value.message


@pytest.mark.asyncio
async def test_rate_limited_carries_retry_after():
    mock = transport(lambda request: httpx.Response(429, headers={"Retry-After": "2"}))
    adapter = YouTubeAdapter(transport=mock)

    with pytest.raises(RateLimited) as exc_info:
        await adapter.execute("search", {"query": "cats"}, make_credential(provider=Provider.YOUTUBE))

    assert exc_info.value.retry_after == 2.0


@pytest.mark.asyncio
async def test_transport_failure_is_upstream_error():
    def fail(request):
        raise httpx.ConnectError("connection refused", request=request)

    adapter = GmailAdapter(transport=httpx.MockTransport(fail))

    with pytest.raises(UpstreamError):
        await adapter.execute("listMessages", {}, make_credential(provider=Provider.GMAIL))


@pytest.mark.asyncio
async def test_gmail_list_messages_fetches_metadata():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/messages"):
            return httpx.Response(200, json={"messages": [{"id": "m1"}]})
        return httpx.Response(200, json={
            "id": "m1",
            "snippet": "Lunch?",
            "payload": {"headers": [
                {"name": "From", "value": "alice@example.com"},
                {"name": "Subject", "value": "Lunch"},
                {"name": "Date", "value": "Sun, 18 Oct 2026 09:00:00 -0400"},
            ]},
        })

    mock = transport(handler)
    adapter = GmailAdapter(transport=mock)

    payload = await adapter.execute("listMessages", {"query": "is:unread"}, make_credential(provider=Provider.GMAIL))

    assert payload["count"] == 1
    assert payload["messages"][0]["sender"] == "alice@example.com"
    assert mock.requests[0].url.params["q"] == "is:unread"


@pytest.mark.asyncio
async def test_gmail_get_message_decodes_body():
    text = base64.urlsafe_b64encode(b"See you at noon").decode().rstrip("=")
    message = {
        "id": "m1",
        "threadId": "t1",
        "snippet": "See you",
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": [{"name": "To", "value": "bob@example.com"}],
            "parts": [{"mimeType": "text/plain", "body": {"data": text}}],
        },
    }
    adapter = GmailAdapter(transport=transport(lambda request: httpx.Response(200, json=message)))

    payload = await adapter.execute("getMessage", {"message_id": "m1"}, make_credential(provider=Provider.GMAIL))

    assert payload["message"]["body"] == "See you at noon"
    assert payload["message"]["recipient"] == "bob@example.com"


@pytest.mark.asyncio
async def test_gmail_send_message_builds_raw_mime():
    mock = transport(lambda request: httpx.Response(200, json={"id": "sent1", "threadId": "t9"}))
    adapter = GmailAdapter(transport=mock)

    payload = await adapter.execute(
        "sendMessage",
        {"to": "bob@example.com", "subject": "Hi", "body": "Running late"},
        make_credential(provider=Provider.GMAIL),
    )

    assert payload == {"id": "sent1", "thread_id": "t9", "sent": True}
    raw = json.loads(mock.requests[0].content)["raw"]
    mime = base64.urlsafe_b64decode(raw).decode()
    assert "to: bob@example.com" in mime
    assert "subject: Hi" in mime


@pytest.mark.asyncio
async def test_gmail_send_rejects_bad_address():
    mock = transport(lambda request: httpx.Response(200, json={}))
    adapter = GmailAdapter(transport=mock)

    with pytest.raises(ValidationError):
        await adapter.execute("sendMessage", {"to": "bob", "body": "hi"}, make_credential(provider=Provider.GMAIL))
    assert mock.requests == []


@pytest.mark.asyncio
async def test_youtube_search_skips_non_video_results():
    results = {"items": [
        {"id": {"kind": "youtube#channel", "channelId": "c1"}, "snippet": {"title": "A channel"}},
        {"id": {"videoId": "dQw4w9WgXcQ"}, "snippet": {
            "title": "Cat compilation", "channelTitle": "Cats",
            "thumbnails": {"default": {"url": "https://i.ytimg.com/vi/dQw4w9WgXcQ/default.jpg"}},
        }},
    ]}
    adapter = YouTubeAdapter(transport=transport(lambda request: httpx.Response(200, json=results)))

    payload = await adapter.execute("search", {"query": "cats"}, make_credential(provider=Provider.YOUTUBE))

    assert payload["count"] == 1
    video = payload["videos"][0]
    assert video["url"] == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
    assert video["thumbnail"].endswith("default.jpg")


@pytest.mark.asyncio
async def test_youtube_missing_video_is_validation_error():
    adapter = YouTubeAdapter(transport=transport(lambda request: httpx.Response(200, json={"items": []})))

    with pytest.raises(ValidationError):
        await adapter.execute("getVideo", {"video_id": "xxxxxxxxxxx"}, make_credential(provider=Provider.YOUTUBE))


@pytest.mark.asyncio
async def test_youtube_create_playlist():
    created = {"id": "PL1", "snippet": {"title": "Road Trip"}, "status": {"privacyStatus": "private"}}
    mock = transport(lambda request: httpx.Response(200, json=created))
    adapter = YouTubeAdapter(transport=mock)

    payload = await adapter.execute("createPlaylist", {"title": "Road Trip"}, make_credential(provider=Provider.YOUTUBE))

    assert payload["playlist"]["url"] == "https://www.youtube.com/playlist?list=PL1"
    assert mock.requests[0].url.params["part"] == "snippet,status"


@pytest.mark.asyncio
async def test_amazon_play_resolves_best_match_with_api_key():
    tracks = {"tracks": {"items": [
        {"id": "t1", "title": "So What", "artists": [{"name": "Miles Davis"}], "album": {"title": "Kind of Blue"}},
    ]}}
    mock = transport(lambda request: httpx.Response(200, json=tracks))
    adapter = AmazonMusicAdapter(api_key="music-key", transport=mock)

    payload = await adapter.execute(
        "play", {"query": "so what"}, make_credential(provider=Provider.AMAZON_MUSIC)
    )

    assert payload["action"] == "play"
    assert payload["track"]["artist"] == "Miles Davis"
    assert payload["track"]["album"] == "Kind of Blue"
    request = mock.requests[0]
    assert request.headers["x-api-key"] == "music-key"
    assert request.url.params["keywords"] == "so what"
    assert request.url.params["limit"] == "1"


@pytest.mark.asyncio
async def test_amazon_play_with_no_match_is_validation_error():
    adapter = AmazonMusicAdapter(transport=transport(lambda request: httpx.Response(200, json={"tracks": []})))

    with pytest.raises(ValidationError):
        await adapter.execute("play", {"query": "zzzz"}, make_credential(provider=Provider.AMAZON_MUSIC))


@pytest.mark.asyncio
async def test_amazon_playlists():
    body = {"playlists": [{"id": "p1", "title": "Focus", "trackCount": 12}]}
    adapter = AmazonMusicAdapter(transport=transport(lambda request: httpx.Response(200, json=body)))

    payload = await adapter.execute("getPlaylists", {}, make_credential(provider=Provider.AMAZON_MUSIC))

    assert payload == {
        "playlists": [{"id": "p1", "title": "Focus", "track_count": 12, "url": None}],
        "count": 1,
    }
