"""Amazon Music Web API adapter.

Playback happens on the user's device: ``play`` resolves a track (by id or by
the best search match) and returns what the device needs to start it.
"""

from typing import Any

import httpx
from pydantic import BaseModel

from voice_assistant.errors import ValidationError, parse_amazon_error
from voice_assistant.models import Credential, Provider

from .base import BaseAdapter, Handler, require

AMAZON_MUSIC_API = "https://api.music.amazon.dev/v1"


class Track(BaseModel):
    id: str
    title: str
    artist: str
    album: str | None = None
    url: str | None = None
    duration_seconds: int | None = None


class Playlist(BaseModel):
    id: str
    title: str
    track_count: int | None = None
    url: str | None = None


def _items(data: dict, *keys: str) -> list[dict]:
    """The Music API nests result lists under varying keys."""
    for key in keys:
        value = data.get(key)
        if isinstance(value, dict):
            value = value.get("items") or value.get("edges")
        if isinstance(value, list):
            return [v.get("node", v) for v in value if isinstance(v, dict)]
    return []


def _parse_track(item: dict) -> Track:
    artists = item.get("artists") or []
    if artists and isinstance(artists[0], dict):
        artist = artists[0].get("name", "Unknown artist")
    else:
        artist = item.get("artist") or "Unknown artist"
    album = item.get("album")
    if isinstance(album, dict):
        album = album.get("title")
    duration = item.get("duration") or item.get("durationSeconds")

    return Track(
        id=str(item.get("id", "")),
        title=item.get("title", "(No title)"),
        artist=artist,
        album=album,
        url=item.get("url") or item.get("shortUrl"),
        duration_seconds=int(duration) if duration is not None else None,
    )


class AmazonMusicAdapter(BaseAdapter):
    api_name = "Amazon Music"

    def __init__(self, api_key: str = "", **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    @property
    def provider(self) -> Provider:
        return Provider.AMAZON_MUSIC

    def handlers(self) -> dict[str, Handler]:
        return {
            "search": self.search,
            "play": self.play,
            "getPlaylists": self.get_playlists,
        }

    def _auth_headers(self, credential: Credential) -> dict:
        headers = super()._auth_headers(credential)
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    def _describe_error(self, response: httpx.Response) -> str:
        return parse_amazon_error(response.text)

    async def _search_tracks(self, query: str, limit: int, credential: Credential) -> list[Track]:
        response = await self._request(
            "GET",
            f"{AMAZON_MUSIC_API}/search/tracks",
            credential,
            params={"keywords": query, "limit": limit},
        )
        return [_parse_track(item) for item in _items(response.json(), "tracks", "items", "data")]

    async def search(self, params: dict[str, Any], credential: Credential) -> dict:
        require(params, "query")
        try:
            limit = min(max(int(params.get("limit", 10)), 1), 50)
        except (TypeError, ValueError):
            raise ValidationError("limit must be a number")

        tracks = await self._search_tracks(params["query"], limit, credential)
        return {
            "query": params["query"],
            "tracks": [t.model_dump() for t in tracks],
            "count": len(tracks),
        }

    async def play(self, params: dict[str, Any], credential: Credential) -> dict:
        if params.get("track_id"):
            response = await self._request(
                "GET",
                f"{AMAZON_MUSIC_API}/tracks/{params['track_id']}",
                credential,
            )
            data = response.json()
            track = _parse_track(data.get("track", data))
        else:
            require(params, "query")
            tracks = await self._search_tracks(params["query"], 1, credential)
            if not tracks:
                raise ValidationError(f"No tracks found for '{params['query']}'")
            track = tracks[0]

        return {
            "action": "play",
            "track": track.model_dump(),
            "device_id": params.get("device_id"),
        }

    async def get_playlists(self, params: dict[str, Any], credential: Credential) -> dict:
        response = await self._request(
            "GET",
            f"{AMAZON_MUSIC_API}/me/playlists",
            credential,
            params={"limit": 50},
        )

        playlists = []
        for item in _items(response.json(), "playlists", "items", "data"):
            count = item.get("trackCount")
            playlists.append(Playlist(
                id=str(item.get("id", "")),
                title=item.get("title", "(Untitled)"),
                track_count=int(count) if count is not None else None,
                url=item.get("url") or item.get("shortUrl"),
            ))

        return {"playlists": [p.model_dump() for p in playlists], "count": len(playlists)}
