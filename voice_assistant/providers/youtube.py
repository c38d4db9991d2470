"""YouTube Data API adapter."""

from typing import Any

from pydantic import BaseModel

from voice_assistant.errors import ValidationError
from voice_assistant.models import Credential, Provider

from .base import BaseAdapter, Handler, require

YOUTUBE_API = "https://www.googleapis.com/youtube/v3"
PRIVACY_STATUSES = ("private", "unlisted", "public")


class Video(BaseModel):
    id: str
    title: str
    channel: str
    url: str
    description: str | None = None
    thumbnail: str | None = None


class VideoDetail(Video):
    duration: str | None = None
    view_count: int | None = None


def _thumbnail(snippet: dict) -> str | None:
    thumbs = snippet.get("thumbnails") or {}
    for size in ("high", "medium", "default"):
        if thumbs.get(size, {}).get("url"):
            return thumbs[size]["url"]
    return None


def _watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


class YouTubeAdapter(BaseAdapter):
    api_name = "YouTube"

    @property
    def provider(self) -> Provider:
        return Provider.YOUTUBE

    def handlers(self) -> dict[str, Handler]:
        return {
            "search": self.search,
            "getVideo": self.get_video,
            "createPlaylist": self.create_playlist,
        }

    async def search(self, params: dict[str, Any], credential: Credential) -> dict:
        require(params, "query")
        try:
            max_results = min(max(int(params.get("max_results", 5)), 1), 25)
        except (TypeError, ValueError):
            raise ValidationError("max_results must be a number")

        response = await self._request(
            "GET",
            f"{YOUTUBE_API}/search",
            credential,
            params={
                "part": "snippet",
                "type": "video",
                "q": params["query"],
                "maxResults": max_results,
            },
        )

        videos = []
        for item in response.json().get("items", []):
            video_id = item.get("id", {}).get("videoId")
            if not video_id:
                continue
            snippet = item.get("snippet", {})
            videos.append(Video(
                id=video_id,
                title=snippet.get("title", "(No title)"),
                channel=snippet.get("channelTitle", "Unknown"),
                url=_watch_url(video_id),
                description=snippet.get("description"),
                thumbnail=_thumbnail(snippet),
            ))

        return {
            "query": params["query"],
            "videos": [v.model_dump() for v in videos],
            "count": len(videos),
        }

    async def get_video(self, params: dict[str, Any], credential: Credential) -> dict:
        require(params, "video_id")

        response = await self._request(
            "GET",
            f"{YOUTUBE_API}/videos",
            credential,
            params={"part": "snippet,contentDetails,statistics", "id": params["video_id"]},
        )

        items = response.json().get("items", [])
        if not items:
            raise ValidationError(f"Video not found: {params['video_id']}")

        item = items[0]
        snippet = item.get("snippet", {})
        views = item.get("statistics", {}).get("viewCount")
        video = VideoDetail(
            id=item["id"],
            title=snippet.get("title", "(No title)"),
            channel=snippet.get("channelTitle", "Unknown"),
            url=_watch_url(item["id"]),
            description=snippet.get("description"),
            thumbnail=_thumbnail(snippet),
            duration=item.get("contentDetails", {}).get("duration"),
            view_count=int(views) if views is not None else None,
        )
        return {"video": video.model_dump()}

    async def create_playlist(self, params: dict[str, Any], credential: Credential) -> dict:
        require(params, "title")
        privacy = params.get("privacy") or "private"
        if privacy not in PRIVACY_STATUSES:
            raise ValidationError(f"privacy must be one of: {', '.join(PRIVACY_STATUSES)}")

        response = await self._request(
            "POST",
            f"{YOUTUBE_API}/playlists",
            credential,
            params={"part": "snippet,status"},
            json={
                "snippet": {
                    "title": params["title"],
                    "description": params.get("description") or "",
                },
                "status": {"privacyStatus": privacy},
            },
        )

        data = response.json()
        return {
            "playlist": {
                "id": data.get("id", ""),
                "title": data.get("snippet", {}).get("title", params["title"]),
                "privacy": data.get("status", {}).get("privacyStatus", privacy),
                "url": f"https://www.youtube.com/playlist?list={data.get('id', '')}",
            }
        }
