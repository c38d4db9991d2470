"""
Provider Adapters

One adapter per external service, all exposing the same execute contract.
"""

from .amazon_music import AmazonMusicAdapter
from .base import BaseAdapter
from .calendar import GoogleCalendarAdapter
from .gmail import GmailAdapter
from .youtube import YouTubeAdapter

__all__ = [
    "BaseAdapter",
    "AmazonMusicAdapter",
    "GmailAdapter",
    "GoogleCalendarAdapter",
    "YouTubeAdapter",
]
