"""yt-dlp based channel listing, used when the Data API path is unavailable."""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import urlparse

import yt_dlp

from youtube.durations import DEFAULT_DURATION, coerce_duration

logger = logging.getLogger(__name__)

# Allowlisted YouTube thumbnail CDN hostnames (single source of truth)
THUMB_ALLOWED_HOSTS = frozenset({
    "i.ytimg.com", "i1.ytimg.com", "i2.ytimg.com", "i3.ytimg.com",
    "i4.ytimg.com", "i9.ytimg.com", "img.youtube.com",
})

VIDEO_ID_RE = re.compile(r'^[a-zA-Z0-9_-]{11}$')
CHANNEL_ID_RE = re.compile(r'^UC[a-zA-Z0-9_-]{22}$')


class ExtractorError(Exception):
    """yt-dlp could not list the requested channel or search."""


def safe_thumbnail(url: Optional[str], video_id: str) -> str:
    """Return the thumbnail URL if it's from an allowlisted host, else use ytimg fallback."""
    if url:
        try:
            parsed = urlparse(url)
            if parsed.scheme == "https" and parsed.hostname in THUMB_ALLOWED_HOSTS:
                return url
        except ValueError:
            pass
    if video_id and VIDEO_ID_RE.match(video_id):
        return f"https://i.ytimg.com/vi/{video_id}/mqdefault.jpg"
    return ""


def channel_uploads_url(channel_id: str) -> str:
    """Public uploads listing for a channel (also the passive-playback fallback)."""
    return f"https://www.youtube.com/channel/{channel_id}/videos"


def _ydl_opts(timeout: int, max_results: int) -> dict:
    """Common yt-dlp options - flat listing, no download."""
    return {
        'quiet': True,
        'no_warnings': True,
        'extract_flat': True,
        'skip_download': True,
        'ignore_no_formats_error': True,
        'socket_timeout': timeout,
        'playlistend': max_results,
    }


def _entry_to_item(entry: dict, default_duration: int) -> Optional[dict]:
    vid_id = entry.get('id')
    if not vid_id or not VIDEO_ID_RE.match(vid_id):
        return None  # skip channels/playlists mixed into listings
    return {
        'video_id': vid_id,
        'title': entry.get('title') or 'Unknown',
        'duration': coerce_duration(entry.get('duration'), default_duration),
        'thumbnail_url': safe_thumbnail(entry.get('thumbnail'), vid_id),
    }


def list_channel_uploads(channel_id: str, max_results: int = 50, timeout: int = 30,
                         default_duration: int = DEFAULT_DURATION) -> list[dict]:
    """List a channel's uploads tab. Blocking; raises ExtractorError on failure."""
    try:
        with yt_dlp.YoutubeDL(_ydl_opts(timeout, max_results)) as ydl:
            results = ydl.extract_info(channel_uploads_url(channel_id), download=False)
    except yt_dlp.utils.DownloadError as e:
        raise ExtractorError(f"uploads listing failed for {channel_id}: {e}") from e
    if not results or 'entries' not in results:
        return []
    items = []
    for entry in results['entries']:
        if not entry:
            continue
        item = _entry_to_item(entry, default_duration)
        if item:
            items.append(item)
        if len(items) >= max_results:
            break
    return items


def search_channel_videos(channel_name: str, channel_id: str = "", max_results: int = 50,
                          timeout: int = 30, default_duration: int = DEFAULT_DURATION) -> list[dict]:
    """Keyword search for a channel's videos, keeping only entries from that channel.

    Blocking; raises ExtractorError on failure.
    """
    try:
        with yt_dlp.YoutubeDL(_ydl_opts(timeout, max_results * 2)) as ydl:
            results = ydl.extract_info(f"ytsearch{max_results * 2}:{channel_name}", download=False)
    except yt_dlp.utils.DownloadError as e:
        raise ExtractorError(f"search failed for '{channel_name}': {e}") from e
    if not results or 'entries' not in results:
        return []
    items = []
    for entry in results['entries']:
        if not entry:
            continue
        if channel_id and entry.get('channel_id'):
            if entry['channel_id'] != channel_id:
                continue
        else:
            entry_channel = entry.get('channel') or entry.get('uploader') or ''
            if entry_channel.lower() != channel_name.lower():
                continue
        item = _entry_to_item(entry, default_duration)
        if item:
            items.append(item)
        if len(items) >= max_results:
            break
    return items
