"""Channel -> playable queue resolution.

Primary path uses the YouTube Data API (uploads playlist + batched duration
lookup). Any failure, or an empty uploads playlist, falls back to yt-dlp
listing the channel's uploads tab, then a keyword search by channel name.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Union, runtime_checkable

import httpx

from config import YouTubeConfig
from youtube import extractor
from youtube.durations import parse_iso_duration

logger = logging.getLogger(__name__)

API_BASE = "https://www.googleapis.com/youtube/v3"
_MAX_IDS_PER_CALL = 50  # Data API limit for videos?id=


@dataclass(frozen=True)
class QueueItems:
    """Resolution produced at least one playable item, in play order."""
    items: tuple


@dataclass(frozen=True)
class QueueEmpty:
    """Every strategy ran and found nothing to play."""


@dataclass(frozen=True)
class QueueFailed:
    """Resolution could not be carried out at all."""
    reason: str


QueueResult = Union[QueueItems, QueueEmpty, QueueFailed]


class PrimaryResolutionError(Exception):
    """The Data API path could not produce a queue."""


@runtime_checkable
class VideoSourceProtocol(Protocol):
    """Anything that can turn a channel id into a QueueResult (test fakes included)."""

    async def resolve_queue(self, channel_id: str, channel_name: str = "") -> QueueResult: ...


class VideoSource:
    """Resolves a channel into an ordered, finite list of playable items."""

    def __init__(self, config: Optional[YouTubeConfig] = None,
                 client: Optional[httpx.AsyncClient] = None):
        self.config = config or YouTubeConfig()
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.http_timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def resolve_queue(self, channel_id: str, channel_name: str = "") -> QueueResult:
        """Resolve `channel_id` to a QueueResult. Never raises for platform errors."""
        try:
            items = await self._resolve_primary(channel_id)
            if items:
                logger.info("Resolved %d items for %s via Data API", len(items), channel_id)
                return QueueItems(tuple(items))
            logger.info("Uploads playlist empty for %s, falling back", channel_id)
        except Exception as e:
            logger.warning("Primary resolution failed for %s: %s, falling back", channel_id, e)

        try:
            items = await self._resolve_fallback(channel_id, channel_name)
        except Exception as e:
            logger.error("Fallback resolution failed for %s: %s", channel_id, e)
            return QueueFailed(reason=str(e) or type(e).__name__)

        if not items:
            logger.info("No playable items found for %s", channel_id)
            return QueueEmpty()
        logger.info("Resolved %d items for %s via fallback", len(items), channel_id)
        return QueueItems(tuple(items))

    # --- Data API path ---

    async def _api_get(self, endpoint: str, **params) -> dict:
        params["key"] = self.config.api_key
        resp = await self._get_client().get(f"{API_BASE}/{endpoint}", params=params)
        resp.raise_for_status()
        return resp.json()

    async def _resolve_primary(self, channel_id: str) -> list[dict]:
        if not self.config.api_key:
            raise PrimaryResolutionError("no API key configured")

        data = await self._api_get("channels", part="contentDetails", id=channel_id)
        found = data.get("items") or []
        if not found:
            raise PrimaryResolutionError(f"channel {channel_id} not found")
        uploads_id = (
            found[0].get("contentDetails", {}).get("relatedPlaylists", {}).get("uploads")
        )
        if not uploads_id:
            raise PrimaryResolutionError(f"channel {channel_id} has no uploads playlist")

        cap = self.config.max_items
        entries: list[dict] = []
        seen: set[str] = set()
        page_token = None
        while len(entries) < cap:
            params = {
                "part": "snippet,contentDetails",
                "playlistId": uploads_id,
                "maxResults": min(self.config.page_size, cap - len(entries)),
            }
            if page_token:
                params["pageToken"] = page_token
            page = await self._api_get("playlistItems", **params)
            for item in page.get("items") or []:
                vid = (item.get("contentDetails") or {}).get("videoId")
                if not vid or vid in seen:
                    continue
                seen.add(vid)
                snippet = item.get("snippet") or {}
                thumbs = snippet.get("thumbnails") or {}
                thumb = (thumbs.get("medium") or thumbs.get("default") or {}).get("url")
                entries.append({
                    "video_id": vid,
                    "title": snippet.get("title") or "Unknown",
                    "thumbnail_url": extractor.safe_thumbnail(thumb, vid),
                })
                if len(entries) >= cap:
                    break
            page_token = page.get("nextPageToken")
            if not page_token:
                break

        if not entries:
            return []

        durations = await self._fetch_durations([e["video_id"] for e in entries])
        default = self.config.default_duration
        return [
            {
                "video_id": e["video_id"],
                "title": e["title"],
                "duration": durations.get(e["video_id"], default),
                "thumbnail_url": e["thumbnail_url"],
            }
            for e in entries
        ]

    async def _fetch_durations(self, video_ids: list[str]) -> dict[str, int]:
        """Batched duration lookup. Failed chunks are left out (callers default them)."""
        default = self.config.default_duration
        durations: dict[str, int] = {}
        for start in range(0, len(video_ids), _MAX_IDS_PER_CALL):
            chunk = video_ids[start:start + _MAX_IDS_PER_CALL]
            try:
                data = await self._api_get("videos", part="contentDetails", id=",".join(chunk))
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("Duration lookup failed for %d items: %s", len(chunk), e)
                continue
            for item in data.get("items") or []:
                vid = item.get("id")
                raw = (item.get("contentDetails") or {}).get("duration")
                if vid:
                    durations[vid] = parse_iso_duration(raw, default)
        return durations

    # --- yt-dlp path ---

    async def _resolve_fallback(self, channel_id: str, channel_name: str) -> list[dict]:
        cfg = self.config

        def _fetch():
            items = extractor.list_channel_uploads(
                channel_id, max_results=cfg.max_items, timeout=cfg.ydl_timeout,
                default_duration=cfg.default_duration,
            )
            if items or not channel_name:
                return items
            return extractor.search_channel_videos(
                channel_name, channel_id=channel_id, max_results=cfg.max_items,
                timeout=cfg.ydl_timeout, default_duration=cfg.default_duration,
            )

        try:
            return await asyncio.wait_for(asyncio.to_thread(_fetch), timeout=cfg.ydl_timeout * 2)
        except asyncio.TimeoutError as e:
            raise extractor.ExtractorError(f"fallback timed out for {channel_id}") from e
