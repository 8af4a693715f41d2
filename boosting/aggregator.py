"""View recording and derived per-user statistics."""

import logging
from typing import Optional

from data.boost_store import BoostStore
from utils import percentage

logger = logging.getLogger(__name__)


class ViewStatNotFound(LookupError):
    """A geo record referenced a view stat that does not exist."""


class ViewCountAggregator:
    """Appends counted views and computes aggregates on read.

    Holds no state of its own; every read goes through the store.
    """

    def __init__(self, store: BoostStore):
        self._store = store

    def record_view(self, user_id: int, channel_id: str, video_id: str, duration: int) -> dict:
        """Append a ViewStat. At-most-once per play-through is the caller's job."""
        stat = self._store.add_view_stat(user_id, channel_id, video_id, duration)
        logger.info("View counted: user=%s channel=%s video=%s (%ss)",
                    user_id, channel_id, video_id, stat["view_duration"])
        return stat

    def record_geo(self, view_stat_id: int, user_id: int, channel_id: str,
                   country: Optional[str] = None, region: Optional[str] = None,
                   city: Optional[str] = None, device_type: Optional[str] = None,
                   browser: Optional[str] = None) -> dict:
        """Append a GeoViewStat for an existing ViewStat."""
        if not self._store.get_view_stat(view_stat_id):
            raise ViewStatNotFound(f"view stat {view_stat_id} not found")
        return self._store.add_geo_view_stat(
            view_stat_id, user_id, channel_id,
            country=country, region=region, city=city,
            device_type=device_type, browser=browser,
        )

    def compute_user_stats(self, user_id: int) -> dict:
        totals = self._store.get_view_totals(user_id)
        total_views = totals["total_views"]
        by_channel = []
        if total_views > 0:
            for row in self._store.get_views_by_channel(user_id):
                by_channel.append({
                    "channel_id": row["channel_id"],
                    "channel_name": row["channel_name"] or row["channel_id"],
                    "views": row["views"],
                    "percentage": percentage(row["views"], total_views),
                })
            by_channel.sort(key=lambda r: r["views"], reverse=True)
        return {
            "total_views": total_views,
            "channels_supported": totals["channels_supported"],
            "session_time": totals["session_time"],
            "views_by_channel": by_channel,
        }

    def compute_geo_metrics(self, user_id: int) -> list[dict]:
        total = self._store.count_geo_views(user_id)
        if total == 0:
            return []
        return [
            {
                "country": row["country"] or "Unknown",
                "count": row["count"],
                "percentage": percentage(row["count"], total),
            }
            for row in self._store.get_geo_counts_by_country(user_id)
        ]

    def compute_device_metrics(self, user_id: int) -> list[dict]:
        total = self._store.count_geo_views(user_id)
        if total == 0:
            return []
        return [
            {
                "device_type": row["device_type"] or "Unknown",
                "browser": row["browser"],
                "count": row["count"],
                "percentage": percentage(row["count"], total),
            }
            for row in self._store.get_geo_counts_by_device(user_id)
        ]
