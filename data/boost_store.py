"""
SQLite-backed storage for ChannelBooster.
Tracks channels, users, boosting sessions with their queues, append-only
view statistics, content calendar entries and channel recommendations.
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Optional
from urllib.parse import quote

from boosting.errors import InvalidArgument, StorageFailure, UserConflict
from youtube.extractor import safe_thumbnail

logger = logging.getLogger(__name__)

CALENDAR_STATUSES = ("scheduled", "in-progress", "completed", "cancelled")

_CALENDAR_FIELDS = {"title", "description", "scheduled_date", "channel_id", "video_ids", "status"}


def _channel_avatar(channel_id: str) -> str:
    return f"https://ui-avatars.com/api/?name={quote(channel_id)}&background=random"


class BoostStore:
    """SQLite database for boosting sessions and view statistics."""

    def __init__(self, db_path: str = "db/boost.db"):
        """Initialize database connection and create schema."""
        db_file = Path(db_path)
        db_file.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        self._tx_depth = 0
        self.conn = sqlite3.connect(db_file, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._create_tables()

    def _create_tables(self) -> None:
        """Create all tables if they don't exist."""
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS channels (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                channel_id TEXT NOT NULL UNIQUE,
                name TEXT NOT NULL,
                description TEXT,
                thumbnail_url TEXT,
                banner_url TEXT,
                category TEXT,
                is_verified INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL,
                email TEXT NOT NULL UNIQUE,
                provider_id TEXT NOT NULL UNIQUE,
                avatar_url TEXT,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            CREATE TABLE IF NOT EXISTS boosting_sessions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL UNIQUE,
                channel_id TEXT NOT NULL,
                start_time TEXT NOT NULL DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now')),
                last_updated TEXT NOT NULL DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now')),
                active_video_id TEXT,
                videos_watched INTEGER NOT NULL DEFAULT 0
            );
            CREATE TABLE IF NOT EXISTS session_queue (
                user_id INTEGER NOT NULL,
                position INTEGER NOT NULL,
                video_id TEXT NOT NULL,
                title TEXT NOT NULL,
                duration INTEGER NOT NULL,
                thumbnail_url TEXT,
                PRIMARY KEY (user_id, position),
                FOREIGN KEY (user_id) REFERENCES boosting_sessions(user_id) ON DELETE CASCADE
            );
            CREATE TABLE IF NOT EXISTS view_stats (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                channel_id TEXT NOT NULL,
                video_id TEXT NOT NULL,
                view_duration INTEGER NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            CREATE INDEX IF NOT EXISTS idx_view_stats_user ON view_stats(user_id);
            CREATE TABLE IF NOT EXISTS geo_view_stats (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                view_stat_id INTEGER NOT NULL REFERENCES view_stats(id),
                user_id INTEGER NOT NULL,
                channel_id TEXT NOT NULL,
                country TEXT,
                region TEXT,
                city TEXT,
                device_type TEXT,
                browser TEXT,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            CREATE INDEX IF NOT EXISTS idx_geo_view_stats_user ON geo_view_stats(user_id);
            CREATE TABLE IF NOT EXISTS content_calendar (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                title TEXT NOT NULL,
                description TEXT,
                scheduled_date TEXT NOT NULL,
                channel_id TEXT NOT NULL,
                video_ids TEXT NOT NULL DEFAULT '[]',
                status TEXT NOT NULL DEFAULT 'scheduled',
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            CREATE INDEX IF NOT EXISTS idx_calendar_user ON content_calendar(user_id);
            CREATE TABLE IF NOT EXISTS channel_recommendations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                channel_id TEXT NOT NULL,
                impact_score REAL NOT NULL,
                views_potential INTEGER NOT NULL,
                views_actual INTEGER NOT NULL DEFAULT 0,
                category TEXT,
                recommendation_date TEXT NOT NULL DEFAULT (datetime('now')),
                last_engaged TEXT
            );
            CREATE INDEX IF NOT EXISTS idx_recommendations_user ON channel_recommendations(user_id);
        """)
        self.conn.commit()

    # --- Locking / transactions ---

    @contextmanager
    def _locked(self) -> Iterator[sqlite3.Connection]:
        """Hold the store lock; sqlite errors become StorageFailure."""
        with self._lock:
            try:
                yield self.conn
            except sqlite3.Error as e:
                if self._tx_depth == 0:
                    self.conn.rollback()
                logger.error("Storage error: %s", e)
                raise StorageFailure(str(e)) from e

    def _commit(self) -> None:
        """Commit unless an outer transaction() owns the commit."""
        if self._tx_depth == 0:
            self.conn.commit()

    @contextmanager
    def transaction(self) -> Iterator["BoostStore"]:
        """Group several store writes into one atomic SQLite transaction."""
        with self._lock:
            self._tx_depth += 1
            try:
                yield self
            except BaseException:
                self._tx_depth -= 1
                if self._tx_depth == 0:
                    self.conn.rollback()
                raise
            self._tx_depth -= 1
            if self._tx_depth == 0:
                try:
                    self.conn.commit()
                except sqlite3.Error as e:
                    self.conn.rollback()
                    raise StorageFailure(str(e)) from e

    # --- Channels ---

    def create_channel(self, channel_id: str, name: str, description: Optional[str] = None,
                       thumbnail_url: Optional[str] = None, banner_url: Optional[str] = None,
                       category: Optional[str] = None, is_verified: bool = True) -> dict:
        """Insert a channel. Existing channels are left untouched and returned."""
        with self._locked() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO channels
                    (channel_id, name, description, thumbnail_url, banner_url, category, is_verified)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (channel_id, name, description, thumbnail_url, banner_url, category, int(is_verified)),
            )
            self._commit()
            return self._get_channel_unlocked(channel_id)

    def _get_channel_unlocked(self, channel_id: str) -> Optional[dict]:
        cursor = self.conn.execute("SELECT * FROM channels WHERE channel_id = ?", (channel_id,))
        row = cursor.fetchone()
        if not row:
            return None
        channel = dict(row)
        channel["is_verified"] = bool(channel["is_verified"])
        return channel

    def get_channel(self, channel_id: str) -> Optional[dict]:
        """Get a channel by its platform id."""
        with self._locked():
            return self._get_channel_unlocked(channel_id)

    def get_verified_channels(self) -> list[dict]:
        with self._locked() as conn:
            cursor = conn.execute(
                "SELECT * FROM channels WHERE is_verified = 1 ORDER BY id"
            )
            return [{**dict(row), "is_verified": True} for row in cursor.fetchall()]

    def ensure_channel(self, channel_id: str, name: Optional[str] = None) -> dict:
        """Return a channel, creating an unverified placeholder on first reference."""
        with self._locked():
            existing = self._get_channel_unlocked(channel_id)
            if existing:
                return existing
            logger.info("Registering unknown channel %s on first reference", channel_id)
            return self.create_channel(channel_id, name or channel_id, is_verified=False)

    def set_channel_verified(self, channel_id: str, verified: bool) -> bool:
        """Flip the verification flag, the only mutable channel field."""
        with self._locked() as conn:
            cursor = conn.execute(
                "UPDATE channels SET is_verified = ? WHERE channel_id = ?",
                (int(verified), channel_id),
            )
            self._commit()
            return cursor.rowcount > 0

    # --- Users ---

    def get_user(self, user_id: int) -> Optional[dict]:
        with self._locked() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return dict(row) if row else None

    def get_or_create_user(self, provider_id: str, email: str, username: str,
                           avatar_url: Optional[str] = None) -> tuple[dict, bool]:
        """Look up a user by identity-provider id, creating it if missing.

        Returns (user, created). Raises UserConflict when the email already
        belongs to a user with a different provider id.
        """
        with self._locked() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE provider_id = ?", (provider_id,)
            ).fetchone()
            if row:
                return dict(row), False
            if conn.execute("SELECT 1 FROM users WHERE email = ?", (email,)).fetchone():
                logger.warning("Rejected identity %s: email already linked", provider_id)
                raise UserConflict(email)
            cursor = conn.execute(
                "INSERT INTO users (username, email, provider_id, avatar_url) VALUES (?, ?, ?, ?)",
                (username, email, provider_id, avatar_url),
            )
            self._commit()
            row = conn.execute("SELECT * FROM users WHERE id = ?", (cursor.lastrowid,)).fetchone()
            return dict(row), True

    # --- Boosting sessions ---

    def get_session(self, user_id: int) -> Optional[dict]:
        """Get the user's boosting session row, or None."""
        with self._locked() as conn:
            row = conn.execute(
                "SELECT * FROM boosting_sessions WHERE user_id = ?", (user_id,)
            ).fetchone()
            return dict(row) if row else None

    def get_session_queue(self, user_id: int) -> list[dict]:
        """Queue items for the user's session, in play order."""
        with self._locked() as conn:
            cursor = conn.execute(
                "SELECT position, video_id, title, duration, thumbnail_url "
                "FROM session_queue WHERE user_id = ? ORDER BY position",
                (user_id,),
            )
            return [dict(row) for row in cursor.fetchall()]

    def replace_session(self, user_id: int, channel_id: str, items: Iterable[dict]) -> dict:
        """Atomically drop any existing session for the user and store a new one.

        The first item becomes the active item; `items` must be non-empty.
        """
        items = list(items)
        if not items:
            raise ValueError("cannot start a session with an empty queue")
        with self.transaction(), self._locked() as conn:
            conn.execute("DELETE FROM session_queue WHERE user_id = ?", (user_id,))
            conn.execute("DELETE FROM boosting_sessions WHERE user_id = ?", (user_id,))
            conn.execute(
                "INSERT INTO boosting_sessions (user_id, channel_id, active_video_id, videos_watched) "
                "VALUES (?, ?, ?, 0)",
                (user_id, channel_id, items[0]["video_id"]),
            )
            conn.executemany(
                "INSERT INTO session_queue (user_id, position, video_id, title, duration, thumbnail_url) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (user_id, pos, it["video_id"], it.get("title") or "Unknown",
                     int(it.get("duration") or 0),
                     safe_thumbnail(it.get("thumbnail_url"), it["video_id"]) or None)
                    for pos, it in enumerate(items)
                ],
            )
            row = conn.execute(
                "SELECT * FROM boosting_sessions WHERE user_id = ?", (user_id,)
            ).fetchone()
            return dict(row)

    def advance_session(self, user_id: int, active_video_id: Optional[str],
                        videos_watched: int) -> Optional[dict]:
        """Move the session to its next item. Returns the updated row or None."""
        with self._locked() as conn:
            cursor = conn.execute(
                """
                UPDATE boosting_sessions
                SET active_video_id = ?, videos_watched = ?,
                    last_updated = strftime('%Y-%m-%d %H:%M:%f', 'now')
                WHERE user_id = ?
                """,
                (active_video_id, videos_watched, user_id),
            )
            self._commit()
            if cursor.rowcount == 0:
                return None
            row = conn.execute(
                "SELECT * FROM boosting_sessions WHERE user_id = ?", (user_id,)
            ).fetchone()
            return dict(row)

    def delete_session(self, user_id: int) -> bool:
        """Delete the user's session and its queue. Returns True if one existed."""
        with self._locked() as conn:
            conn.execute("DELETE FROM session_queue WHERE user_id = ?", (user_id,))
            cursor = conn.execute("DELETE FROM boosting_sessions WHERE user_id = ?", (user_id,))
            self._commit()
            return cursor.rowcount > 0

    def count_sessions(self, user_id: Optional[int] = None) -> int:
        with self._locked() as conn:
            if user_id is None:
                row = conn.execute("SELECT COUNT(*) FROM boosting_sessions").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM boosting_sessions WHERE user_id = ?", (user_id,)
                ).fetchone()
            return row[0]

    # --- View stats (append-only) ---

    def add_view_stat(self, user_id: int, channel_id: str, video_id: str,
                      view_duration: int) -> dict:
        """Append one counted view."""
        with self._locked() as conn:
            cursor = conn.execute(
                "INSERT INTO view_stats (user_id, channel_id, video_id, view_duration) "
                "VALUES (?, ?, ?, ?)",
                (user_id, channel_id, video_id, max(int(view_duration), 0)),
            )
            self._commit()
            row = conn.execute(
                "SELECT * FROM view_stats WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
            return dict(row)

    def get_view_stat(self, view_stat_id: int) -> Optional[dict]:
        with self._locked() as conn:
            row = conn.execute("SELECT * FROM view_stats WHERE id = ?", (view_stat_id,)).fetchone()
            return dict(row) if row else None

    def get_view_totals(self, user_id: int) -> dict:
        """Total views, watched seconds and distinct channels for a user."""
        with self._locked() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS total_views,
                       COALESCE(SUM(view_duration), 0) AS session_time,
                       COUNT(DISTINCT channel_id) AS channels_supported
                FROM view_stats WHERE user_id = ?
                """,
                (user_id,),
            ).fetchone()
            return dict(row)

    def get_views_by_channel(self, user_id: int) -> list[dict]:
        """Per-channel view counts with the channel name when known."""
        with self._locked() as conn:
            cursor = conn.execute(
                """
                SELECT v.channel_id, c.name AS channel_name, COUNT(*) AS views
                FROM view_stats v
                LEFT JOIN channels c ON c.channel_id = v.channel_id
                WHERE v.user_id = ?
                GROUP BY v.channel_id
                ORDER BY views DESC, v.channel_id
                """,
                (user_id,),
            )
            return [dict(row) for row in cursor.fetchall()]

    # --- Geo view stats (append-only) ---

    def add_geo_view_stat(self, view_stat_id: int, user_id: int, channel_id: str,
                          country: Optional[str] = None, region: Optional[str] = None,
                          city: Optional[str] = None, device_type: Optional[str] = None,
                          browser: Optional[str] = None) -> dict:
        with self._locked() as conn:
            cursor = conn.execute(
                """
                INSERT INTO geo_view_stats
                    (view_stat_id, user_id, channel_id, country, region, city, device_type, browser)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (view_stat_id, user_id, channel_id, country or None, region or None,
                 city or None, device_type or None, browser or None),
            )
            self._commit()
            row = conn.execute(
                "SELECT * FROM geo_view_stats WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
            return dict(row)

    def count_geo_views(self, user_id: int) -> int:
        with self._locked() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM geo_view_stats WHERE user_id = ?", (user_id,)
            ).fetchone()
            return row[0]

    def get_geo_counts_by_country(self, user_id: int) -> list[dict]:
        with self._locked() as conn:
            cursor = conn.execute(
                """
                SELECT country, COUNT(*) AS count
                FROM geo_view_stats WHERE user_id = ?
                GROUP BY country
                ORDER BY count DESC, country
                """,
                (user_id,),
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_geo_counts_by_device(self, user_id: int) -> list[dict]:
        with self._locked() as conn:
            cursor = conn.execute(
                """
                SELECT device_type, browser, COUNT(*) AS count
                FROM geo_view_stats WHERE user_id = ?
                GROUP BY device_type, browser
                ORDER BY count DESC, device_type, browser
                """,
                (user_id,),
            )
            return [dict(row) for row in cursor.fetchall()]

    # --- Content calendar ---

    @staticmethod
    def _calendar_row(row: sqlite3.Row) -> dict:
        event = dict(row)
        try:
            event["video_ids"] = json.loads(event.get("video_ids") or "[]")
        except ValueError:
            event["video_ids"] = []
        return event

    def create_calendar_event(self, user_id: int, title: str, scheduled_date: str,
                              channel_id: str, description: Optional[str] = None,
                              video_ids: Optional[list[str]] = None,
                              status: str = "scheduled") -> dict:
        if status not in CALENDAR_STATUSES:
            raise InvalidArgument(f"invalid calendar status: {status}")
        with self._locked() as conn:
            cursor = conn.execute(
                """
                INSERT INTO content_calendar
                    (user_id, title, description, scheduled_date, channel_id, video_ids, status)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (user_id, title, description or None, scheduled_date, channel_id,
                 json.dumps(list(video_ids or [])), status),
            )
            self._commit()
            row = conn.execute(
                "SELECT * FROM content_calendar WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
            return self._calendar_row(row)

    def get_calendar_event(self, event_id: int) -> Optional[dict]:
        with self._locked() as conn:
            row = conn.execute(
                "SELECT * FROM content_calendar WHERE id = ?", (event_id,)
            ).fetchone()
            return self._calendar_row(row) if row else None

    def list_calendar_events(self, user_id: int) -> list[dict]:
        """A user's calendar, soonest first, enriched with channel display data."""
        with self._locked() as conn:
            cursor = conn.execute(
                """
                SELECT e.*, c.name AS channel_name, c.thumbnail_url AS channel_thumbnail
                FROM content_calendar e
                LEFT JOIN channels c ON c.channel_id = e.channel_id
                WHERE e.user_id = ?
                ORDER BY e.scheduled_date, e.id
                """,
                (user_id,),
            )
            events = []
            for row in cursor.fetchall():
                event = self._calendar_row(row)
                event["channel_name"] = event["channel_name"] or event["channel_id"]
                event["thumbnail_url"] = (
                    event.pop("channel_thumbnail") or _channel_avatar(event["channel_id"])
                )
                event["video_count"] = len(event["video_ids"])
                events.append(event)
            return events

    def update_calendar_event(self, event_id: int, **fields) -> Optional[dict]:
        """Partial update. Unknown fields raise InvalidArgument. Returns None if missing."""
        unknown = set(fields) - _CALENDAR_FIELDS
        if unknown:
            raise InvalidArgument(f"unknown calendar fields: {sorted(unknown)}")
        if "status" in fields and fields["status"] not in CALENDAR_STATUSES:
            raise InvalidArgument(f"invalid calendar status: {fields['status']}")
        if "video_ids" in fields:
            fields["video_ids"] = json.dumps(list(fields["video_ids"] or []))
        with self._locked() as conn:
            if fields:
                assignments = ", ".join(f'"{name}" = ?' for name in fields)
                cursor = conn.execute(
                    f"UPDATE content_calendar SET {assignments}, updated_at = datetime('now') "
                    "WHERE id = ?",
                    (*fields.values(), event_id),
                )
                self._commit()
                if cursor.rowcount == 0:
                    return None
            row = conn.execute(
                "SELECT * FROM content_calendar WHERE id = ?", (event_id,)
            ).fetchone()
            return self._calendar_row(row) if row else None

    def delete_calendar_event(self, event_id: int) -> bool:
        with self._locked() as conn:
            cursor = conn.execute("DELETE FROM content_calendar WHERE id = ?", (event_id,))
            self._commit()
            return cursor.rowcount > 0

    # --- Channel recommendations ---

    def create_recommendation(self, user_id: int, channel_id: str, impact_score: float,
                              views_potential: int, views_actual: int = 0,
                              category: Optional[str] = None,
                              last_engaged: Optional[str] = None) -> dict:
        with self._locked() as conn:
            cursor = conn.execute(
                """
                INSERT INTO channel_recommendations
                    (user_id, channel_id, impact_score, views_potential, views_actual,
                     category, last_engaged)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (user_id, channel_id, float(impact_score), int(views_potential),
                 int(views_actual), category or None, last_engaged),
            )
            self._commit()
            row = conn.execute(
                "SELECT * FROM channel_recommendations WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
            return dict(row)

    def get_recommendation(self, rec_id: int) -> Optional[dict]:
        with self._locked() as conn:
            row = conn.execute(
                "SELECT * FROM channel_recommendations WHERE id = ?", (rec_id,)
            ).fetchone()
            return dict(row) if row else None

    def list_recommendations(self, user_id: int) -> list[dict]:
        """A user's recommendations by impact score, merged with channel details."""
        with self._locked() as conn:
            cursor = conn.execute(
                """
                SELECT r.*, c.name AS channel_name, c.thumbnail_url AS channel_thumbnail,
                       c.category AS channel_category, c.description, c.banner_url
                FROM channel_recommendations r
                LEFT JOIN channels c ON c.channel_id = r.channel_id
                WHERE r.user_id = ?
                ORDER BY r.impact_score DESC, r.id
                """,
                (user_id,),
            )
            result = []
            for row in cursor.fetchall():
                r = dict(row)
                result.append({
                    "id": r["id"],
                    "channel_id": r["channel_id"],
                    "name": r["channel_name"] or r["channel_id"],
                    "thumbnail_url": r["channel_thumbnail"] or _channel_avatar(r["channel_id"]),
                    "impact_score": float(r["impact_score"]),
                    "views_potential": r["views_potential"],
                    "views_generated": r["views_actual"],
                    "category": r["category"] or r["channel_category"] or "Unknown",
                    "description": r["description"],
                    "banner_url": r["banner_url"],
                })
            return result

    def update_recommendation_engagement(self, rec_id: int, views_actual: int) -> Optional[dict]:
        with self._locked() as conn:
            cursor = conn.execute(
                """
                UPDATE channel_recommendations
                SET views_actual = ?, last_engaged = datetime('now')
                WHERE id = ?
                """,
                (int(views_actual), rec_id),
            )
            self._commit()
            if cursor.rowcount == 0:
                return None
            row = conn.execute(
                "SELECT * FROM channel_recommendations WHERE id = ?", (rec_id,)
            ).fetchone()
            return dict(row)

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            self.conn.close()
