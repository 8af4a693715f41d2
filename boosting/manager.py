"""Boosting session lifecycle: one active session per user, sequential progress.

Only the active item id and the completed count are persisted; per-item
status is derived on read (items before the active position are completed,
the active one is playing, the rest are queued).
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from typing import Optional

from boosting import notifications
from boosting.aggregator import ViewCountAggregator
from boosting.errors import InvalidArgument, ItemNotActive, NoActiveSession, ResolutionFailure
from boosting.notifications import NotificationBus
from data.boost_store import BoostStore
from youtube.extractor import channel_uploads_url
from youtube.source import QueueEmpty, QueueFailed, VideoSourceProtocol

logger = logging.getLogger(__name__)

QUEUED = "queued"
PLAYING = "playing"
COMPLETED = "completed"


@dataclass
class StartOutcome:
    """Result of start(): `started`, `empty` (nothing to play) or `cancelled`."""
    status: str
    session: Optional[dict] = None
    fallback_url: Optional[str] = None


@dataclass(eq=False)
class _UserState:
    """Lock and generation for one user.

    Bumped by every start/stop; a resolution whose generation is stale when
    it returns is discarded.
    """
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    generation: int = 0


@dataclass
class CompletionOutcome:
    view_stat: Optional[dict]
    session: Optional[dict]
    duplicate: bool = False
    finished: bool = False


class BoostingSessionManager:
    """Owns session transitions. All work for one user is serialized."""

    def __init__(self, store: BoostStore, source: VideoSourceProtocol,
                 aggregator: ViewCountAggregator, bus: NotificationBus):
        self._store = store
        self._source = source
        self._aggregator = aggregator
        self._bus = bus
        # An entry disappears once no coroutine references it.
        self._states: "weakref.WeakValueDictionary[int, _UserState]" = (
            weakref.WeakValueDictionary()
        )

    def _state_for(self, user_id: int) -> _UserState:
        state = self._states.get(user_id)
        if state is None:
            state = self._states[user_id] = _UserState()
        return state

    @property
    def tracked_users(self) -> int:
        return len(self._states)

    @staticmethod
    def _validate(user_id: int, channel_id: Optional[str] = None) -> None:
        if not isinstance(user_id, int) or isinstance(user_id, bool) or user_id <= 0:
            raise InvalidArgument(f"invalid user id: {user_id!r}")
        if channel_id is not None and not channel_id.strip():
            raise InvalidArgument("channel id must not be empty")

    # --- Lifecycle ---

    async def start(self, user_id: int, channel_id: str) -> StartOutcome:
        """Start boosting `channel_id`, replacing any session the user has."""
        self._validate(user_id, channel_id)
        state = self._state_for(user_id)

        async with state.lock:
            state.generation += 1
            generation = state.generation
            if self._store.get_session(user_id):
                logger.info("User %s already boosting, stopping previous session", user_id)
                self._stop_locked(user_id)
            channel = self._store.ensure_channel(channel_id)

        # Resolution can take seconds (network + fallback); the lock is not held.
        name = channel["name"] if channel["name"] != channel_id else ""
        result = await self._source.resolve_queue(channel_id, channel_name=name)

        async with state.lock:
            if state.generation != generation:
                logger.info("Discarding queue for user %s: session changed during resolution",
                            user_id)
                return StartOutcome(status="cancelled")
            if isinstance(result, QueueFailed):
                raise ResolutionFailure(channel_id, result.reason)
            if isinstance(result, QueueEmpty):
                logger.info("Nothing to boost on %s for user %s", channel_id, user_id)
                return StartOutcome(status="empty", fallback_url=channel_uploads_url(channel_id))

            self._store.replace_session(user_id, channel_id, result.items)
            snapshot = self._snapshot(user_id)
            logger.info("User %s started boosting %s (%d items)",
                        user_id, channel_id, snapshot["queue_length"])
            self._bus.publish(notifications.STARTED, {
                "user_id": user_id,
                "channel_id": channel_id,
                "active_video_id": snapshot["active_video_id"],
                "queue_length": snapshot["queue_length"],
            })
            return StartOutcome(status="started", session=snapshot)

    async def stop(self, user_id: int) -> bool:
        """Stop the user's session. Returns True if one existed; never raises for absence."""
        self._validate(user_id)
        state = self._state_for(user_id)
        async with state.lock:
            state.generation += 1
            return self._stop_locked(user_id)

    def _stop_locked(self, user_id: int) -> bool:
        existed = self._store.delete_session(user_id)
        if existed:
            logger.info("User %s stopped boosting", user_id)
        self._bus.publish(notifications.STOPPED, {"user_id": user_id, "had_session": existed})
        return existed

    async def report_completion(self, user_id: int, video_id: str,
                                observed_duration: int) -> CompletionOutcome:
        """Count a finished item and advance to the next one.

        Re-reporting an already-completed item is a no-op (duplicate=True).
        Reporting an item that is still queued raises ItemNotActive.
        """
        self._validate(user_id)
        state = self._state_for(user_id)
        async with state.lock:
            session = self._store.get_session(user_id)
            if not session:
                raise NoActiveSession(user_id)
            queue = self._store.get_session_queue(user_id)
            watched = session["videos_watched"]

            active = queue[watched] if watched < len(queue) else None
            if active is None or active["video_id"] != video_id:
                if any(item["video_id"] == video_id for item in queue[:watched]):
                    logger.info("Ignoring duplicate completion of %s for user %s",
                                video_id, user_id)
                    return CompletionOutcome(view_stat=None, session=self._snapshot(user_id),
                                             duplicate=True)
                raise ItemNotActive(user_id, video_id, session["active_video_id"])

            channel_id = session["channel_id"]
            next_index = watched + 1
            with self._store.transaction():
                stat = self._aggregator.record_view(
                    user_id, channel_id, video_id, max(int(observed_duration), 0))
                if next_index < len(queue):
                    self._store.advance_session(user_id, queue[next_index]["video_id"], next_index)
                    finished = False
                else:
                    self._store.delete_session(user_id)
                    finished = True

            payload = {
                "user_id": user_id,
                "channel_id": channel_id,
                "video_id": video_id,
                "view_stat_id": stat["id"],
                "videos_watched": next_index,
            }
            if finished:
                logger.info("User %s finished boosting %s (%d items)",
                            user_id, channel_id, next_index)
                self._bus.publish(notifications.FINISHED, payload)
                return CompletionOutcome(view_stat=stat, session=None, finished=True)

            snapshot = self._snapshot(user_id)
            payload["active_video_id"] = snapshot["active_video_id"]
            self._bus.publish(notifications.VIEW_COUNTED, payload)
            return CompletionOutcome(view_stat=stat, session=snapshot)

    def current(self, user_id: int) -> dict:
        """Read-only snapshot of the session with derived per-item status."""
        self._validate(user_id)
        snapshot = self._snapshot(user_id)
        if snapshot is None:
            raise NoActiveSession(user_id)
        return snapshot

    def _snapshot(self, user_id: int) -> Optional[dict]:
        session = self._store.get_session(user_id)
        if not session:
            return None
        queue = self._store.get_session_queue(user_id)
        watched = session["videos_watched"]
        items = []
        for pos, item in enumerate(queue):
            if pos < watched:
                status = COMPLETED
            elif pos == watched:
                status = PLAYING
            else:
                status = QUEUED
            items.append({
                "video_id": item["video_id"],
                "title": item["title"],
                "duration": item["duration"],
                "thumbnail_url": item["thumbnail_url"],
                "status": status,
            })
        return {
            "user_id": session["user_id"],
            "channel_id": session["channel_id"],
            "start_time": session["start_time"],
            "last_updated": session["last_updated"],
            "active_video_id": session["active_video_id"],
            "videos_watched": watched,
            "queue_length": len(items),
            "queue": items,
        }
