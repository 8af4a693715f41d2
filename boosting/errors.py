"""Error taxonomy for boosting sessions."""


class BoostError(Exception):
    """Base class for boosting errors surfaced to callers."""


class ResolutionFailure(BoostError):
    """Neither the primary nor the fallback strategy could resolve a queue."""

    def __init__(self, channel_id: str, reason: str):
        super().__init__(f"Could not resolve videos for {channel_id}: {reason}")
        self.channel_id = channel_id
        self.reason = reason


class NoActiveSession(BoostError):
    """The user has no boosting session."""

    def __init__(self, user_id: int):
        super().__init__(f"No active boosting session for user {user_id}")
        self.user_id = user_id


class ItemNotActive(BoostError):
    """A completion was reported for an item that is not the one playing."""

    def __init__(self, user_id: int, video_id: str, active_video_id: str | None):
        super().__init__(
            f"Video {video_id} is not the active item for user {user_id} "
            f"(active: {active_video_id})"
        )
        self.user_id = user_id
        self.video_id = video_id
        self.active_video_id = active_video_id


class StorageFailure(BoostError):
    """The persistence layer failed; the request may be retried."""

    retryable = True


class InvalidArgument(BoostError, ValueError):
    """A caller passed a value the boosting core cannot act on."""


class UserConflict(BoostError):
    """An identity maps onto an account already owned by another identity."""

    def __init__(self, email: str):
        super().__init__(f"Email {email} is already linked to another account")
        self.email = email
