"""FastAPI dependency providers: read from app.state, set by main.py."""

from starlette.requests import HTTPConnection


def get_store(request: HTTPConnection):
    """BoostStore instance."""
    return request.app.state.store


def get_manager(request: HTTPConnection):
    """BoostingSessionManager instance."""
    return request.app.state.manager


def get_aggregator(request: HTTPConnection):
    """ViewCountAggregator instance."""
    return request.app.state.aggregator


def get_bus(request: HTTPConnection):
    """NotificationBus instance."""
    return request.app.state.bus


def get_source(request: HTTPConnection):
    """VideoSource (or any VideoSourceProtocol) instance."""
    return request.app.state.source


def get_youtube_config(request: HTTPConnection):
    """YouTubeConfig instance."""
    return request.app.state.youtube_config
