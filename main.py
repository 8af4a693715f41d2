#!/usr/bin/env python3
"""ChannelBooster - boosting session tracker and view statistics API."""

import argparse
import asyncio
import logging
import signal
import os
from pathlib import Path

import uvicorn
from fastapi.middleware.cors import CORSMiddleware

from boosting.aggregator import ViewCountAggregator
from boosting.manager import BoostingSessionManager
from boosting.notifications import NotificationBus
from config import load_config, Config
from data.boost_store import BoostStore
from data.seed_channels import seed_store
from web.app import app as fastapi_app
from web.middleware import SecurityHeadersMiddleware
from version import __version__
from youtube.source import VideoSource

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("channelbooster")


class ChannelBooster:
    """Main orchestrator - wires the store, session manager and FastAPI."""

    def __init__(self, config: Config):
        self.config = config
        self.store = None
        self.source = None
        self.running = False

    def _seed_channels(self) -> None:
        path = Path(self.config.boosting.seed_channels_path)
        if not path.is_absolute():
            path = Path(__file__).parent / path
        count = seed_store(self.store, path)
        logger.info("Seed channels ensured: %d", count)

    async def setup(self) -> None:
        """Initialize all components."""
        db_path = self.config.database.path
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self.store = BoostStore(db_path=db_path)
        logger.info("Database initialized")

        self._seed_channels()

        self.source = VideoSource(self.config.youtube)
        bus = NotificationBus()
        aggregator = ViewCountAggregator(self.store)
        manager = BoostingSessionManager(self.store, self.source, aggregator, bus)

        state = fastapi_app.state
        state.store = self.store
        state.source = self.source
        state.bus = bus
        state.aggregator = aggregator
        state.manager = manager
        state.youtube_config = self.config.youtube
        state.web_config = self.config.web

        fastapi_app.add_middleware(SecurityHeadersMiddleware)
        if self.config.web.cors_origins:
            fastapi_app.add_middleware(
                CORSMiddleware,
                allow_origins=self.config.web.cors_origins,
                allow_methods=["GET", "POST", "PATCH", "DELETE"],
                allow_headers=["Content-Type"],
            )

        logger.info("Web app initialized")

    async def run(self) -> None:
        """Start everything."""
        self.running = True
        await self.setup()

        config = uvicorn.Config(
            fastapi_app,
            host=self.config.web.host,
            port=self.config.web.port,
            log_level="info",
        )
        server = uvicorn.Server(config)

        logger.info(
            f"ChannelBooster v{__version__} started - {len(self.store.get_verified_channels())} verified channels, "
            f"{self.store.count_sessions()} active sessions"
        )

        try:
            await server.serve()
        except asyncio.CancelledError:
            logger.info("Server cancelled")

    async def stop(self) -> None:
        """Stop all components."""
        self.running = False
        if self.source:
            await self.source.aclose()
        if self.store:
            self.store.close()
        logger.info("ChannelBooster stopped")


async def main() -> None:
    parser = argparse.ArgumentParser(description="ChannelBooster")
    parser.add_argument("-c", "--config", help="Path to config file", default=None)
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = load_config(args.config)
    app = ChannelBooster(config)

    loop = asyncio.get_running_loop()

    def signal_handler():
        if app.running:
            asyncio.create_task(app.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            signal.signal(sig, lambda s, f: signal_handler())

    try:
        await app.run()
    except KeyboardInterrupt:
        pass
    finally:
        if app.running:
            await app.stop()


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
