"""Shared pytest fixtures for ChannelBooster tests."""

import asyncio

import pytest

from config import Config, WebConfig, YouTubeConfig, DatabaseConfig, BoostingConfig
from data.boost_store import BoostStore
from youtube.source import QueueEmpty, QueueItems

CHANNEL_A = "UC6Bkb7sGltQ8BNgwxw9B2ow"
CHANNEL_B = "UCRijo3ddMTht_IHyNSNXpNQ"


def make_items(n: int, prefix: str = "vid") -> tuple:
    """`n` queue items with valid 11-char video ids (prefix must be 3 chars)."""
    return tuple(
        {
            "video_id": f"{prefix}{i:08d}",
            "title": f"Video {i}",
            "duration": 60 * (i + 1),
            "thumbnail_url": f"https://i.ytimg.com/vi/{prefix}{i:08d}/mqdefault.jpg",
        }
        for i in range(n)
    )


class FakeSource:
    """VideoSourceProtocol test double.

    `results` maps channel_id -> QueueResult; unknown channels resolve empty.
    Set `hold=True` to park resolve_queue until `release()` is called.
    """

    def __init__(self, results=None, hold=False):
        self.results = dict(results or {})
        self.calls = []
        self.hold = hold
        self._gate = None
        self._entered = None

    def _events(self):
        if self._gate is None:
            self._gate = asyncio.Event()
            self._entered = asyncio.Event()
        return self._gate, self._entered

    async def resolve_queue(self, channel_id, channel_name=""):
        self.calls.append((channel_id, channel_name))
        if self.hold:
            gate, entered = self._events()
            entered.set()
            await gate.wait()
        return self.results.get(channel_id, QueueEmpty())

    async def wait_entered(self):
        await self._events()[1].wait()

    def release(self):
        self._events()[0].set()


@pytest.fixture
def store(tmp_path):
    """BoostStore backed by a temp-dir SQLite file."""
    s = BoostStore(db_path=str(tmp_path / "test.db"))
    yield s
    s.close()


@pytest.fixture
def fake_source():
    return FakeSource({
        CHANNEL_A: QueueItems(make_items(3)),
        CHANNEL_B: QueueItems(make_items(2, prefix="bbb")),
    })


@pytest.fixture
def sample_config(tmp_path):
    """Minimal Config with safe defaults for testing."""
    return Config(
        web=WebConfig(host="127.0.0.1", port=9999),
        youtube=YouTubeConfig(api_key="test-key", max_items=10, ydl_timeout=5),
        database=DatabaseConfig(path=str(tmp_path / "test.db")),
        boosting=BoostingConfig(seed_channels_path=str(tmp_path / "seed.yaml")),
    )


@pytest.fixture
def config_yaml(tmp_path):
    """Write a minimal config.yaml and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text("""\
web:
  host: 0.0.0.0
  port: 8080
  cors_origins: "https://a.example, https://b.example"
youtube:
  api_key: "yaml-key"
  page_size: 25
  max_items: 40
  ydl_timeout: 15
database:
  path: "{db_path}"
boosting:
  seed_channels_path: "seeds.yaml"
""".format(db_path=str(tmp_path / "cfg_test.db")))
    return cfg
