"""Loader for the seed channels YAML file."""

import logging
from pathlib import Path
from typing import Optional

import yaml

from youtube.extractor import CHANNEL_ID_RE

logger = logging.getLogger(__name__)


def load_seed_channels(path: Optional[Path] = None) -> list[dict]:
    """Load and validate seed channels from a YAML file.

    Returns a list of dicts with keys: channel_id, name, description,
    thumbnail_url, banner_url, category, is_verified.
    Returns [] if the file is missing or invalid.
    """
    if path is None or not path.exists():
        logger.debug(f"Seed channels file not found: {path}")
        return []

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load seed channels: {e}")
        return []

    if not isinstance(data, dict) or "channels" not in data:
        logger.warning("Seed channels file missing 'channels' key")
        return []

    result = []
    for entry in data["channels"] or []:
        if not isinstance(entry, dict):
            continue
        channel_id = str(entry.get("channel_id", "")).strip()
        name = str(entry.get("name", "")).strip()
        if not channel_id or not name:
            logger.warning(f"Skipping seed channel missing channel_id/name: {entry}")
            continue
        if not CHANNEL_ID_RE.match(channel_id):
            logger.warning(f"Skipping invalid channel id: {channel_id}")
            continue
        result.append({
            "channel_id": channel_id,
            "name": name,
            "description": (entry.get("description") or "").strip() or None,
            "thumbnail_url": entry.get("thumbnail_url") or None,
            "banner_url": entry.get("banner_url") or None,
            "category": (entry.get("category") or "").strip() or None,
            "is_verified": bool(entry.get("is_verified", True)),
        })

    logger.info(f"Loaded {len(result)} seed channels")
    return result


def seed_store(store, path: Optional[Path] = None) -> int:
    """Insert seed channels into the store. Returns how many were loaded."""
    channels = load_seed_channels(path)
    for ch in channels:
        store.create_channel(**ch)
    return len(channels)
