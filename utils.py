"""Shared utilities for ChannelBooster."""

import logging

logger = logging.getLogger(__name__)


def percentage(part: int, total: int) -> int:
    """Whole-number share of `total`, rounding halves up.

    Returns 0 when total is 0 or negative instead of dividing by zero.
    """
    if total <= 0:
        return 0
    return int(100 * part / total + 0.5)

