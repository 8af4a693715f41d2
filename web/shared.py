"""Shared web infrastructure: slowapi rate limiter.

Neutral module with no imports from web.*, safe for all web modules to import.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
