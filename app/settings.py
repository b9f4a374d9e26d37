"""
Runtime configuration from environment variables.

Env:
- LASTFM_API_KEY (required)
- LASTFM_BASE_URL (default https://ws.audioscrobbler.com/2.0/)
- POLL_INTERVAL seconds between refresh rounds (default 30, minimum 1)
- HTTP_TIMEOUT seconds per request (default 10)
- STORAGE_PATH JSON file holding the tracked usernames (default ~/.lastfm-tracker/storage.json)
- LOG_LEVEL (DEBUG|INFO|WARNING|ERROR; default INFO)
"""

from __future__ import annotations
import os
from dataclasses import dataclass

from lastfm_client import DEFAULT_BASE_URL

DEFAULT_STORAGE_PATH = "~/.lastfm-tracker/storage.json"

def _number(value: str | None, default: float, minimum: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        return max(minimum, float(value))
    except ValueError:
        return default

@dataclass(frozen=True)
class Settings:
    api_key: str | None
    base_url: str = DEFAULT_BASE_URL
    poll_interval: float = 30.0
    http_timeout: float = 10.0
    storage_path: str = DEFAULT_STORAGE_PATH
    log_level: str = "INFO"

def from_env(environ=None) -> Settings:
    env = os.environ if environ is None else environ
    return Settings(
        api_key=(env.get("LASTFM_API_KEY") or "").strip() or None,
        base_url=env.get("LASTFM_BASE_URL") or DEFAULT_BASE_URL,
        poll_interval=_number(env.get("POLL_INTERVAL"), 30.0, 1.0),
        http_timeout=_number(env.get("HTTP_TIMEOUT"), 10.0, 1.0),
        storage_path=env.get("STORAGE_PATH") or DEFAULT_STORAGE_PATH,
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
