"""Tests for configuration loading and the text renderer."""
import locale

import pytest

import settings
from conftest import FakeClient, make_track
from main import main, render
from state import IdentityTrackState
from tracker import Tracker


def test_settings_defaults():
    cfg = settings.from_env({})
    assert cfg.api_key is None
    assert cfg.base_url == "https://ws.audioscrobbler.com/2.0/"
    assert cfg.poll_interval == 30.0
    assert cfg.http_timeout == 10.0
    assert cfg.storage_path == settings.DEFAULT_STORAGE_PATH
    assert cfg.log_level == "INFO"


def test_settings_from_env_values():
    cfg = settings.from_env({
        "LASTFM_API_KEY": " abc ",
        "POLL_INTERVAL": "0",
        "HTTP_TIMEOUT": "not-a-number",
        "STORAGE_PATH": "/tmp/x.json",
        "LOG_LEVEL": "debug",
    })
    assert cfg.api_key == "abc"
    assert cfg.poll_interval == 1.0
    assert cfg.http_timeout == 10.0
    assert cfg.storage_path == "/tmp/x.json"
    assert cfg.log_level == "DEBUG"


def test_main_requires_api_key(monkeypatch):
    monkeypatch.setattr("main.load_dotenv", lambda: None)
    monkeypatch.setattr("main.logging.basicConfig", lambda **kwargs: None)
    monkeypatch.setattr("main.locale.setlocale", lambda category, value: None)
    monkeypatch.delenv("LASTFM_API_KEY", raising=False)
    with pytest.raises(SystemExit, match="LASTFM_API_KEY"):
        main()


def test_render_without_users(storage):
    tracker = Tracker(FakeClient(), storage)
    assert render(tracker).startswith("No users tracked")


@pytest.mark.asyncio
async def test_render_sections(storage):
    tracker = Tracker(FakeClient(), storage)
    for name in ["bob", "Alice", "carol", "dave"]:
        await tracker.registry.add(name)
    tracker.store.upsert(IdentityTrackState("bob", make_track("A", "B", now_playing=True)))
    tracker.store.upsert(IdentityTrackState("Alice", make_track("C", "D", now_playing=True)))
    tracker.store.upsert(IdentityTrackState("carol", make_track("E", "F", album="G", timestamp="Yesterday")))
    tracker.store.upsert(IdentityTrackState("dave", error="User not found"))

    assert render(tracker).splitlines() == [
        "Now Playing",
        "  Alice: C - D",
        "  bob: A - B",
        "Last Played",
        "  carol: E - F [G] (Yesterday)",
        "  dave: error: User not found",
    ]


@pytest.mark.asyncio
async def test_render_no_tracks(storage):
    tracker = Tracker(FakeClient(), storage)
    await tracker.registry.add("quiet")
    tracker.store.upsert(IdentityTrackState("quiet"))
    assert render(tracker) == "No recent tracks"


def test_main_uses_user_locale_for_dates(monkeypatch):
    calls = []
    monkeypatch.setattr("main.load_dotenv", lambda: None)
    monkeypatch.setattr("main.logging.basicConfig", lambda **kwargs: None)
    monkeypatch.setattr("main.locale.setlocale", lambda category, value: calls.append((category, value)))
    monkeypatch.delenv("LASTFM_API_KEY", raising=False)

    with pytest.raises(SystemExit):
        main()

    assert calls == [(locale.LC_TIME, "")]


def test_main_survives_unknown_locale(monkeypatch):
    def broken(category, value):
        raise locale.Error("unsupported locale setting")

    monkeypatch.setattr("main.load_dotenv", lambda: None)
    monkeypatch.setattr("main.logging.basicConfig", lambda **kwargs: None)
    monkeypatch.setattr("main.locale.setlocale", broken)
    monkeypatch.delenv("LASTFM_API_KEY", raising=False)

    with pytest.raises(SystemExit, match="LASTFM_API_KEY"):
        main()


@pytest.mark.asyncio
async def test_render_lists_errors_from_store(storage):
    tracker = Tracker(FakeClient(), storage)
    for name in ["zed", "amy"]:
        await tracker.registry.add(name)
    tracker.store.upsert(IdentityTrackState("zed", error="Failed to fetch current track"))
    tracker.store.upsert(IdentityTrackState("amy", error="User not found"))

    assert [e.identity for e in tracker.errors()] == ["amy", "zed"]
    assert render(tracker).splitlines() == [
        "  amy: error: User not found",
        "  zed: error: Failed to fetch current track",
    ]
