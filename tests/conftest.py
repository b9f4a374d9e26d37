"""Pytest fixtures for the Last.fm tracker tests."""
import pytest

from lastfm_client import LastFMNetworkError
from state import CurrentTrack
from username_store import JsonFileStorage


class FakeClient:
    """Stands in for LastFMClient: answers from a dict, records calls.

    Values may be a CurrentTrack, None (no plays) or an exception to raise.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []
        self.closed = False

    def fetch_recent_track(self, username, now=None):
        self.calls.append(username)
        result = self.responses.get(username, LastFMNetworkError("Failed to fetch current track"))
        if isinstance(result, Exception):
            raise result
        return result

    def close(self):
        self.closed = True


def make_track(artist="A", title="B", now_playing=False, timestamp=None, album=None):
    return CurrentTrack(
        artist=artist,
        title=title,
        album=album,
        is_now_playing=now_playing,
        relative_timestamp=timestamp,
    )


@pytest.fixture
def storage(tmp_path):
    return JsonFileStorage(str(tmp_path / "storage.json"))


@pytest.fixture
def fake_client():
    return FakeClient()
