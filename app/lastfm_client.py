import requests
import logging
import threading

from state import CurrentTrack
from timefmt import format_relative

log = logging.getLogger("lastfm")

DEFAULT_BASE_URL = "https://ws.audioscrobbler.com/2.0/"
RECENT_TRACKS_METHOD = "user.getrecenttracks"
GENERIC_ERROR = "Failed to fetch current track"
ARTWORK_SLOT = 2  # image[] is small, medium, large, extralarge

# Custom error classes so callers can branch; all carry a display-ready message
class LastFMError(Exception):
    def __init__(self, message: str = GENERIC_ERROR, code: int | None = None):
        super().__init__(message)
        self.message = message
        self.code = code

class LastFMAuthError(LastFMError): ...
class LastFMRateLimitError(LastFMError): ...
class LastFMNotFoundError(LastFMError): ...
class LastFMNetworkError(LastFMError): ...
class LastFMServiceError(LastFMError): ...
class LastFMProtocolError(LastFMError): ...


def error_from_payload(code, message: str | None) -> LastFMError:
    """Map a Last.fm `{error, message}` payload onto an exception."""
    try:
        code = int(code)
    except (TypeError, ValueError):
        code = None
    message = message or "Last.fm API error"
    if code in (10, 26):  # 10=Invalid API key, 26=Suspended API key
        return LastFMAuthError(message, code)
    if code == 29:  # 29=Rate limit exceeded
        return LastFMRateLimitError(message, code)
    if code == 6:  # 6=Invalid parameters, sent for unknown users
        return LastFMNotFoundError(message, code)
    return LastFMServiceError(message, code)


def _text(value) -> str | None:
    # Last.fm wraps most scalars as {"#text": "..."}
    if isinstance(value, dict):
        value = value.get("#text")
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None

def _truthy(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "false", "0")
    return bool(value)

def _artwork(images) -> str | None:
    if not isinstance(images, list) or len(images) <= ARTWORK_SLOT:
        return None
    return _text(images[ARTWORK_SLOT])

def _to_int(s):
    if s is None: return None
    try:
        return int(s)
    except (TypeError, ValueError, OverflowError):
        return None


def parse_track(raw: dict, now: float | None = None) -> CurrentTrack:
    """Normalize one `recenttracks.track[]` entry."""
    if not isinstance(raw, dict):
        raise LastFMProtocolError("Malformed track entry in Last.fm response")

    artist = _text(raw.get("artist"))
    title = _text(raw.get("name"))
    if not artist or not title:
        raise LastFMProtocolError("Last.fm response is missing artist or title")

    attr = raw.get("@attr")
    now_playing = isinstance(attr, dict) and _truthy(attr.get("nowplaying"))

    timestamp = None
    date = raw.get("date")
    if not now_playing and isinstance(date, dict):
        uts = _to_int(date.get("uts"))
        if uts is not None:
            try:
                timestamp = format_relative(uts, now)
            except (ValueError, OverflowError, OSError) as e:
                raise LastFMProtocolError(f"Invalid play timestamp in Last.fm response: {uts}") from e

    return CurrentTrack(
        artist=artist,
        title=title,
        album=_text(raw.get("album")),
        artwork_url=_artwork(raw.get("image")),
        source_url=_text(raw.get("url")),
        is_now_playing=now_playing,
        relative_timestamp=timestamp,
    )


def parse_recent_tracks(payload: dict, now: float | None = None) -> CurrentTrack | None:
    """First track of a `user.getrecenttracks` payload, or None when there are no plays."""
    recent = payload.get("recenttracks") if isinstance(payload, dict) else None
    if not isinstance(recent, dict):
        raise LastFMProtocolError("Last.fm response has no recenttracks")

    tracks = recent.get("track") or []
    if isinstance(tracks, dict):
        # single entries are sometimes sent unwrapped
        tracks = [tracks]
    if not isinstance(tracks, list):
        raise LastFMProtocolError("Malformed track list in Last.fm response")
    if not tracks:
        return None
    return parse_track(tracks[0], now)


class LastFMClient:
    """Thin requests wrapper around `user.getrecenttracks` (JSON format).

    Fetches run concurrently in worker threads and requests.Session is not
    thread-safe, so each thread lazily gets its own session. A session passed
    in explicitly is used as-is from every thread.
    """

    def __init__(self, api_key: str, base_url: str = DEFAULT_BASE_URL, timeout: float = 10,
                 session: requests.Session | None = None):
        if not api_key:
            raise ValueError("Missing Last.fm API key")
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self._session = session
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

    @property
    def http(self) -> requests.Session:
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def _params(self, username: str) -> dict:
        return {
            "method": RECENT_TRACKS_METHOD,
            "user": username,
            "api_key": self.api_key,
            "format": "json",
            "limit": "1",  # only the most recent track is needed
        }

    def fetch_recent_track(self, username: str, now: float | None = None) -> CurrentTrack | None:
        """Most recent (or now playing) track for `username`.

        Returns None when the user has no plays. Raises a LastFMError subclass
        on any failure; there are no retries here.
        """
        try:
            resp = self.http.get(self.base_url, params=self._params(username), timeout=self.timeout)
        except requests.RequestException as e:
            log.debug("recent tracks request failed for %s: %s", username, e)
            raise LastFMNetworkError(GENERIC_ERROR) from e

        try:
            payload = resp.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict) and "error" in payload:
            raise error_from_payload(payload.get("error"), payload.get("message"))
        if not resp.ok:
            raise LastFMServiceError(f"{GENERIC_ERROR} (HTTP {resp.status_code})")
        if payload is None:
            raise LastFMProtocolError("Last.fm returned a non-JSON response")

        return parse_recent_tracks(payload, now)

    def close(self):
        if self._session is not None:
            self._session.close()
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
