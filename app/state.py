from dataclasses import dataclass, field

# -------------------------
# One playback event as reported by Last.fm
# -------------------------
@dataclass(frozen=True)
class CurrentTrack:
    artist: str
    title: str
    album: str | None = None
    artwork_url: str | None = None
    source_url: str | None = None
    is_now_playing: bool = False
    relative_timestamp: str | None = None  # never shown while now playing

    @property
    def display_timestamp(self) -> str | None:
        return None if self.is_now_playing else self.relative_timestamp


@dataclass(frozen=True)
class IdentityTrackState:
    identity: str
    current_track: CurrentTrack | None = None
    error: str | None = None  # takes precedence over current_track


@dataclass(frozen=True)
class TrackView:
    now_playing: list[IdentityTrackState] = field(default_factory=list)
    last_played: list[IdentityTrackState] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.now_playing and not self.last_played


def _by_identity(entry: IdentityTrackState) -> tuple[str, str]:
    return entry.identity.casefold(), entry.identity


class TrackStateStore:
    """Latest fetch outcome per tracked username.

    Entries are replaced wholesale on every upsert; the display partition is
    derived on read. Errors stay in `entries()` so they can be shown, but never
    appear in the now-playing / last-played lists.
    """

    def __init__(self):
        self._entries: dict[str, IdentityTrackState] = {}

    def upsert(self, entry: IdentityTrackState) -> IdentityTrackState:
        # Last write wins; overlapping rounds are not sequenced.
        self._entries[entry.identity] = entry
        return entry

    def evict(self, identity: str) -> bool:
        return self._entries.pop(identity, None) is not None

    def get(self, identity: str) -> IdentityTrackState | None:
        return self._entries.get(identity)

    def entries(self) -> list[IdentityTrackState]:
        return sorted(self._entries.values(), key=_by_identity)

    def errors(self) -> list[IdentityTrackState]:
        return [e for e in self.entries() if e.error is not None]

    def view(self) -> TrackView:
        now_playing: list[IdentityTrackState] = []
        last_played: list[IdentityTrackState] = []
        for entry in self._entries.values():
            if entry.error is not None or entry.current_track is None:
                continue
            if entry.current_track.is_now_playing:
                now_playing.append(entry)
            else:
                last_played.append(entry)
        return TrackView(
            now_playing=sorted(now_playing, key=_by_identity),
            last_played=sorted(last_played, key=_by_identity),
        )

    def __contains__(self, identity: str) -> bool:
        return identity in self._entries

    def __len__(self) -> int:
        return len(self._entries)
