import asyncio
import contextlib
import logging
from enum import Enum
from typing import Callable

from lastfm_client import GENERIC_ERROR, LastFMClient, LastFMError
from registry import IdentityRegistry
from state import IdentityTrackState, TrackStateStore

log = logging.getLogger("poller")

DEFAULT_INTERVAL = 30.0

class SchedulerState(str, Enum):
    IDLE = "idle"        # nothing tracked, no timer
    POLLING = "polling"  # exactly one interval timer armed


class PollingScheduler:
    """Refreshes every tracked username on a fixed interval.

    Two states: IDLE and POLLING. `sync()` is called after every change to the
    tracked set and performs the transition:
      IDLE -> POLLING     set became non-empty: refresh now, arm the timer
      POLLING -> POLLING  set changed: tear the timer down and re-arm it
      POLLING -> IDLE     set became empty: tear the timer down

    A round fetches all usernames concurrently and writes each result to the
    store as soon as it arrives. Timer ticks never cancel a running round, so
    rounds may overlap; results are last-write-wins.
    """

    def __init__(self, client: LastFMClient, registry: IdentityRegistry, store: TrackStateStore,
                 interval: float = DEFAULT_INTERVAL,
                 on_update: Callable[[], None] | None = None):
        self.client = client
        self.registry = registry
        self.store = store
        self.interval = max(1.0, float(interval))
        self.on_update = on_update
        self._state = SchedulerState.IDLE
        self._timer: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self._rounds_in_flight = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def loading(self) -> bool:
        return self._rounds_in_flight > 0

    @property
    def timer(self) -> asyncio.Task | None:
        return self._timer

    # -------- state machine --------
    def sync(self) -> SchedulerState:
        if len(self.registry) == 0:
            if self._state is SchedulerState.POLLING:
                self._disarm()
                self._state = SchedulerState.IDLE
                log.info("No usernames tracked; polling stopped")
        elif self._state is SchedulerState.IDLE:
            self._state = SchedulerState.POLLING
            log.info("Polling %d username(s) every %ss", len(self.registry), self.interval)
            self.start_round()
            self._arm()
        else:
            self._disarm()
            self._arm()
        return self._state

    def _arm(self) -> None:
        self._timer = asyncio.create_task(self._tick(), name="lastfm-poll-timer")

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.start_round()

    async def stop(self) -> None:
        """Tear down the timer and cancel in-flight rounds (shutdown only)."""
        timer = self._timer
        self._disarm()
        self._state = SchedulerState.IDLE
        pending = [t for t in (timer, *self._tasks) if t is not None]
        for task in pending:
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def join(self) -> None:
        """Wait until no round or single fetch is in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -------- fetching --------
    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def start_round(self) -> asyncio.Task:
        return self._spawn(self.refresh_all(), "lastfm-refresh")

    def fetch_soon(self, username: str) -> asyncio.Task:
        """Fetch a single username in the background (used right after an add)."""
        return self._spawn(self._refresh_and_notify(username), f"lastfm-fetch-{username}")

    async def _refresh_and_notify(self, username: str) -> IdentityTrackState | None:
        entry = await self.refresh_one(username)
        if entry is not None and self.on_update is not None:
            self.on_update()
        return entry

    async def refresh_all(self) -> list[IdentityTrackState | None]:
        usernames = self.registry.usernames
        if not usernames:
            return []

        self._rounds_in_flight += 1
        try:
            entries = await asyncio.gather(*(self.refresh_one(u) for u in usernames))
        finally:
            self._rounds_in_flight -= 1

        failed = sum(1 for e in entries if e is not None and e.error)
        log.debug("Refresh round done: users=%d failed=%d", len(usernames), failed)

        if self.on_update is not None:
            self.on_update()
        return entries

    async def refresh_one(self, username: str) -> IdentityTrackState | None:
        """Fetch one username and record the outcome.

        Returns None when the username stopped being tracked while the request
        was in flight; its result is dropped so the removal stays final.
        """
        try:
            track = await asyncio.to_thread(self.client.fetch_recent_track, username)
        except LastFMError as e:
            log.warning("Error fetching track for %s: %s", username, e.message)
            outcome = IdentityTrackState(identity=username, error=e.message)
        except Exception:
            log.exception("Unexpected error fetching track for %s", username)
            outcome = IdentityTrackState(identity=username, error=GENERIC_ERROR)
        else:
            outcome = IdentityTrackState(identity=username, current_track=track)

        if username not in self.registry:
            log.debug("Dropping result for untracked user %s", username)
            return None
        return self.store.upsert(outcome)
