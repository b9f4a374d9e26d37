import logging
from typing import Callable

from lastfm_client import LastFMClient
from poller import DEFAULT_INTERVAL, PollingScheduler, SchedulerState
from registry import IdentityRegistry
from state import IdentityTrackState, TrackStateStore, TrackView
from username_store import JsonFileStorage

log = logging.getLogger("tracker")


class Tracker:
    """What a front end talks to: tracked usernames, their tracks, and the
    add / remove / refresh entry points. Confirmation before `remove` is the
    front end's job.
    """

    def __init__(self, client: LastFMClient, storage: JsonFileStorage,
                 interval: float = DEFAULT_INTERVAL,
                 on_update: Callable[[], None] | None = None):
        self.client = client
        self.registry = IdentityRegistry(storage)
        self.store = TrackStateStore()
        self.poller = PollingScheduler(client, self.registry, self.store,
                                       interval=interval, on_update=on_update)

    # -------- read side --------
    @property
    def usernames(self) -> list[str]:
        return self.registry.usernames

    @property
    def loading(self) -> bool:
        return self.poller.loading

    @property
    def state(self) -> SchedulerState:
        return self.poller.state

    def view(self) -> TrackView:
        return self.store.view()

    def entries(self) -> list[IdentityTrackState]:
        return self.store.entries()

    def errors(self) -> list[IdentityTrackState]:
        return self.store.errors()

    # -------- lifecycle --------
    async def start(self) -> None:
        await self.registry.load()
        self.poller.sync()

    async def stop(self) -> None:
        await self.poller.stop()
        self.client.close()

    # -------- mutations --------
    async def add(self, username: str) -> str:
        """Start tracking `username`; raises registry.ValidationError if rejected."""
        username = await self.registry.add(username)
        log.info("Tracking %s", username)
        self.poller.sync()
        self.poller.fetch_soon(username)
        return username

    async def remove(self, username: str) -> bool:
        if username not in self.registry:
            return False
        # Evict before the storage write so the entry disappears immediately;
        # in-flight results for it are dropped by the poller.
        self.store.evict(username)
        await self.registry.remove(username)
        log.info("Stopped tracking %s", username)
        self.poller.sync()
        return True

    async def refresh_now(self) -> list[IdentityTrackState | None]:
        return await self.poller.refresh_all()
