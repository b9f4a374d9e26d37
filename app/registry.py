import asyncio
import logging

from username_store import JsonFileStorage, StorageError, USERNAMES_KEY

log = logging.getLogger("registry")

EMPTY_USERNAME = "Please enter a Last.fm username"
DUPLICATE_USERNAME = "This username is already being tracked"

class ValidationError(ValueError):
    """Rejected input; the message is meant to be shown to the user as-is."""


def _clean(stored) -> list[str]:
    if not isinstance(stored, list):
        log.warning("Ignoring stored usernames of type %s", type(stored).__name__)
        return []
    usernames: list[str] = []
    for item in stored:
        if isinstance(item, str) and item.strip() and item not in usernames:
            usernames.append(item)
    return usernames


class IdentityRegistry:
    """Owns the tracked usernames and keeps storage in step with them.

    Mutations are committed in memory first, then the whole list is written
    through to storage before the call returns. Storage failures are logged
    and never undo the in-memory change.
    """

    def __init__(self, storage: JsonFileStorage, key: str = USERNAMES_KEY):
        self.storage = storage
        self.key = key
        self._usernames: list[str] = []
        self._write_lock = asyncio.Lock()

    @property
    def usernames(self) -> list[str]:
        return list(self._usernames)

    def __contains__(self, username: str) -> bool:
        return username in self._usernames

    def __len__(self) -> int:
        return len(self._usernames)

    async def load(self) -> list[str]:
        try:
            stored = await asyncio.to_thread(self.storage.get, self.key)
        except StorageError as e:
            log.error("Error loading usernames, starting empty: %s", e)
            stored = None
        self._usernames = _clean(stored) if stored is not None else []
        log.info("Loaded %d tracked username(s)", len(self._usernames))
        return self.usernames

    def validate(self, username: str) -> str:
        username = (username or "").strip()
        if not username:
            raise ValidationError(EMPTY_USERNAME)
        if username in self._usernames:
            raise ValidationError(DUPLICATE_USERNAME)
        return username

    async def add(self, username: str) -> str:
        """Track `username` (trimmed). Raises ValidationError before any I/O."""
        username = self.validate(username)
        self._usernames.append(username)
        await self._persist()
        return username

    async def remove(self, username: str) -> bool:
        if username not in self._usernames:
            return False
        self._usernames.remove(username)
        await self._persist()
        return True

    async def _persist(self) -> None:
        # Serialized, and always writes the latest list, so an older snapshot
        # can never land after a newer one.
        async with self._write_lock:
            try:
                await asyncio.to_thread(self.storage.set, self.key, list(self._usernames))
            except StorageError as e:
                log.error("Error saving usernames: %s", e)
