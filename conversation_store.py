"""
Ordered, durable turn history for the active session.

Mutation happens on one thread only (the GTK main loop); the local snapshot
is written synchronously after every change and the remote copy is pushed
fire-and-forget through the supplied scheduler. Remote pushes are held
until the first remote read has been applied, and only the newest queued
snapshot is written.
"""
import asyncio
import logging
from typing import Callable, Coroutine, Iterable, Optional

from cloud_store import CloudStoreError, FirestoreChatStore
from config import Identity
from models import Turn
import constants as C
import storage

logger = logging.getLogger(__name__)

RemoteScheduler = Callable[[Coroutine], object]


class ConversationStore:
    """Append-only turn sequence with a manual reset."""

    def __init__(
        self,
        theme: str = C.DEFAULT_THEME,
        remote: Optional[FirestoreChatStore] = None,
        identity: Optional[Identity] = None,
        schedule_remote: Optional[RemoteScheduler] = None,
    ):
        self.theme = theme
        self.remote = remote
        self.identity = identity
        self.schedule_remote = schedule_remote
        self._turns: list[Turn] = []
        self._remote_loaded = False
        self._remote_dirty = False
        self._remote_seq = 0
        self._remote_saved_seq = 0
        self._remote_lock: Optional[asyncio.Lock] = None

    @property
    def turns(self) -> list[Turn]:
        """Copy of the current sequence."""
        return list(self._turns)

    @property
    def user_id(self) -> Optional[str]:
        return self.identity.user_id if self.identity else None

    def __len__(self) -> int:
        return len(self._turns)

    def last(self) -> Optional[Turn]:
        return self._turns[-1] if self._turns else None

    def append(self, turn: Turn) -> None:
        """Add one turn to the end and persist."""
        self._turns.append(turn)
        self.save()

    def extend(self, turns: Iterable[Turn]) -> None:
        """Add several turns in order and persist once."""
        added = list(turns)
        if not added:
            return
        self._turns.extend(added)
        self.save()

    def reset(self) -> None:
        """Replace the history with a single greeting turn."""
        logger.info("Resetting conversation (%d turns discarded)", len(self._turns))
        self._turns = [Turn.assistant(C.RESET_GREETING)]
        self.save()

    def set_theme(self, theme: str) -> None:
        self.theme = theme if theme in C.THEMES else C.DEFAULT_THEME
        self.save()

    def load(self) -> None:
        """Load the local snapshot, seeding the welcome greeting if empty."""
        theme, turns = storage.load_state()
        self.theme = theme
        self._turns = turns or [Turn.assistant(C.WELCOME_GREETING)]
        logger.info("Loaded %d local turn(s)", len(self._turns))

    async def fetch_remote(self) -> list[dict]:
        """Read the remote history without touching local state."""
        if self.remote is None or not self.user_id:
            return []
        try:
            return await self.remote.load(self.user_id)
        except CloudStoreError as e:
            logger.warning("Remote load failed, keeping local history: %s", e)
            return []

    async def load_remote(self) -> bool:
        """Replace local state with the remote history when one exists.

        Returns:
            True if remote turns were applied.
        """
        return self.apply_remote(await self.fetch_remote())

    def apply_remote(self, items: list[dict]) -> bool:
        """Adopt fetched remote turns; an empty remote list changes nothing.

        Ends the initial remote load either way, so remote saves held back
        until now are released.
        """
        turns = storage.turns_from_dicts(items)
        self._remote_loaded = True
        if not turns:
            if items:
                logger.warning("Remote history had %d unreadable record(s)", len(items))
            if self._remote_dirty:
                self._remote_dirty = False
                self._push_remote()
            return False
        self._turns = turns
        self._remote_dirty = False
        self._save_local()
        logger.info("Applied %d remote turn(s)", len(turns))
        return True

    def save(self) -> None:
        """Persist locally, then push the remote copy without waiting."""
        self._save_local()
        if self.remote is None or not self.user_id or self.schedule_remote is None:
            return
        if not self._remote_loaded:
            # A push now would race the first remote read
            self._remote_dirty = True
            logger.debug("Holding remote save until remote history is loaded")
            return
        self._push_remote()

    def _push_remote(self) -> None:
        if self.remote is None or not self.user_id or self.schedule_remote is None:
            return
        self._remote_seq += 1
        coro = self._save_remote(self._remote_seq, storage.turns_to_dicts(self._turns))
        try:
            self.schedule_remote(coro)
        except RuntimeError as e:
            coro.close()
            logger.warning("Could not schedule remote save: %s", e)

    def _save_local(self) -> None:
        try:
            storage.save_state(self.theme, self._turns)
        except OSError as e:
            logger.error("Local save failed: %s", e)

    async def _save_remote(self, seq: int, snapshot: list[dict]) -> None:
        """Write one snapshot; snapshots older than a queued or written one are dropped."""
        if self._remote_lock is None:
            self._remote_lock = asyncio.Lock()
        async with self._remote_lock:
            if seq < self._remote_seq or seq <= self._remote_saved_seq:
                logger.debug("Skipping stale remote snapshot %d", seq)
                return
            try:
                await self.remote.save(self.user_id, snapshot)
            except CloudStoreError as e:
                logger.warning("Remote save failed: %s", e)
                return
            self._remote_saved_seq = seq
