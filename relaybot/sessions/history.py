"""Keyed conversation history with bounded, FIFO-evicting windows.

The store is the only mutable state shared across concurrent runs. Callers
that read a window, call the model and then append must do so inside
`store.lock(key)` so two runs for the same key cannot interleave.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Literal, Sequence, Tuple

logger = logging.getLogger(__name__)

SessionKey = str
Role = Literal["user", "assistant"]

DEFAULT_MAX_TURNS = 10


@dataclass(frozen=True)
class ConversationTurn:
    role: Role
    content: str

    def as_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


HistoryWindow = Tuple[ConversationTurn, ...]


class SessionStore:
    def __init__(self, max_turns: int = DEFAULT_MAX_TURNS):
        if max_turns < 1:
            raise ValueError("max_turns must be >= 1")
        self.max_turns = max_turns
        self._windows: Dict[SessionKey, List[ConversationTurn]] = {}
        self._locks: Dict[SessionKey, asyncio.Lock] = {}
        self._lock_users: Dict[SessionKey, int] = {}

    @property
    def capacity(self) -> int:
        return self.max_turns * 2

    def get(self, key: SessionKey) -> HistoryWindow:
        return tuple(self._windows.get(key, ()))

    def append(self, key: SessionKey, turn: ConversationTurn) -> None:
        window = self._windows.setdefault(key, [])
        window.append(turn)
        overflow = len(window) - self.capacity
        if overflow > 0:
            del window[:overflow]

    def reset(self, key: SessionKey) -> None:
        """Drop the key's window; its lock goes once the last holder or waiter leaves."""
        self._windows.pop(key, None)
        if not self._lock_users.get(key):
            self._locks.pop(key, None)
        logger.info("History cleared for session %s", key)

    def build_request(self, window: Sequence[ConversationTurn], user_text: str) -> List[ConversationTurn]:
        """Window plus the new user turn, capped and starting with a user turn."""
        turns = list(window) + [ConversationTurn(role="user", content=user_text)]
        turns = turns[-self.capacity:]
        while turns and turns[0].role != "user":
            turns.pop(0)
        return turns

    def _lock_for(self, key: SessionKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def lock(self, key: SessionKey) -> AsyncIterator["SessionHandle"]:
        """Serialize all access to `key` for the duration of the block."""
        lock = self._lock_for(key)
        # Holders and waiters both count, so the lock is never swapped under a queued waiter.
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield SessionHandle(self, key)
        finally:
            remaining = self._lock_users[key] - 1
            if remaining:
                self._lock_users[key] = remaining
            else:
                del self._lock_users[key]
                if key not in self._windows:
                    self._locks.pop(key, None)


class SessionHandle:
    """Key-bound view of a SessionStore, valid while its lock is held."""

    def __init__(self, store: SessionStore, key: SessionKey):
        self.store = store
        self.key = key

    def get(self) -> HistoryWindow:
        return self.store.get(self.key)

    def append(self, turn: ConversationTurn) -> None:
        self.store.append(self.key, turn)

    def reset(self) -> None:
        self.store.reset(self.key)

    def build_request(self, user_text: str) -> List[ConversationTurn]:
        return self.store.build_request(self.get(), user_text)
