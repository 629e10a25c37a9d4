# chatbot/session.py

"""
Conversation state for the next-best professor handoff.

Each conversation remembers the course and professor it last talked about,
plus a cursor into that course's ranking list. State is kept in memory only,
keyed by conversation id; callers that never send an id all share the
"default" conversation.

The store is bounded: conversations idle for longer than the TTL are dropped,
and when it is full the least recently used conversation goes first.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict, Optional
import asyncio
import logging
import time

log = logging.getLogger("chatbot.session")

DEFAULT_CONVERSATION = "default"
MAX_SESSIONS = 1000
SESSION_TTL_SECS = 3600


@dataclass
class SessionState:
    last_course: Optional[str] = None       # e.g. "MATH 1A"
    last_professor: Optional[str] = None    # most recently suggested / mentioned name
    rank_cursor: Dict[str, int] = field(default_factory=dict)  # course -> index served


class SessionStore:
    def __init__(
        self,
        max_size: int = MAX_SESSIONS,
        ttl_seconds: float = SESSION_TTL_SECS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, SessionState] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._last_seen: Dict[str, float] = {}

    def _busy(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def _drop(self, key: str) -> None:
        self._sessions.pop(key, None)
        self._locks.pop(key, None)
        self._last_seen.pop(key, None)

    def _expire(self, now: float) -> None:
        stale = [k for k, seen in self._last_seen.items() if now - seen >= self.ttl_seconds]
        for key in stale:
            if not self._busy(key):
                self._drop(key)

    def _evict_oldest(self) -> None:
        idle = [k for k in self._last_seen if not self._busy(k)]
        if not idle:
            return
        oldest = min(idle, key=lambda k: self._last_seen[k])
        log.info("Session store full (%d); dropping conversation %s", self.max_size, oldest)
        self._drop(oldest)

    def get(self, conversation_id: Optional[str] = None) -> SessionState:
        key = conversation_id or DEFAULT_CONVERSATION
        now = self._clock()
        self._expire(now)
        if key not in self._sessions:
            if len(self._sessions) >= self.max_size:
                self._evict_oldest()
            self._sessions[key] = SessionState()
        # re-insert so ties on the clock still evict in use order
        self._last_seen.pop(key, None)
        self._last_seen[key] = now
        return self._sessions[key]

    def reset(self, conversation_id: Optional[str] = None) -> None:
        self._drop(conversation_id or DEFAULT_CONVERSATION)

    @asynccontextmanager
    async def conversation(self, conversation_id: Optional[str] = None) -> AsyncIterator[SessionState]:
        """
        Yield the conversation's state. A named conversation holds its lock
        meanwhile, so its turns run one after another. The shared default
        conversation takes no lock: anonymous clients answer concurrently and
        the last writer wins.
        """
        key = conversation_id or DEFAULT_CONVERSATION
        if key == DEFAULT_CONVERSATION:
            yield self.get(key)
        else:
            lock = self._locks.setdefault(key, asyncio.Lock())
            async with lock:
                yield self.get(key)

    def __len__(self) -> int:
        return len(self._sessions)
