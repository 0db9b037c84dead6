"""In-process registry of live session machines.

HTTP requests are stateless, but a session's timer and its busy flag live in
memory. Every request for the same key goes through the same live object and
its lock.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Hashable, Optional

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Maps a key to one live machine or orchestrator."""

    def __init__(self, name: str):
        self.name = name
        self._sessions: dict[Hashable, Any] = {}
        self._locks: defaultdict[Hashable, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock(self, key: Hashable) -> asyncio.Lock:
        return self._locks[key]

    def get(self, key: Hashable) -> Optional[Any]:
        return self._sessions.get(key)

    async def get_or_load(self, key: Hashable, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Return the live object for ``key``, loading it on first use."""
        session = self._sessions.get(key)
        if session is None:
            session = await loader()
            # Another request may have loaded it while we awaited
            session = self._sessions.setdefault(key, session)
        return session

    def put(self, key: Hashable, session: Any) -> None:
        self._sessions[key] = session

    def discard(self, key: Hashable, session: Any = None) -> None:
        """Drop the live object for ``key`` and close it.

        When ``session`` is given, only that object is dropped; a newer one
        loaded under the same key is left alone.
        """
        current = self._sessions.get(key)
        if session is not None and current is not None and current is not session:
            return
        session = self._sessions.pop(key, None)
        self._locks.pop(key, None)
        if session is not None and hasattr(session, "close"):
            session.close()
            logger.debug(f"Released {self.name} session {key}")

    def close_all(self) -> None:
        for key in list(self._sessions):
            self.discard(key)
        logger.info(f"Closed all live {self.name} sessions")


interview_sessions = SessionRegistry("interview")
study_sessions = SessionRegistry("study")
