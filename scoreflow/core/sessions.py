"""Registry of displayed score sessions.

A session is one displayed score: the inputs needed to make its data
live in the shared engine again (source path, effective options,
measure range) plus the page it currently shows and the document it is
mounted as.  Sessions are created when a block is rendered and evicted
when their container is unmounted.
"""

from __future__ import annotations

import logging
import random
import string
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, Optional, TYPE_CHECKING

from ..errors import SessionNotFoundError

if TYPE_CHECKING:  # pragma: no cover
    from .document import ScoreDocument

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_session_id() -> str:
    """Return an id such as ``rendering-1712345678901234567-k3j9x0a1b``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"rendering-{time.time_ns()}-{suffix}"


@dataclass
class Session:
    """Rendering inputs and view state of one displayed score."""
    id: str
    path: str
    options: Dict[str, Any] = field(default_factory=dict)
    measure_range: Optional[str] = None
    page: int = 1
    document: Optional["ScoreDocument"] = field(default=None, repr=False, compare=False)


class SessionRegistry:
    """Maps session ids to :class:`Session` objects."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}

    def create(
        self,
        path: str,
        options: Optional[Dict[str, Any]] = None,
        measure_range: Optional[str] = None,
    ) -> str:
        session_id = generate_session_id()
        while session_id in self._sessions:
            session_id = generate_session_id()
        self._sessions[session_id] = Session(
            id=session_id,
            path=path,
            options=dict(options or {}),
            measure_range=measure_range,
        )
        logger.debug("Registered session %s for %s", session_id, path)
        return session_id

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def require(self, session_id: str) -> Session:
        """Like :meth:`get` but raise :class:`SessionNotFoundError`."""
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"No score session registered for id {session_id!r}")
        return session

    def update(self, session_id: str, **patch: Any) -> Session:
        """Replace the given attributes of a session.

        ``id`` cannot be patched; unknown attribute names raise
        :class:`TypeError` just like the dataclass constructor would.
        """
        if "id" in patch:
            raise ValueError("Session id is immutable")
        session = replace(self.require(session_id), **patch)
        self._sessions[session_id] = session
        return session

    def discard(self, session_id: str) -> None:
        """Forget a session; unknown ids are ignored."""
        if self._sessions.pop(session_id, None) is not None:
            logger.debug("Evicted session %s", session_id)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))


__all__ = ["Session", "SessionRegistry", "generate_session_id"]
