"""Playback synchronisation: MIDI clock in, highlighted notes out.

Only one score plays at a time.  Starting playback for a session:

1. re-activates the session in the shared engine (full reload: another
   session may have been live since),
2. asks the engine for MIDI data,
3. stops whatever was playing before and clears its highlights,
4. loads the MIDI into the player and starts it,
5. subscribes to the player's note events.

Each note-on/note-off event triggers a reconciliation, throttled to one
per ``interval_ms`` of playback time.  A reconciliation asks the engine
which notes sound at ``current_time + lookahead_ms`` and applies the
symmetric difference against the session's highlighted set, so the
marks on screen always equal the engine's answer for the last tick.

If anything else activated the engine while the score plays (a page
turn, another block being rendered), the playback's engine handle is
stale.  The synchroniser then activates its session again from the
bytes it fetched at play time before reading, without suspending.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, FrozenSet, Optional, Set

from ..audio.midi_player import NOTE_OFF, NOTE_ON, MidiPlayer, PlaybackEvent, Subscription
from ..errors import AudioGenerationError, ScoreflowError
from .engine import ActivatedEngine, EngineAdapter
from .sessions import SessionRegistry

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 50.0
DEFAULT_LOOKAHEAD_MS = 33.5


class PlaybackState(Enum):
    IDLE = "idle"
    PLAYING = "playing"


@dataclass
class _ActivePlayback:
    session_id: str
    data: bytes
    handle: ActivatedEngine
    subscription: Optional[Subscription] = None
    last_reconcile: Optional[float] = None


class PlaybackSynchronizer:
    """Drives the MIDI player and keeps note highlights in step with it.

    :param adapter: Shared engine adapter.
    :param registry: Session registry the played sessions live in.
    :param player: The process-wide :class:`MidiPlayer`.
    :param interval_ms: Minimum playback time between two reconciliations.
    :param lookahead_ms: Offset added to the player clock when querying
        the engine, compensating for output latency.
    :param follow_pages: Turn the displayed page when the sounding notes
        are on another page.
    :param on_state_changed: Called with the new state and the session id
        involved whenever playback starts or stops.
    """

    def __init__(
        self,
        adapter: EngineAdapter,
        registry: SessionRegistry,
        player: MidiPlayer,
        *,
        interval_ms: float = DEFAULT_INTERVAL_MS,
        lookahead_ms: float = DEFAULT_LOOKAHEAD_MS,
        follow_pages: bool = True,
        on_state_changed: Optional[Callable[[PlaybackState, Optional[str]], None]] = None,
    ) -> None:
        self.adapter = adapter
        self.registry = registry
        self.player = player
        self.interval_ms = float(interval_ms)
        self.lookahead_ms = float(lookahead_ms)
        self.follow_pages = follow_pages
        self.on_state_changed = on_state_changed
        self._active: Optional[_ActivePlayback] = None
        self._highlighted: Dict[str, Set[str]] = {}

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return PlaybackState.PLAYING if self._active is not None else PlaybackState.IDLE

    @property
    def active_session_id(self) -> Optional[str]:
        return self._active.session_id if self._active is not None else None

    def highlighted(self, session_id: str) -> FrozenSet[str]:
        return frozenset(self._highlighted.get(session_id, ()))

    def _emit_state(self, session_id: Optional[str]) -> None:
        if self.on_state_changed is not None:
            self.on_state_changed(self.state, session_id)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def play(self, session_id: str, data: bytes) -> None:
        """Start playback of ``session_id`` from freshly fetched ``data``.

        :raises SessionNotFoundError: for unknown sessions.
        :raises AudioGenerationError: if the engine yields no playable MIDI.
        """
        session = self.registry.require(session_id)
        handle = self.adapter.activate(session, data)
        audio = handle.render_audio()

        self.stop()
        active = _ActivePlayback(session_id=session_id, data=data, handle=handle)
        self._active = active
        data_url = "data:audio/midi;base64," + base64.b64encode(audio).decode("ascii")
        try:
            self.player.load_file(data_url, on_ready=lambda: self._on_ready(active))
        except ValueError as exc:
            self._active = None
            raise AudioGenerationError(f"Generated MIDI could not be loaded: {exc}") from exc
        logger.info("Playback started for session %s", session_id)
        self._emit_state(session_id)

    def _on_ready(self, active: _ActivePlayback) -> None:
        if self._active is not active:
            return
        self.player.start()
        active.subscription = self.player.subscribe(self._on_event, self._on_finished)

    def stop(self, session_id: Optional[str] = None) -> None:
        """Halt playback, detach from the player and clear highlights.

        There is a single playback stream; ``session_id`` is accepted so
        any session's stop control can end it.
        """
        active = self._active
        if active is None:
            return
        self._active = None
        if active.subscription is not None:
            active.subscription.cancel()
        self.player.stop()
        self._clear(active.session_id)
        logger.info("Playback stopped for session %s", active.session_id)
        self._emit_state(active.session_id)

    def _clear(self, session_id: str) -> None:
        self._highlighted.pop(session_id, None)
        session = self.registry.get(session_id)
        if session is not None and session.document is not None:
            session.document.clear_playing()

    # ------------------------------------------------------------------
    # Player callbacks
    # ------------------------------------------------------------------

    def _on_event(self, event: PlaybackEvent) -> None:
        if event.message not in (NOTE_ON, NOTE_OFF):
            return
        try:
            self.reconcile()
        except ScoreflowError as exc:
            logger.warning("Highlighting failed, stopping playback: %s", exc)
            self.stop()
        except Exception:
            logger.exception("Unexpected error while highlighting notes")
            self.stop()

    def _on_finished(self) -> None:
        logger.debug("Playback reached the end of the score")
        self.stop()

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def _live_handle(self, active: _ActivePlayback) -> ActivatedEngine:
        if not active.handle.is_live:
            session = self.registry.require(active.session_id)
            logger.debug("Engine was re-used meanwhile; re-activating %s", active.session_id)
            active.handle = self.adapter.activate(session, active.data)
        return active.handle

    def reconcile(self, force: bool = False) -> bool:
        """Bring the highlighted notes in line with the playback clock.

        :param force: Ignore the throttle interval.
        :return: ``True`` if the engine was queried.
        """
        active = self._active
        if active is None:
            return False
        now = self.player.current_time
        if not force and active.last_reconcile is not None and now - active.last_reconcile < self.interval_ms:
            return False
        active.last_reconcile = now

        session = self.registry.get(active.session_id)
        if session is None:
            logger.info("Session %s was unmounted during playback", active.session_id)
            self.stop()
            return False

        handle = self._live_handle(active)
        elements = handle.active_elements_at(now + self.lookahead_ms)
        current = self._highlighted.setdefault(active.session_id, set())
        document = session.document

        if (
            self.follow_pages
            and document is not None
            and elements.page is not None
            and elements.page != session.page
        ):
            document.load_page(handle.render_page(elements.page), elements.page)
            self.registry.update(active.session_id, page=elements.page)
            current.clear()

        if document is not None:
            # a page re-render drops the marks; resync with what is shown
            on_page = document.note_ids()
            if document.playing != current & on_page:
                current.difference_update(on_page)
                current.update(document.playing)

        added = elements.notes - current
        removed = current - elements.notes
        if document is not None and (added or removed):
            document.set_playing(add=added, remove=removed)
        current.difference_update(removed)
        current.update(added)
        return True


__all__ = ["PlaybackState", "PlaybackSynchronizer"]
