"""Qt timer that drives the MIDI player while a score is playing."""

from __future__ import annotations

import logging
from typing import Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from ..controller import ScoreController
from ..core.playback import PlaybackState

logger = logging.getLogger(__name__)


class PlaybackClock(QObject):
    """Calls :meth:`ScoreController.tick` every ``tick_interval_ms``.

    The timer only runs while the synchronizer reports
    :attr:`PlaybackState.PLAYING`, so an idle viewer costs nothing.

    Signals
    -------
    stateChanged(str, str)
        Emitted with the new state name and the session id (or ``""``).
    """

    stateChanged = pyqtSignal(str, str)

    def __init__(self, controller: ScoreController, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self.controller = controller
        interval = controller.config.get("playback", "tick_interval_ms", default=10)
        self._timer = QTimer(self)
        self._timer.setInterval(int(interval))
        self._timer.timeout.connect(controller.tick)
        controller.synchronizer.on_state_changed = self._on_state_changed

    @property
    def running(self) -> bool:
        return self._timer.isActive()

    def _on_state_changed(self, state: PlaybackState, session_id: Optional[str]) -> None:
        if state is PlaybackState.PLAYING:
            if not self._timer.isActive():
                logger.debug("Playback clock started for %s", session_id)
                self._timer.start()
        elif self._timer.isActive():
            logger.debug("Playback clock stopped")
            self._timer.stop()
        self.stateChanged.emit(state.name, session_id or "")
