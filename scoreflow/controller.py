"""Composition root tying the rendering and playback subsystems together.

:class:`ScoreController` plays the role of the viewer plugin: it owns
the process-wide engine, the MIDI player, the session registry and the
fetcher, and it exposes the entry points that the host and the score
toolbars call (render, play, stop, page turns, download, open
externally).

Every entry point is its own error boundary.  Failures are logged and
turned into local feedback: a failed render shows an inline message in
its block, everything else goes through the ``notify`` callback (the
GUI shows it in the status bar).  Nothing raised below this layer
reaches the host application.
"""

from __future__ import annotations

import logging
import sys
import webbrowser
from pathlib import Path
from typing import Any, Callable, Optional, Union

from .audio.midi_player import MidiPlayer
from .audio.synth import FluidSynthOutput, playback_output
from .config import AppConfig, get_app_config
from .connectors import DataFetcher, get_default_fetcher, is_desktop, is_url
from .core.document import DEFAULT_HIGHLIGHT_COLOR
from .core.engine import EngineAdapter
from .core.pipeline import MountPoint, PreparedBlock, RenderingPipeline
from .core.playback import DEFAULT_INTERVAL_MS, DEFAULT_LOOKAHEAD_MS, PlaybackSynchronizer
from .core.sessions import SessionRegistry
from .errors import AudioOutputError, ScoreflowError, UnsupportedPlatformError

logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_NAME = "score.svg"


class ScoreController:
    """Entry points for everything a displayed score can do.

    :param config: Application configuration; loaded from the default
        locations when omitted.
    :param engine: Engraving engine facade; a Verovio toolkit by default.
    :param player: MIDI player; created from the ``playback`` config,
        sounding through FluidSynth or a MIDI port (see
        :func:`~scoreflow.audio.synth.playback_output`).
    :param fetcher: Score data fetcher; built from ``storage``/``http``.
    :param notify: Receives short user-facing messages.
    :param platform: ``sys.platform`` override, used by tests.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        *,
        engine: Any = None,
        player: Optional[MidiPlayer] = None,
        fetcher: Optional[DataFetcher] = None,
        notify: Optional[Callable[[str], None]] = None,
        platform: Optional[str] = None,
    ) -> None:
        self.config = config or get_app_config()
        self.platform = platform or sys.platform
        self.notify: Callable[[str], None] = notify or (lambda message: logger.info("Notice: %s", message))

        self.fetcher = fetcher or get_default_fetcher(
            self.config.get("storage", default={}),
            self.config.get("http", default={}),
        )
        self.adapter = EngineAdapter(engine)
        self.registry = SessionRegistry()
        self.pipeline = RenderingPipeline(
            self.fetcher,
            self.adapter,
            self.registry,
            host_options=lambda: self.config.render_options,
            highlight_color=self.config.get("playback", "highlight_color", default=DEFAULT_HIGHLIGHT_COLOR),
        )
        self.player = player or MidiPlayer(output=self._open_output())
        self.synchronizer = PlaybackSynchronizer(
            self.adapter,
            self.registry,
            self.player,
            interval_ms=self.config.get("playback", "highlight_interval_ms", default=DEFAULT_INTERVAL_MS),
            lookahead_ms=self.config.get("playback", "lookahead_ms", default=DEFAULT_LOOKAHEAD_MS),
        )

    def _open_output(self) -> Union[None, str, FluidSynthOutput]:
        try:
            return playback_output(self.config.get("playback", default={}))
        except AudioOutputError as exc:
            logger.warning("Sound output unavailable, playback will be silent: %s", exc)
            self.notify(f"Playback will be silent: {exc}")
            return None

    def _report(self, action: str, exc: BaseException) -> None:
        if isinstance(exc, UnsupportedPlatformError):
            self.notify(str(exc))
            return
        if isinstance(exc, ScoreflowError):
            logger.warning("Could not %s: %s", action, exc)
        else:
            logger.error("Unexpected error while trying to %s", action, exc_info=exc)
        self.notify(f"Could not {action}: {exc}")

    def report_error(self, action: str, exc: BaseException) -> None:
        """Public form of the error boundary for work finished elsewhere (GUI jobs)."""
        self._report(action, exc)

    def _mount_error(self, mount: MountPoint, message: str) -> None:
        try:
            mount.mount_error(message)
        except Exception:
            # the mount point may already be gone (its page was replaced)
            logger.warning("Could not show render error: %s", message, exc_info=True)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render_block(self, source: str, mount: MountPoint) -> Optional[str]:
        """Render a score block synchronously into ``mount``."""
        try:
            return self.pipeline.render(source, mount)
        except Exception as exc:
            logger.exception("Unexpected error while rendering a score block")
            self._mount_error(mount, f"Error rendering data: {exc}")
            return None

    def begin_render(self, mount: MountPoint) -> int:
        return self.pipeline.begin(mount)

    def cancel_render(self, mount: MountPoint) -> None:
        """Forget a render in flight for a mount point that is being removed."""
        self.pipeline.cancel(mount)

    def prepare_block(self, source: str) -> PreparedBlock:
        """Parse and fetch a block; safe to call from a worker thread."""
        return self.pipeline.prepare(source)

    def complete_block(self, prepared: PreparedBlock, mount: MountPoint, token: int) -> Optional[str]:
        """Finish a render started with :meth:`begin_render` on the UI thread."""
        try:
            return self.pipeline.complete(prepared, mount, token)
        except Exception as exc:
            logger.exception("Unexpected error while rendering a score block")
            if self.pipeline.is_current(mount, token):
                self._mount_error(mount, f"Error rendering data: {exc}")
            return None

    def fetch_session_data(self, session_id: str) -> bytes:
        """Fetch the current source data of a session (may raise)."""
        return self.fetcher.fetch(self.registry.require(session_id).path)

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def show_page(self, session_id: str, page: int, data: Optional[bytes] = None) -> Optional[int]:
        try:
            if data is None:
                data = self.fetch_session_data(session_id)
            return self.pipeline.show_page(session_id, page, data)
        except Exception as exc:
            self._report("turn the page", exc)
            return None

    def next_page(self, session_id: str) -> Optional[int]:
        session = self.registry.get(session_id)
        return self.show_page(session_id, session.page + 1) if session else None

    def previous_page(self, session_id: str) -> Optional[int]:
        session = self.registry.get(session_id)
        return self.show_page(session_id, session.page - 1) if session else None

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def play(self, session_id: str, data: Optional[bytes] = None) -> bool:
        """Start playback of a session; returns ``False`` if it did not start."""
        try:
            if data is None:
                data = self.fetch_session_data(session_id)
            self.synchronizer.play(session_id, data)
            return True
        except Exception as exc:
            self._report("play the score", exc)
            return False

    def stop(self, session_id: Optional[str] = None) -> None:
        try:
            self.synchronizer.stop(session_id)
        except Exception as exc:
            self._report("stop playback", exc)

    def tick(self) -> None:
        """Advance the MIDI player; called from the host's timer."""
        try:
            self.player.pump()
        except Exception as exc:
            self.synchronizer.stop()
            self._report("continue playback", exc)

    # ------------------------------------------------------------------
    # Toolbar actions
    # ------------------------------------------------------------------

    def download(self, session_id: str, target: Union[str, Path, None] = None) -> Optional[Path]:
        """Write the SVG of the session's current page to ``target``."""
        try:
            if not is_desktop(self.platform):
                raise UnsupportedPlatformError("Downloading files is not supported on mobile.")
            session = self.registry.require(session_id)
            if session.document is None:
                raise ScoreflowError(f"Session {session_id} is not mounted")
            path = Path(target) if target else Path.cwd() / DEFAULT_DOWNLOAD_NAME
            path.write_bytes(session.document.to_bytes())
            logger.info("Saved page %d of %s to %s", session.page, session.path, path)
            return path
        except Exception as exc:
            self._report("save the score", exc)
            return None

    def open_externally(self, session_id: str) -> bool:
        """Open a session's source file (or URL) outside the viewer."""
        try:
            session = self.registry.require(session_id)
            if is_url(session.path):
                if not is_desktop(self.platform):
                    raise UnsupportedPlatformError("Opening files externally is not supported on mobile.")
                webbrowser.open(session.path)
            else:
                self.fetcher.vault.open_externally(session.path, platform=self.platform)
            return True
        except Exception as exc:
            self._report("open the file", exc)
            return False

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------

    def discard(self, session_id: str) -> None:
        """Forget a session whose container was unmounted."""
        if self.synchronizer.active_session_id == session_id:
            self.stop(session_id)
        self.registry.discard(session_id)

    def shutdown(self) -> None:
        self.stop()
        self.player.close()


__all__ = ["ScoreController", "DEFAULT_DOWNLOAD_NAME"]
