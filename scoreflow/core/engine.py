"""Single shared engraving engine and its session-switch protocol.

The Verovio toolkit is one stateful object shared by every score that
is on screen.  Only one session's data can be live inside it at a time,
and everything derived from it (a page SVG, MIDI data, the notes that
sound at a given time) is only meaningful right after that session's
data was loaded.

:class:`EngineAdapter` owns the toolkit.  ``activate`` runs the load
protocol and hands back an :class:`ActivatedEngine`; derived reads are
only available on that handle.  Every activation bumps an epoch, so a
handle kept across another session's activation refuses to answer
instead of returning the other session's data::

    handle = adapter.activate(session, data)
    svg = handle.render_page(1)
    adapter.activate(other, other_data)
    handle.render_page(1)          # raises StaleActivationError

The load protocol itself:

1. reset options to the engine defaults, then apply the session's
   effective options,
2. load the raw score data,
3. apply the ``measureRange`` selection, if any,
4. regenerate MEI with full layout information,
5. reload that layout-bearing MEI.

No step suspends, so no other caller can interleave between them.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional, TYPE_CHECKING

from ..errors import AudioGenerationError, EngineError, SelectionError, StaleActivationError

if TYPE_CHECKING:  # pragma: no cover
    from .sessions import Session

logger = logging.getLogger(__name__)

_ZIP_MAGIC = b"PK\x03\x04"


def _as_dict(value: Any) -> Dict[str, Any]:
    """Normalise toolkit results that may come back as JSON text."""
    if isinstance(value, dict):
        return value
    if not value:
        return {}
    try:
        decoded = json.loads(value)
    except (TypeError, ValueError):
        return {}
    return decoded if isinstance(decoded, dict) else {}


class VerovioEngine:
    """Thin snake_case facade over :class:`verovio.toolkit`.

    The facade exists so the adapter depends on a small, explicit set of
    calls; tests substitute an object with the same methods.
    """

    def __init__(self, toolkit: Any = None) -> None:
        if toolkit is None:
            import verovio

            toolkit = verovio.toolkit()
        self._tk = toolkit

    def set_options(self, options: Mapping[str, Any]) -> None:
        self._tk.setOptions(dict(options))

    def reset_options(self) -> None:
        self._tk.resetOptions()

    def load_data(self, data: bytes | str) -> bool:
        if isinstance(data, bytes):
            if data.startswith(_ZIP_MAGIC):
                # compressed MusicXML
                return bool(self._tk.loadZipDataBase64(base64.b64encode(data).decode("ascii")))
            data = data.decode("utf-8-sig")
        return bool(self._tk.loadData(data))

    def select(self, selection: Mapping[str, Any]) -> bool:
        return bool(self._tk.select(dict(selection)))

    def get_mei(self, no_layout: bool = False) -> str:
        return self._tk.getMEI({"noLayout": no_layout}) or ""

    def get_page_count(self) -> int:
        return int(self._tk.getPageCount() or 0)

    def render_to_svg(self, page: int) -> str:
        return self._tk.renderToSVG(page) or ""

    def render_to_midi(self) -> str:
        return self._tk.renderToMIDI() or ""

    def get_elements_at_time(self, millis: int) -> Dict[str, Any]:
        return _as_dict(self._tk.getElementsAtTime(int(millis)))


@dataclass(frozen=True)
class ElementsAtTime:
    """Score elements sounding at one instant."""
    notes: FrozenSet[str] = field(default_factory=frozenset)
    page: Optional[int] = None


class ActivatedEngine:
    """Handle for derived reads against one session's live engine state.

    Obtained from :meth:`EngineAdapter.activate`; becomes stale as soon as
    the adapter activates anything else.
    """

    def __init__(self, adapter: "EngineAdapter", session_id: str, epoch: int) -> None:
        self._adapter = adapter
        self.session_id = session_id
        self._epoch = epoch

    @property
    def is_live(self) -> bool:
        return self._adapter.epoch == self._epoch

    def _engine(self) -> Any:
        if not self.is_live:
            raise StaleActivationError(
                f"Engine state for session {self.session_id} was replaced; activate it again"
            )
        return self._adapter.engine

    @property
    def page_count(self) -> int:
        return max(1, self._engine().get_page_count())

    def render_page(self, page: int = 1) -> str:
        """Render ``page`` (clamped to the available pages) as SVG text."""
        engine = self._engine()
        page = max(1, min(int(page), max(1, engine.get_page_count())))
        svg = engine.render_to_svg(page)
        if not svg:
            raise EngineError(f"Engine returned no SVG for page {page}")
        return svg

    def render_audio(self) -> bytes:
        """Return the session's MIDI rendering as raw bytes.

        :raises AudioGenerationError: if the engine produced nothing usable.
        """
        encoded = self._engine().render_to_midi()
        if not encoded:
            raise AudioGenerationError(f"No MIDI data generated for session {self.session_id}")
        try:
            audio = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise AudioGenerationError(f"Engine returned malformed MIDI data: {exc}") from exc
        if not audio:
            raise AudioGenerationError(f"No MIDI data generated for session {self.session_id}")
        return audio

    def active_elements_at(self, millis: float) -> ElementsAtTime:
        raw = self._engine().get_elements_at_time(int(millis))
        notes = raw.get("notes") or []
        page = raw.get("page")
        return ElementsAtTime(
            notes=frozenset(str(n) for n in notes),
            page=int(page) if isinstance(page, (int, float)) and page > 0 else None,
        )


class EngineAdapter:
    """Owner of the process-wide engraving engine."""

    def __init__(self, engine: Any = None) -> None:
        self.engine = engine if engine is not None else VerovioEngine()
        self.epoch = 0
        self.live_session_id: Optional[str] = None

    def activate(self, session: "Session", data: bytes | str) -> ActivatedEngine:
        """Make ``session`` the engine's live state and return a read handle.

        :raises SelectionError: if the engine rejects the measure range.
        :raises EngineError: if the data cannot be loaded or laid out.
        """
        # Invalidate outstanding handles before touching the engine; a
        # failure half-way leaves no handle that could read mixed state.
        self.epoch += 1
        self.live_session_id = None
        engine = self.engine

        engine.reset_options()
        engine.set_options(session.options)
        if not engine.load_data(data):
            raise EngineError(f"Engine could not load data for {session.path}")
        if session.measure_range:
            if not engine.select({"measureRange": session.measure_range}):
                raise SelectionError(f"Failed to apply measureRange: {session.measure_range}")
        mei = engine.get_mei(no_layout=False)
        if not mei:
            raise EngineError("Failed to retrieve MEI data with layout")
        if not engine.load_data(mei):
            raise EngineError("Engine could not reload layout data")

        self.live_session_id = session.id
        logger.debug("Activated session %s (epoch %d)", session.id, self.epoch)
        return ActivatedEngine(self, session.id, self.epoch)

    def restore_defaults(self, options: Optional[Mapping[str, Any]] = None) -> None:
        """Reset engine options to the host-wide defaults after a one-off render.

        Outstanding handles become stale: the live state no longer matches
        any session's effective options.
        """
        self.epoch += 1
        self.live_session_id = None
        self.engine.reset_options()
        if options:
            self.engine.set_options(options)


__all__ = ["VerovioEngine", "ElementsAtTime", "ActivatedEngine", "EngineAdapter"]
