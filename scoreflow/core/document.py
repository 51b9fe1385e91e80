"""In-memory SVG document of one displayed score.

A :class:`ScoreDocument` is what a score container shows: the SVG of
the session's current page, with a ``playing`` marker on the note
groups that are sounding.  Verovio writes every note as
``<g id="note-..." class="note">``; marking a note adds ``playing`` to
its class list and paints it with the highlight colour so that SVG
renderers without CSS support (``QSvgWidget``) show it as well.

Observers registered with :meth:`ScoreDocument.add_observer` are called
after every change so that a widget can reload the image.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"
PLAYING_CLASS = "playing"
DEFAULT_HIGHLIGHT_COLOR = "crimson"

ET.register_namespace("", SVG_NS)
ET.register_namespace("xlink", XLINK_NS)

Observer = Callable[["ScoreDocument"], None]


def _classes(element: ET.Element) -> List[str]:
    return (element.get("class") or "").split()


class ScoreDocument:
    """SVG page of a session plus its highlighted notes."""

    def __init__(
        self,
        session_id: str,
        svg: str,
        *,
        page: int = 1,
        highlight_color: str = DEFAULT_HIGHLIGHT_COLOR,
    ) -> None:
        self.session_id = session_id
        self.highlight_color = highlight_color
        self._observers: List[Observer] = []
        self._root: ET.Element
        self._by_id: Dict[str, ET.Element] = {}
        self._saved_paint: Dict[str, Tuple[Optional[str], Optional[str]]] = {}
        self.page = page
        self._parse(svg)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def add_observer(self, callback: Observer) -> None:
        self._observers.append(callback)

    def remove_observer(self, callback: Observer) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def _changed(self) -> None:
        for callback in list(self._observers):
            callback(self)

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def _parse(self, svg: str) -> None:
        try:
            self._root = ET.fromstring(svg.strip())
        except ET.ParseError as exc:
            raise ValueError(f"Rendered page is not valid SVG: {exc}") from exc
        self._by_id = {el.get("id"): el for el in self._root.iter() if el.get("id")}
        self._saved_paint.clear()

    def load_page(self, svg: str, page: int) -> None:
        """Replace the displayed page; highlights do not carry over."""
        self._parse(svg)
        self.page = page
        self._changed()

    def to_svg(self) -> str:
        return ET.tostring(self._root, encoding="unicode")

    def to_bytes(self) -> bytes:
        return ET.tostring(self._root, encoding="utf-8", xml_declaration=True)

    def note_ids(self) -> FrozenSet[str]:
        """Ids of all note groups on the current page."""
        return frozenset(
            el_id for el_id, el in self._by_id.items()
            if el.tag in (f"{{{SVG_NS}}}g", "g") and "note" in _classes(el)
        )

    def _note(self, note_id: str) -> Optional[ET.Element]:
        el = self._by_id.get(note_id)
        if el is None or el.tag not in (f"{{{SVG_NS}}}g", "g") or "note" not in _classes(el):
            return None
        return el

    # ------------------------------------------------------------------
    # Highlighting
    # ------------------------------------------------------------------

    @property
    def playing(self) -> FrozenSet[str]:
        return frozenset(self._saved_paint)

    def set_playing(self, add: Iterable[str] = (), remove: Iterable[str] = ()) -> Set[str]:
        """Mark ``add`` as playing and unmark ``remove``.

        Ids not present on the current page are skipped.  Returns the ids
        that actually changed; observers are notified only if any did.
        """
        changed: Set[str] = set()
        for note_id in remove:
            el = self._note(note_id)
            if el is None or note_id not in self._saved_paint:
                continue
            fill, stroke = self._saved_paint.pop(note_id)
            el.set("class", " ".join(c for c in _classes(el) if c != PLAYING_CLASS))
            for attr, value in (("fill", fill), ("stroke", stroke)):
                if value is None:
                    el.attrib.pop(attr, None)
                else:
                    el.set(attr, value)
            changed.add(note_id)
        for note_id in add:
            el = self._note(note_id)
            if el is None or note_id in self._saved_paint:
                continue
            self._saved_paint[note_id] = (el.get("fill"), el.get("stroke"))
            el.set("class", " ".join(_classes(el) + [PLAYING_CLASS]))
            el.set("fill", self.highlight_color)
            el.set("stroke", self.highlight_color)
            changed.add(note_id)
        if changed:
            self._changed()
        return changed

    def clear_playing(self) -> None:
        self.set_playing(remove=list(self._saved_paint))


__all__ = ["ScoreDocument", "PLAYING_CLASS", "SVG_NS"]
