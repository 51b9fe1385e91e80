"""Rendering pipeline: block text in, mounted score out.

``render`` is the whole operation in one call.  The GUI splits it in
two so that the fetch (the only slow, suspending step) can run on a
worker thread while all engine work stays on the UI thread::

    token = pipeline.begin(mount)
    prepared = pipeline.prepare(source)          # worker thread
    pipeline.complete(prepared, mount, token)    # UI thread

``begin`` hands out a generation token per mount point.  When a mount
point is re-rendered while an older render is still fetching, the older
completion is dropped instead of overwriting the newer result.
"""

from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Union

from ..errors import ScoreflowError
from .block_parser import BlockSpec, merge_options, parse_block
from .document import DEFAULT_HIGHLIGHT_COLOR, ScoreDocument
from .engine import EngineAdapter
from .sessions import SessionRegistry

logger = logging.getLogger(__name__)

HostOptions = Union[Mapping[str, Any], Callable[[], Mapping[str, Any]]]


class MountPoint:
    """Place in the host document where one score block is displayed."""

    def mount_score(self, session_id: str, document: ScoreDocument) -> None:
        raise NotImplementedError

    def mount_error(self, message: str) -> None:
        raise NotImplementedError


@dataclass
class PreparedBlock:
    """Result of the parse and fetch steps."""
    source: str
    spec: Optional[BlockSpec] = None
    data: Optional[bytes] = None
    error: Optional[ScoreflowError] = None


class RenderingPipeline:
    """Orchestrates parser, fetcher and engine adapter for score blocks.

    :param fetcher: Object with ``fetch(path) -> bytes``.
    :param adapter: The shared :class:`EngineAdapter`.
    :param registry: The :class:`SessionRegistry` sessions are added to.
    :param host_options: Host-wide render options, or a callable returning
        them so that configuration changes apply to the next render.
    """

    def __init__(
        self,
        fetcher: Any,
        adapter: EngineAdapter,
        registry: SessionRegistry,
        host_options: Optional[HostOptions] = None,
        highlight_color: str = DEFAULT_HIGHLIGHT_COLOR,
    ) -> None:
        self.fetcher = fetcher
        self.adapter = adapter
        self.registry = registry
        self._host_options = host_options or {}
        self.highlight_color = highlight_color
        self._generations: "weakref.WeakKeyDictionary[Any, int]" = weakref.WeakKeyDictionary()

    @property
    def host_options(self) -> Dict[str, Any]:
        source = self._host_options
        return dict(source() if callable(source) else source)

    # ------------------------------------------------------------------
    # Generations
    # ------------------------------------------------------------------

    def begin(self, mount: MountPoint) -> int:
        token = self._generations.get(mount, 0) + 1
        self._generations[mount] = token
        return token

    def is_current(self, mount: MountPoint, token: int) -> bool:
        return self._generations.get(mount) == token

    def cancel(self, mount: MountPoint) -> None:
        """Drop any render still in flight for ``mount``."""
        if mount in self._generations:
            self._generations[mount] += 1

    # ------------------------------------------------------------------
    # Render
    # ------------------------------------------------------------------

    def prepare(self, source: str) -> PreparedBlock:
        """Parse the block and fetch its data; errors are captured, not raised."""
        prepared = PreparedBlock(source=source)
        try:
            prepared.spec = parse_block(source)
            prepared.data = self.fetcher.fetch(prepared.spec.path)
        except ScoreflowError as exc:
            logger.warning("Could not prepare score block: %s", exc)
            prepared.error = exc
        return prepared

    def complete(self, prepared: PreparedBlock, mount: MountPoint, token: Optional[int] = None) -> Optional[str]:
        """Register, activate and mount a prepared block.

        :return: The new session id, or ``None`` if an error was mounted
            or the render was superseded.
        """
        if token is not None and not self.is_current(mount, token):
            logger.debug("Dropping superseded render (token %s)", token)
            return None
        if prepared.error is not None or prepared.spec is None or prepared.data is None:
            mount.mount_error(f"Error rendering data: {prepared.error}")
            return None

        spec = prepared.spec
        host = self.host_options
        session_id = self.registry.create(
            spec.path,
            merge_options(host, spec.options),
            spec.measure_range,
        )
        committed = False
        try:
            session = self.registry.require(session_id)
            handle = self.adapter.activate(session, prepared.data)
            document = ScoreDocument(
                session_id,
                handle.render_page(1),
                page=1,
                highlight_color=self.highlight_color,
            )
            self.registry.update(session_id, page=1, document=document)
            mount.mount_score(session_id, document)
            committed = True
        except (ScoreflowError, ValueError) as exc:
            logger.warning("Rendering %s failed: %s", spec.path, exc)
            mount.mount_error(f"Error rendering data: {exc}")
            return None
        finally:
            if not committed:
                self.registry.discard(session_id)
            self.adapter.restore_defaults(host)

        logger.info("Rendered %s as session %s", spec.path, session_id)
        return session_id

    def render(self, source: str, mount: MountPoint) -> Optional[str]:
        token = self.begin(mount)
        return self.complete(self.prepare(source), mount, token)

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def show_page(self, session_id: str, page: int, data: bytes) -> int:
        """Re-render a session at ``page`` (clamped) and return the page shown."""
        session = self.registry.require(session_id)
        try:
            handle = self.adapter.activate(session, data)
            page = max(1, min(int(page), handle.page_count))
            svg = handle.render_page(page)
        finally:
            self.adapter.restore_defaults(self.host_options)
        if session.document is not None:
            session.document.load_page(svg, page)
        self.registry.update(session_id, page=page)
        return page


__all__ = ["MountPoint", "PreparedBlock", "RenderingPipeline"]
