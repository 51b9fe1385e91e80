"""Widgets that display one score block.

:class:`QtMountPoint` is the placeholder the viewer puts where a score
block appears in the document.  The rendering pipeline mounts either an
error label or a :class:`ScoreContainer` into it.  A container shows the
session's :class:`~scoreflow.core.document.ScoreDocument` in a
``QSvgWidget`` and reloads it whenever the document changes (page turns,
highlighted notes).  Its toolbar triggers the controller's entry
points: page turns, play, stop, download and open externally.

The container carries the session id in its ``sessionId`` property and
object name.  When it is destroyed the session is discarded from the
registry.
"""

from __future__ import annotations

import logging
from typing import Optional

from PyQt6.QtCore import QByteArray, Qt
from PyQt6.QtSvgWidgets import QSvgWidget
from PyQt6.QtWidgets import (
    QFileDialog,
    QFrame,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QSizePolicy,
    QVBoxLayout,
    QWidget,
)

from ..connectors import is_desktop
from ..controller import DEFAULT_DOWNLOAD_NAME, ScoreController
from ..core.document import ScoreDocument
from ..core.pipeline import MountPoint
from .async_job import start_job

logger = logging.getLogger(__name__)


# ── Toolbar ─────────────────────────────────────────────────────────

class ScoreToolbar(QWidget):
    """Row of small buttons acting on one session."""

    def __init__(self, container: "ScoreContainer") -> None:
        super().__init__(container)
        self._container = container
        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(4)

        self.prev_btn = self._button("‹", "Previous page", container.previous_page)
        self.next_btn = self._button("›", "Next page", container.next_page)
        self.page_label = QLabel(self)
        self.play_btn = self._button("►", "Play", container.play)
        self.stop_btn = self._button("■", "Stop", container.stop)
        self.download_btn = self._button("⇩", "Save page as SVG", container.download)
        self.open_btn = self._button("\U0001F4C2", "Open source file", container.open_externally)

        layout.addStretch(1)
        for widget in (
            self.prev_btn, self.page_label, self.next_btn,
            self.play_btn, self.stop_btn, self.download_btn, self.open_btn,
        ):
            layout.addWidget(widget)

    def _button(self, text: str, tooltip: str, slot) -> QPushButton:
        button = QPushButton(text, self)
        button.setToolTip(tooltip)
        button.setFlat(True)
        button.setFixedWidth(32)
        button.clicked.connect(slot)
        return button

    def set_page(self, page: int) -> None:
        self.page_label.setText(f"p. {page}")


def _release(document: ScoreDocument, observer, controller: ScoreController, session_id: str) -> None:
    document.remove_observer(observer)
    controller.discard(session_id)


# ── Container ───────────────────────────────────────────────────────

class ScoreContainer(QFrame):
    """Rendered score plus toolbar for one session."""

    def __init__(
        self,
        session_id: str,
        document: ScoreDocument,
        controller: ScoreController,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self.session_id = session_id
        self.document = document
        self.controller = controller
        self.setObjectName(session_id)
        self.setProperty("sessionId", session_id)
        self.setFrameShape(QFrame.Shape.StyledPanel)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)
        self.toolbar = ScoreToolbar(self)
        layout.addWidget(self.toolbar)
        self.svg = QSvgWidget(self)
        self.svg.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Fixed)
        self.svg.renderer().setAspectRatioMode(Qt.AspectRatioMode.KeepAspectRatio)
        layout.addWidget(self.svg)

        observer = self._on_document_changed
        document.add_observer(observer)
        # capture plain values: the C++ object is gone when this fires
        self.destroyed.connect(
            lambda *_, d=document, o=observer, c=controller, s=session_id: _release(d, o, c, s)
        )
        self._on_document_changed(document)

    def _on_document_changed(self, document: ScoreDocument) -> None:
        self.svg.load(QByteArray(document.to_bytes()))
        self.toolbar.set_page(document.page)
        self._fit()

    def _fit(self) -> None:
        size = self.svg.renderer().defaultSize()
        if size.width() > 0:
            self.svg.setFixedHeight(int(self.svg.width() * size.height() / size.width()))

    def resizeEvent(self, event) -> None:  # noqa: N802
        super().resizeEvent(event)
        self._fit()

    # ------------------------------------------------------------------
    # Toolbar actions
    # ------------------------------------------------------------------

    def _with_data(self, action: str, callback) -> None:
        start_job(
            self.controller.fetch_session_data,
            self.session_id,
            on_result=callback,
            on_error=lambda exc: self.controller.report_error(action, exc),
        )

    def play(self) -> None:
        self._with_data("play the score", lambda data: self.controller.play(self.session_id, data))

    def stop(self) -> None:
        self.controller.stop(self.session_id)

    def _turn(self, delta: int) -> None:
        page = self.document.page + delta
        if page < 1:
            return
        self._with_data(
            "turn the page",
            lambda data: self.controller.show_page(self.session_id, page, data),
        )

    def next_page(self) -> None:
        self._turn(1)

    def previous_page(self) -> None:
        self._turn(-1)

    def download(self) -> None:
        if not is_desktop(self.controller.platform):
            self.controller.download(self.session_id)
            return
        target, _ = QFileDialog.getSaveFileName(
            self, "Save score", DEFAULT_DOWNLOAD_NAME, "SVG images (*.svg)"
        )
        if target:
            self.controller.download(self.session_id, target)

    def open_externally(self) -> None:
        self.controller.open_externally(self.session_id)


# ── Mount point ─────────────────────────────────────────────────────

class QtMountPoint(QWidget, MountPoint):
    """Placeholder widget for one score block in the document."""

    def __init__(self, controller: ScoreController, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.controller = controller
        self._layout = QVBoxLayout(self)
        self._layout.setContentsMargins(0, 0, 0, 0)
        self.show_message("Loading score…")

    def _clear(self) -> None:
        while self._layout.count():
            item = self._layout.takeAt(0)
            widget = item.widget()
            if widget is not None:
                widget.deleteLater()

    def show_message(self, text: str, error: bool = False) -> None:
        self._clear()
        label = QLabel(text, self)
        label.setWordWrap(True)
        label.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
        if error:
            label.setStyleSheet("color: #b00020;")
        self._layout.addWidget(label)

    def mount_score(self, session_id: str, document: ScoreDocument) -> None:
        self._clear()
        self._layout.addWidget(ScoreContainer(session_id, document, self.controller, self))

    def mount_error(self, message: str) -> None:
        self.show_message(message, error=True)
