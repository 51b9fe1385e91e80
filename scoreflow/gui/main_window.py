"""Main window of the scoreflow viewer.

The window displays one Markdown document.  Prose is shown as rich
text, and every ``verovio`` block becomes a :class:`QtMountPoint` that
is rendered asynchronously: the block is parsed and its data fetched
in a worker thread, then the engine work happens back on the UI thread
through :meth:`ScoreController.complete_block`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction
from PyQt6.QtWidgets import (
    QFileDialog,
    QLabel,
    QMainWindow,
    QMessageBox,
    QScrollArea,
    QVBoxLayout,
    QWidget,
)

from ..controller import ScoreController
from ..utils.markdown_blocks import split_document
from .async_job import start_job
from .playback_clock import PlaybackClock
from .score_widget import QtMountPoint

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────────────
# DocumentWindow
# ──────────────────────────────────────────────────────────────────────────────

class DocumentWindow(QMainWindow):
    """Top-level window showing a document with embedded scores."""

    def __init__(self, controller: ScoreController) -> None:
        super().__init__()
        self.controller = controller
        self.controller.notify = self._notify
        self.clock = PlaybackClock(controller, self)
        self.clock.stateChanged.connect(self._on_playback_state)
        self.current_path: Optional[Path] = None
        self._mounts: List[QtMountPoint] = []
        self.init_ui()

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    def init_ui(self) -> None:
        self.setWindowTitle("scoreflow")
        self.setGeometry(100, 100, 1000, 800)
        self.create_menu_bar()

        self.scroll = QScrollArea(self)
        self.scroll.setWidgetResizable(True)
        self.setCentralWidget(self.scroll)
        self._reset_page()
        self.statusBar().showMessage("Ready – File → Open to load a document")

    def create_menu_bar(self) -> None:
        menubar = self.menuBar()

        # FILE ──────────────────────────────────────────────────────────
        file_menu = menubar.addMenu("&File")
        open_action = QAction("&Open…", self)
        open_action.setShortcut("Ctrl+O")
        open_action.triggered.connect(self.open_document_dialog)
        file_menu.addAction(open_action)
        reload_action = QAction("&Reload", self)
        reload_action.setShortcut("F5")
        reload_action.triggered.connect(self.reload)
        file_menu.addAction(reload_action)
        file_menu.addSeparator()
        exit_action = QAction("E&xit", self)
        exit_action.setShortcut("Ctrl+Q")
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        # PLAYBACK ──────────────────────────────────────────────────────
        play_menu = menubar.addMenu("&Playback")
        stop_action = QAction("&Stop", self)
        stop_action.setShortcut("Escape")
        stop_action.triggered.connect(lambda: self.controller.stop())
        play_menu.addAction(stop_action)

        # HELP ──────────────────────────────────────────────────────────
        help_menu = menubar.addMenu("&Help")
        about_action = QAction("&About", self)
        about_action.triggered.connect(self._show_about)
        help_menu.addAction(about_action)

    def _reset_page(self) -> QVBoxLayout:
        # deleting the old page destroys its containers, which discards their sessions
        self.controller.stop()
        for mount in self._mounts:
            self.controller.cancel_render(mount)
        self._mounts = []
        page = QWidget()
        layout = QVBoxLayout(page)
        layout.setAlignment(Qt.AlignmentFlag.AlignTop)
        self.scroll.setWidget(page)
        return layout

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def open_document_dialog(self) -> None:
        start_dir = str(self.controller.fetcher.vault.vault_dir)
        path, _ = QFileDialog.getOpenFileName(
            self, "Open document", start_dir, "Markdown (*.md *.markdown);;All files (*)"
        )
        if path:
            self.load_document(path)

    def reload(self) -> None:
        if self.current_path is not None:
            self.load_document(self.current_path)

    def load_document(self, path) -> None:
        """Display the document at ``path``, rendering its score blocks."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            QMessageBox.warning(self, "Open document", f"Could not read {path}:\n{exc}")
            return
        self.current_path = path
        self.setWindowTitle(f"scoreflow – {path.name}")
        self.show_text(text)

    def show_text(self, text: str) -> None:
        layout = self._reset_page()
        blocks = 0
        for segment in split_document(text):
            if segment.kind == "text":
                label = QLabel(segment.content)
                label.setTextFormat(Qt.TextFormat.MarkdownText)
                label.setWordWrap(True)
                label.setOpenExternalLinks(True)
                layout.addWidget(label)
                continue
            mount = QtMountPoint(self.controller)
            layout.addWidget(mount)
            self._mounts.append(mount)
            self.render_block(segment.content, mount)
            blocks += 1
        self.statusBar().showMessage(f"Loaded document with {blocks} score block(s)")

    def render_block(self, source: str, mount: QtMountPoint) -> None:
        token = self.controller.begin_render(mount)
        start_job(
            self.controller.prepare_block,
            source,
            on_result=lambda prepared: self.controller.complete_block(prepared, mount, token),
            on_error=lambda exc: self.controller.report_error("render the score", exc),
        )

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def _notify(self, message: str) -> None:
        self.statusBar().showMessage(message, 8000)

    def _on_playback_state(self, state: str, session_id: str) -> None:
        if state == "PLAYING":
            self.statusBar().showMessage("► Playing…")
        else:
            self.statusBar().showMessage("▪ Playback stopped.", 3000)

    def _show_about(self) -> None:
        QMessageBox.about(
            self,
            "About scoreflow",
            "<b>scoreflow</b> – sheet music viewer<br/>"
            "Engraving by Verovio, playback through mido and FluidSynth.<br/><br/>"
            "Built with PyQt6 · Python",
        )

    def closeEvent(self, event) -> None:  # noqa: N802
        self.controller.shutdown()
        super().closeEvent(event)
