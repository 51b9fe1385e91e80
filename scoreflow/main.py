"""scoreflow application entry point.

This script can be invoked directly (``python -m scoreflow.main``) or
through the ``scoreflow`` console script.  It sets up logging,
initialises the Qt application, creates the document window and starts
the event loop.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from PyQt6.QtWidgets import QApplication

from .audio.audio_logger import configure_audio_logger
from .config import get_app_config
from .controller import ScoreController
from .gui.main_window import DocumentWindow


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="scoreflow", description="View documents with embedded scores.")
    parser.add_argument("document", nargs="?", help="Markdown document to open")
    parser.add_argument("--vault", help="Directory that score paths are resolved against")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    config = get_app_config()
    if args.vault:
        config.merge({"storage": {"vault_dir": args.vault}})

    level = "DEBUG" if args.debug else str(config.get("logging", "level", default="INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    configure_audio_logger(config.get("logging", "audio_log"))

    app = QApplication(sys.argv[:1])
    controller = ScoreController(config)
    window = DocumentWindow(controller)
    if args.document:
        window.load_document(args.document)
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
