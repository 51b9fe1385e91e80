"""Playback debug logger configuration.

This module configures a **single** file-backed logger for the audio
side of scoreflow (MIDI decoding, the playback clock and highlight
reconciliation).  Timing problems between sound and highlights are much
easier to chase in a dedicated file than in the console.

Goals
-----
- Write to the configured ``logging.audio_log`` path, or
  ``~/.scoreflow/audio_debug.log`` by default.
- Be idempotent (safe to call multiple times).
- Work even if other parts of the app already configured logging.
- Emit a visible *startup* entry so users can confirm the log is active.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from threading import Lock
from typing import Optional, Union

_LOCK = Lock()
_CONFIGURED = False

AUDIO_LOGGER_NAMES = ("scoreflow.audio", "scoreflow.core.playback")


def get_audio_log_path(configured: Optional[Union[str, os.PathLike]] = None) -> Path:
    """Return the absolute path of the playback debug log."""
    if configured:
        return Path(configured).expanduser().resolve()
    return Path.home() / ".scoreflow" / "audio_debug.log"


def configure_audio_logger(
    log_path: Optional[Union[str, os.PathLike]] = None,
    force: bool = False,
) -> logging.Logger:
    """Configure the playback debug loggers and return ``scoreflow.audio``.

    Parameters
    ----------
    log_path:
        Target file; see :func:`get_audio_log_path`.
    force:
        If True, forces adding a fresh FileHandler and writing a startup
        line even if the logger seems configured already.
    """
    global _CONFIGURED

    with _LOCK:
        path = get_audio_log_path(log_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        handler: Optional[logging.FileHandler] = None
        for name in AUDIO_LOGGER_NAMES:
            logger = logging.getLogger(name)
            logger.setLevel(logging.DEBUG)

            has_matching_file_handler = any(
                isinstance(h, logging.FileHandler)
                and os.path.abspath(h.baseFilename) == str(path)
                for h in logger.handlers
            )
            if force or not has_matching_file_handler:
                if handler is None:
                    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
                    handler.setLevel(logging.DEBUG)
                    handler.setFormatter(
                        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
                    )
                logger.addHandler(handler)

        logger = logging.getLogger(AUDIO_LOGGER_NAMES[0])
        # Startup entry: write exactly once per process (unless forced).
        if force or not _CONFIGURED:
            logger.info("=== Audio debug logging started (pid=%s) ===", os.getpid())
            _CONFIGURED = True

        return logger
