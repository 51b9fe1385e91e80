"""
Top-level package for scoreflow.

scoreflow renders embedded music-notation blocks (MEI, MusicXML,
Humdrum, ABC, ... anything Verovio reads) inside a document viewer and
highlights the notes that sound while the score plays back.

Example usage::

    from scoreflow import ScoreController, get_app_config

    controller = ScoreController(get_app_config())
    session_id = controller.render_block("scores/bach.mei\\nscale: 50", mount)
    controller.play(session_id)

The GUI lives in :mod:`scoreflow.gui` and is not imported here, so the
core can be used (and tested) without a display.
"""

from .config import AppConfig, get_app_config, load_config  # noqa: F401
from .controller import ScoreController  # noqa: F401
from .core.block_parser import BlockSpec, parse_block  # noqa: F401
from .errors import ScoreflowError  # noqa: F401

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "get_app_config",
    "load_config",
    "ScoreController",
    "BlockSpec",
    "parse_block",
    "ScoreflowError",
]
