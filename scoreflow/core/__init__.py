"""
Core rendering-session and playback-synchronisation engine.

The modules in this package are independent of any GUI toolkit:

* :mod:`.block_parser` – turns score block text into a :class:`BlockSpec`.
* :mod:`.sessions` – the registry of displayed scores.
* :mod:`.engine` – the shared engraving engine and its load protocol.
* :mod:`.document` – the SVG page of one displayed score and its highlights.
* :mod:`.pipeline` – block text to mounted score.
* :mod:`.playback` – MIDI clock to highlighted notes.
"""

from .block_parser import BlockSpec, coerce_value, merge_options, parse_block  # noqa: F401
from .document import ScoreDocument  # noqa: F401
from .engine import ActivatedEngine, ElementsAtTime, EngineAdapter, VerovioEngine  # noqa: F401
from .pipeline import MountPoint, PreparedBlock, RenderingPipeline  # noqa: F401
from .playback import PlaybackState, PlaybackSynchronizer  # noqa: F401
from .sessions import Session, SessionRegistry  # noqa: F401

__all__ = [
    "BlockSpec",
    "coerce_value",
    "merge_options",
    "parse_block",
    "ScoreDocument",
    "ActivatedEngine",
    "ElementsAtTime",
    "EngineAdapter",
    "VerovioEngine",
    "MountPoint",
    "PreparedBlock",
    "RenderingPipeline",
    "PlaybackState",
    "PlaybackSynchronizer",
    "Session",
    "SessionRegistry",
]
