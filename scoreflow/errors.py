"""Exception hierarchy shared by the rendering and playback subsystems.

Every failure that the controller turns into local user feedback derives
from :class:`ScoreflowError`.  None of them is fatal: a failed render
mounts an inline message, a failed playback simply does not start.
"""

from __future__ import annotations


class ScoreflowError(Exception):
    """Base class for all recoverable scoreflow errors."""


class FetchError(ScoreflowError):
    """Score data could not be retrieved from the network or the vault."""


class BlockSyntaxError(FetchError):
    """A score block does not name a source path."""


class EngineError(ScoreflowError):
    """The engraving engine failed while loading or laying out data."""


class SelectionError(EngineError):
    """The engine rejected a ``measureRange`` selection."""


class StaleActivationError(EngineError):
    """A derived read was attempted on a handle that is no longer live."""


class AudioGenerationError(ScoreflowError):
    """The engine produced no audio data for the active session."""


class AudioOutputError(ScoreflowError):
    """The sound output (synthesiser or MIDI port) could not be opened."""


class UnsupportedPlatformError(ScoreflowError):
    """The requested action is not available on this platform."""


class SessionNotFoundError(ScoreflowError, KeyError):
    """No session is registered under the given identifier."""

    def __str__(self) -> str:
        return Exception.__str__(self)


__all__ = [
    "ScoreflowError",
    "FetchError",
    "BlockSyntaxError",
    "EngineError",
    "SelectionError",
    "StaleActivationError",
    "AudioGenerationError",
    "AudioOutputError",
    "UnsupportedPlatformError",
    "SessionNotFoundError",
]
