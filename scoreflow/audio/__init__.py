"""
Audio side of scoreflow.

* :class:`MidiPlayer` – plays the MIDI data generated by the engraving
  engine and publishes note events to subscribers.
* :class:`FluidSynthOutput` – sounds the player's messages through a
  SoundFont (``playback.soundfont``, ``"auto"`` searches the system).
* :func:`playback_output` – picks FluidSynth or a ``mido`` port
  (``playback.midi_output``, requires the ``midi-out`` extra).
* :func:`configure_audio_logger` – file logging for playback debugging.
"""

from .audio_logger import configure_audio_logger  # noqa: F401
from .midi_player import NOTE_OFF, NOTE_ON, MidiPlayer, PlaybackEvent, Subscription  # noqa: F401
from .synth import FluidSynthOutput, find_soundfont, playback_output  # noqa: F401

__all__ = [
    "MidiPlayer",
    "PlaybackEvent",
    "Subscription",
    "NOTE_ON",
    "NOTE_OFF",
    "FluidSynthOutput",
    "find_soundfont",
    "playback_output",
    "configure_audio_logger",
]
