"""FluidSynth sound output for the MIDI player.

:class:`FluidSynthOutput` renders the player's channel messages through
a SoundFont so that playback is audible without any external MIDI
device.  It offers the part of the ``mido`` output port interface that
:class:`~scoreflow.audio.midi_player.MidiPlayer` uses (``send``,
``reset`` and ``close``), so a synthesiser and a hardware port are
interchangeable.

:func:`playback_output` picks the output from the ``playback`` config
section:

* ``midi_output`` names a ``mido`` port: messages go to that port;
* otherwise ``soundfont`` selects a SoundFont file (``"auto"`` searches
  the usual system locations) that FluidSynth plays;
* with neither, the player only drives the highlight clock.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Set, Tuple, Union

import mido

from ..errors import AudioOutputError

logger = logging.getLogger("scoreflow.audio.synth")

AUTO_SOUNDFONT = "auto"

#: Searched in order when ``playback.soundfont`` is ``"auto"``.
DEFAULT_SOUNDFONTS = (
    "~/.scoreflow/default.sf2",
    "/usr/share/sounds/sf2/FluidR3_GM.sf2",
    "/usr/share/soundfonts/FluidR3_GM.sf2",
    "/usr/share/soundfonts/default.sf2",
    "/opt/homebrew/share/soundfonts/default.sf2",
    "/usr/local/share/soundfonts/default.sf2",
)


def find_soundfont(configured: Optional[str] = AUTO_SOUNDFONT) -> Optional[Path]:
    """Resolve the configured SoundFont.

    :return: The SoundFont path, or ``None`` if sound is disabled or no
        SoundFont was found by the automatic search.
    :raises AudioOutputError: if an explicitly configured file is missing.
    """
    if not configured:
        return None
    if configured != AUTO_SOUNDFONT:
        path = Path(configured).expanduser()
        if not path.is_file():
            raise AudioOutputError(f"SoundFont not found: {configured}")
        return path
    for candidate in DEFAULT_SOUNDFONTS:
        path = Path(candidate).expanduser()
        if path.is_file():
            return path
    return None


class FluidSynthOutput:
    """Software synthesiser playing MIDI messages through a SoundFont.

    :param soundfont: Path of a ``.sf2``/``.sf3`` file.
    :param driver: FluidSynth audio driver (``pulseaudio``, ``coreaudio``,
        ``dsound`` ...); FluidSynth's default when ``None``.
    :param gain: Master gain passed to the synthesiser.
    """

    def __init__(self, soundfont: Union[str, Path], driver: Optional[str] = None, gain: float = 0.5) -> None:
        import fluidsynth

        self.soundfont = Path(soundfont)
        self.synth = fluidsynth.Synth(gain=gain)
        if driver:
            self.synth.start(driver=driver)
        else:
            self.synth.start()
        # update_midi_preset=1 assigns the SoundFont's presets to every channel
        sfid = self.synth.sfload(str(self.soundfont), update_midi_preset=1)
        if sfid == -1:
            self.synth.delete()
            raise AudioOutputError(f"Failed to load SoundFont: {self.soundfont}")
        self._sounding: Set[Tuple[int, int]] = set()
        logger.info("FluidSynth output ready with %s", self.soundfont)

    def send(self, msg: mido.Message) -> None:
        kind = msg.type
        if kind == "note_on" and msg.velocity > 0:
            self.synth.noteon(msg.channel, msg.note, msg.velocity)
            self._sounding.add((msg.channel, msg.note))
        elif kind in ("note_on", "note_off"):
            self.synth.noteoff(msg.channel, msg.note)
            self._sounding.discard((msg.channel, msg.note))
        elif kind == "program_change":
            self.synth.program_change(msg.channel, msg.program)
        elif kind == "control_change":
            self.synth.cc(msg.channel, msg.control, msg.value)
        elif kind == "pitchwheel":
            self.synth.pitch_bend(msg.channel, msg.pitch)

    def reset(self) -> None:
        """Silence every note that is still sounding."""
        for channel, note in sorted(self._sounding):
            self.synth.noteoff(channel, note)
        self._sounding.clear()

    def close(self) -> None:
        self.reset()
        self.synth.delete()


def playback_output(playback: Mapping[str, Any]) -> Union[None, str, FluidSynthOutput]:
    """Choose the player's output from the ``playback`` config section.

    :raises AudioOutputError: if the configured SoundFont cannot be used.
    """
    port = playback.get("midi_output")
    if port:
        return str(port)
    soundfont = find_soundfont(playback.get("soundfont", AUTO_SOUNDFONT))
    if soundfont is None:
        logger.warning("No SoundFont configured or found; playback will be silent")
        return None
    return FluidSynthOutput(
        soundfont,
        driver=playback.get("audio_driver"),
        gain=float(playback.get("gain", 0.5)),
    )


__all__ = ["FluidSynthOutput", "find_soundfont", "playback_output", "DEFAULT_SOUNDFONTS"]
