"""MIDI playback engine with a publish/subscribe note-event stream.

:class:`MidiPlayer` plays the Standard MIDI File that the engraving
engine generates for a score.  It decodes the file with ``mido``, keeps
a monotonic playback clock, and publishes note-on (``144``) and
note-off (``128``) events to explicit :class:`Subscription` objects.
If an output is configured, every channel message is also forwarded to
it: a ``mido`` port or a
:class:`~scoreflow.audio.synth.FluidSynthOutput`.  Otherwise the player
is silent and only drives the clock.

The player does not own a timer.  Whoever runs the event loop calls
:meth:`MidiPlayer.pump` regularly (the GUI does this from a
``QTimer``); each call dispatches every event whose time has come::

    player = MidiPlayer()
    player.load_file("data:audio/midi;base64,...", on_ready=player.start)
    sub = player.subscribe(on_event, on_finished=on_done)
    ...
    player.pump()
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple, Union

import mido

logger = logging.getLogger("scoreflow.audio.midi_player")

NOTE_ON = 144
NOTE_OFF = 128

_DATA_URL_PREFIX = "data:"


@dataclass(frozen=True)
class PlaybackEvent:
    """One note event as published to subscribers.

    :param message: ``144`` for note-on, ``128`` for note-off.
    :param time: Scheduled playback time in milliseconds.
    """
    message: int
    channel: int
    note: int
    velocity: int
    time: float


class Subscription:
    """Handle returned by :meth:`MidiPlayer.subscribe`."""

    def __init__(
        self,
        player: "MidiPlayer",
        on_event: Callable[[PlaybackEvent], None],
        on_finished: Optional[Callable[[], None]] = None,
    ) -> None:
        self._player = player
        self.on_event = on_event
        self.on_finished = on_finished

    @property
    def active(self) -> bool:
        return self in self._player._subscriptions

    def cancel(self) -> None:
        self._player._unsubscribe(self)


def decode_midi_source(source: Union[str, bytes]) -> bytes:
    """Accept raw bytes, base64 text or a ``data:`` URL and return MIDI bytes."""
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    text = source.strip()
    if text.startswith(_DATA_URL_PREFIX):
        header, _, text = text.partition(",")
        if ";base64" not in header:
            raise ValueError("Only base64 encoded MIDI data URLs are supported")
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 MIDI data: {exc}") from exc


class MidiPlayer:
    """Clocked MIDI file player.

    :param clock: Monotonic clock in seconds; injectable for tests.
    :param output: Optional output with ``send``/``reset``/``close`` (a
        ``mido`` port or a synthesiser), or the name of a port to open.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        output: Union[None, str, Any] = None,
    ) -> None:
        self._clock = clock
        self._output = mido.open_output(output) if isinstance(output, str) else output
        self._timeline: List[Tuple[float, mido.Message]] = []
        self._cursor = 0
        self._started_at: Optional[float] = None
        self._stopped_time = 0.0
        self._subscriptions: List[Subscription] = []
        self.end_time = 0.0

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_file(self, source: Union[str, bytes], on_ready: Optional[Callable[[], None]] = None) -> None:
        """Decode a MIDI file and prepare it for playback.

        Loading stops any running playback.  ``on_ready`` is called once
        the file is decoded.

        :raises ValueError: if the data is not a readable MIDI file.
        """
        self.stop()
        raw = decode_midi_source(source)
        try:
            midi = mido.MidiFile(file=io.BytesIO(raw))
        except (OSError, EOFError, ValueError, KeyError, IndexError) as exc:
            raise ValueError(f"Could not parse MIDI data: {exc}") from exc

        timeline: List[Tuple[float, mido.Message]] = []
        now = 0.0
        # Iterating a MidiFile merges tracks and yields delta times in seconds
        for msg in midi:
            now += msg.time
            if not msg.is_meta:
                timeline.append((now * 1000.0, msg))
        self._timeline = timeline
        self._cursor = 0
        self._stopped_time = 0.0
        self.end_time = now * 1000.0
        logger.debug("Loaded MIDI file: %d messages, %.1f ms", len(timeline), self.end_time)
        if on_ready is not None:
            on_ready()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    @property
    def output(self) -> Any:
        return self._output

    @property
    def playing(self) -> bool:
        return self._started_at is not None

    @property
    def current_time(self) -> float:
        """Playback position in milliseconds."""
        if self._started_at is None:
            return self._stopped_time
        return (self._clock() - self._started_at) * 1000.0

    def start(self) -> None:
        if self.playing:
            return
        self._cursor = 0
        self._stopped_time = 0.0
        self._started_at = self._clock()
        logger.debug("Playback started")

    def stop(self) -> None:
        """Stop playback without notifying ``on_finished`` subscribers."""
        if self._started_at is None:
            return
        self._stopped_time = self.current_time
        self._started_at = None
        self._silence()
        logger.debug("Playback stopped at %.1f ms", self._stopped_time)

    def _silence(self) -> None:
        if self._output is not None:
            self._output.reset()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def subscribe(
        self,
        on_event: Callable[[PlaybackEvent], None],
        on_finished: Optional[Callable[[], None]] = None,
    ) -> Subscription:
        subscription = Subscription(self, on_event, on_finished)
        self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def pump(self) -> int:
        """Dispatch every event that is due; return how many were sent.

        When the last event has been played and the clock passes the end
        of the file, playback stops and ``on_finished`` is called.
        """
        if not self.playing:
            return 0
        now = self.current_time
        dispatched = 0
        while self._cursor < len(self._timeline) and self._timeline[self._cursor][0] <= now:
            at, msg = self._timeline[self._cursor]
            self._cursor += 1
            if self._output is not None:
                self._output.send(msg)
            event = self._to_event(at, msg)
            if event is None:
                continue
            dispatched += 1
            for subscription in list(self._subscriptions):
                subscription.on_event(event)
            if not self.playing:
                # a subscriber stopped playback
                return dispatched
        if self._cursor >= len(self._timeline) and now >= self.end_time:
            self.stop()
            self._stopped_time = self.end_time
            for subscription in list(self._subscriptions):
                if subscription.on_finished is not None:
                    subscription.on_finished()
        return dispatched

    @staticmethod
    def _to_event(at: float, msg: mido.Message) -> Optional[PlaybackEvent]:
        if msg.type == "note_on" and msg.velocity > 0:
            code = NOTE_ON
        elif msg.type in ("note_on", "note_off"):
            code = NOTE_OFF
        else:
            return None
        return PlaybackEvent(code, msg.channel, msg.note, msg.velocity, at)

    def close(self) -> None:
        self.stop()
        self._subscriptions.clear()
        if self._output is not None:
            self._output.close()
            self._output = None


__all__ = ["MidiPlayer", "PlaybackEvent", "Subscription", "NOTE_ON", "NOTE_OFF", "decode_midi_source"]
