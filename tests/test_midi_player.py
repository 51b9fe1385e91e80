"""Tests for the clocked MIDI player."""

from __future__ import annotations

import base64
from unittest.mock import MagicMock

import pytest

from scoreflow.audio.midi_player import NOTE_OFF, NOTE_ON, MidiPlayer, decode_midi_source

from .conftest import MIDI_BASE64, MIDI_BYTES, FakeClock


class TestDecodeMidiSource:
    def test_bytes(self):
        assert decode_midi_source(MIDI_BYTES) == MIDI_BYTES

    def test_data_url(self):
        assert decode_midi_source("data:audio/midi;base64," + MIDI_BASE64) == MIDI_BYTES

    def test_plain_base64(self):
        assert decode_midi_source(MIDI_BASE64) == MIDI_BYTES

    def test_data_url_without_base64(self):
        with pytest.raises(ValueError):
            decode_midi_source("data:audio/midi,MThd")

    def test_garbage(self):
        with pytest.raises(ValueError):
            decode_midi_source("%%% not base64 %%%")


class TestMidiPlayer:
    @pytest.fixture
    def clock(self):
        return FakeClock(10.0)

    @pytest.fixture
    def player(self, clock):
        player = MidiPlayer(clock=clock)
        player.load_file(MIDI_BYTES)
        return player

    def test_load_sets_end_time(self, player):
        assert player.end_time == pytest.approx(1000.0)
        assert not player.playing

    def test_load_calls_on_ready(self):
        ready = MagicMock()
        MidiPlayer(clock=FakeClock()).load_file(MIDI_BASE64, on_ready=ready)
        ready.assert_called_once_with()

    def test_load_rejects_non_midi(self):
        with pytest.raises(ValueError):
            MidiPlayer(clock=FakeClock()).load_file(base64.b64encode(b"definitely not midi").decode())

    def test_clock(self, player, clock):
        player.start()
        assert player.current_time == 0.0
        clock.t += 0.25
        assert player.current_time == pytest.approx(250.0)
        player.stop()
        clock.t += 1.0
        assert player.current_time == pytest.approx(250.0)

    def test_pump_publishes_note_events(self, player, clock):
        events = []
        player.subscribe(events.append)
        player.start()
        assert player.pump() == 1
        clock.t += 0.5
        assert player.pump() == 2
        assert [(e.message, e.note) for e in events] == [(NOTE_ON, 60), (NOTE_OFF, 60), (NOTE_ON, 62)]
        assert events[1].time == pytest.approx(500.0)

    def test_finished(self, player, clock):
        finished = MagicMock()
        player.subscribe(lambda event: None, on_finished=finished)
        player.start()
        clock.t += 1.5
        player.pump()
        assert not player.playing
        assert player.current_time == pytest.approx(1000.0)
        finished.assert_called_once_with()

    def test_stop_does_not_report_finished(self, player, clock):
        finished = MagicMock()
        player.subscribe(lambda event: None, on_finished=finished)
        player.start()
        player.stop()
        clock.t += 5
        assert player.pump() == 0
        finished.assert_not_called()

    def test_cancelled_subscription_gets_nothing(self, player):
        events = []
        sub = player.subscribe(events.append)
        sub.cancel()
        assert not sub.active
        player.start()
        player.pump()
        assert events == []

    def test_subscriber_can_stop_playback(self, player, clock):
        events = []

        def on_event(event):
            events.append(event)
            player.stop()

        player.subscribe(on_event)
        player.start()
        clock.t += 0.6
        player.pump()
        assert len(events) == 1

    def test_forwards_messages_to_output(self, clock):
        output = MagicMock()
        player = MidiPlayer(clock=clock, output=output)
        player.load_file(MIDI_BYTES)
        player.start()
        clock.t += 2
        player.pump()
        assert output.send.call_count == 4
        output.reset.assert_called_once_with()
        player.close()
        output.close.assert_called_once_with()

    def test_opens_named_output(self, monkeypatch):
        port = MagicMock()
        opened = MagicMock(return_value=port)
        monkeypatch.setattr("scoreflow.audio.midi_player.mido.open_output", opened)
        player = MidiPlayer(clock=FakeClock(), output="Synth")
        opened.assert_called_once_with("Synth")
        player.close()
        port.close.assert_called_once_with()

    def test_restart_plays_from_the_beginning(self, player, clock):
        events = []
        player.subscribe(events.append)
        player.start()
        clock.t += 0.6
        player.pump()
        player.stop()
        player.start()
        player.pump()
        assert [e.note for e in events] == [60, 60, 62, 60]
