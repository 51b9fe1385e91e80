"""Shared fixtures: an in-memory engraving engine, fetcher and mount point.

``FakeEngine`` implements the same snake_case surface as
:class:`scoreflow.core.engine.VerovioEngine`.  Scores are registered by
their raw data bytes; each one knows its pages (note ids per page), its
MIDI rendering and which notes sound when.
"""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import mido
import pytest

from scoreflow.audio.midi_player import MidiPlayer
from scoreflow.config import load_config
from scoreflow.controller import ScoreController
from scoreflow.core.engine import EngineAdapter
from scoreflow.core.pipeline import MountPoint, RenderingPipeline
from scoreflow.core.playback import PlaybackSynchronizer
from scoreflow.core.sessions import SessionRegistry
from scoreflow.errors import FetchError

HOST_OPTIONS = {"scale": 100, "pageWidth": 700, "font": "Leland"}


def make_svg(note_ids, page: int = 1) -> str:
    notes = "".join(
        f'<g id="{note_id}" class="note"><use xlink:href="#E0A4" x="0" y="0"/></g>'
        for note_id in note_ids
    )
    return (
        '<svg xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink" '
        f'width="700" height="200" data-page="{page}">'
        f'<g class="page-margin"><g id="staff-1" class="staff"/>{notes}</g></svg>'
    )


def make_midi(notes=(60, 62), beat_ticks: int = 480) -> bytes:
    """Two half-second notes at 120 bpm: 0-500 ms and 500-1000 ms."""
    midi = mido.MidiFile(ticks_per_beat=beat_ticks)
    track = mido.MidiTrack()
    midi.tracks.append(track)
    for note in notes:
        track.append(mido.Message("note_on", note=note, velocity=64, time=0))
        track.append(mido.Message("note_off", note=note, velocity=0, time=beat_ticks))
    buffer = io.BytesIO()
    midi.save(file=buffer)
    return buffer.getvalue()


MIDI_BYTES = make_midi()
MIDI_BASE64 = base64.b64encode(MIDI_BYTES).decode("ascii")


@dataclass
class FakeScore:
    """Pages as lists of note ids; timeline entries are (start, end, note_id)."""
    pages: Dict[int, List[str]]
    midi: str = MIDI_BASE64
    timeline: List[Tuple[float, float, str]] = field(default_factory=list)

    def page_of(self, note_id: str) -> Optional[int]:
        for page, notes in self.pages.items():
            if note_id in notes:
                return page
        return None


class FakeEngine:
    def __init__(self) -> None:
        self.scores: Dict[bytes, FakeScore] = {}
        self.options: Dict[str, object] = {}
        self.loaded: Optional[bytes] = None
        self.selection: Optional[str] = None
        self.fail_select = False
        self.calls: List[str] = []
        self.renders: List[dict] = []

    def add_score(self, data: bytes, score: FakeScore) -> bytes:
        self.scores[data] = score
        return data

    @property
    def score(self) -> FakeScore:
        return self.scores[self.loaded]

    def reset_options(self) -> None:
        self.calls.append("reset_options")
        self.options = {}

    def set_options(self, options) -> None:
        self.calls.append("set_options")
        self.options.update(options)

    def load_data(self, data) -> bool:
        self.calls.append("load_data")
        if isinstance(data, str) and data.startswith("<mei"):
            return self.loaded is not None
        self.loaded = data
        self.selection = None
        return data in self.scores

    def select(self, selection) -> bool:
        self.calls.append("select")
        if self.fail_select:
            return False
        self.selection = selection["measureRange"]
        return True

    def get_mei(self, no_layout: bool = False) -> str:
        self.calls.append("get_mei")
        return "<mei/>" if self.loaded in self.scores else ""

    def get_page_count(self) -> int:
        return len(self.score.pages)

    def render_to_svg(self, page: int) -> str:
        self.renders.append(
            {"data": self.loaded, "page": page, "options": dict(self.options), "selection": self.selection}
        )
        return make_svg(self.score.pages.get(page, []), page)

    def render_to_midi(self) -> str:
        return self.score.midi

    def get_elements_at_time(self, millis: int) -> dict:
        notes = [note_id for start, end, note_id in self.score.timeline if start <= millis < end]
        result: dict = {"notes": notes}
        if notes:
            result["page"] = self.score.page_of(notes[0])
        return result


class FakeFetcher:
    def __init__(self, files: Optional[Dict[str, bytes]] = None) -> None:
        self.files = dict(files or {})
        self.requests: List[str] = []
        self.vault = MagicMock()

    def fetch(self, path: str) -> bytes:
        self.requests.append(path)
        try:
            return self.files[path]
        except KeyError:
            raise FetchError(f"File not found or not a valid file: {path}") from None


class FakeMount(MountPoint):
    def __init__(self) -> None:
        self.scores: List[tuple] = []
        self.errors: List[str] = []

    def mount_score(self, session_id, document) -> None:
        self.scores.append((session_id, document))

    def mount_error(self, message: str) -> None:
        self.errors.append(message)


class GoneMount(FakeMount):
    """Mount point whose widget was deleted while its block was loading."""

    def mount_score(self, session_id, document) -> None:
        raise RuntimeError("wrapped C/C++ object of type QtMountPoint has been deleted")

    def mount_error(self, message: str) -> None:
        raise RuntimeError("wrapped C/C++ object of type QtMountPoint has been deleted")


class FakeClock:
    """Settable replacement for ``time.monotonic``."""

    def __init__(self, t: float = 0.0) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t


SCORE_A = b"<mei>score a</mei>"
SCORE_B = b"<mei>score b</mei>"


@pytest.fixture
def engine():
    fake = FakeEngine()
    fake.add_score(
        SCORE_A,
        FakeScore(
            pages={1: ["a1", "a2"], 2: ["a3"]},
            timeline=[(0, 500, "a1"), (500, 1000, "a2")],
        ),
    )
    fake.add_score(
        SCORE_B,
        FakeScore(pages={1: ["b1", "b2"]}, timeline=[(0, 500, "b1"), (500, 1000, "b2")]),
    )
    return fake


@pytest.fixture
def fetcher():
    return FakeFetcher({"a.mei": SCORE_A, "b.mei": SCORE_B})


@pytest.fixture
def adapter(engine):
    return EngineAdapter(engine)


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def pipeline(fetcher, adapter, registry):
    return RenderingPipeline(fetcher, adapter, registry, host_options=HOST_OPTIONS)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def player(clock):
    return MidiPlayer(clock=clock)


@pytest.fixture
def synchronizer(adapter, registry, player):
    return PlaybackSynchronizer(adapter, registry, player, interval_ms=50, lookahead_ms=33.5)


@pytest.fixture
def mount():
    return FakeMount()


@pytest.fixture
def notices():
    return []


@pytest.fixture
def controller(engine, fetcher, player, notices):
    return ScoreController(
        load_config(),
        engine=engine,
        player=player,
        fetcher=fetcher,
        notify=notices.append,
        platform="linux",
    )
