"""Tests for the controller entry points and their error boundaries."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from scoreflow.controller import ScoreController
from scoreflow.core.playback import PlaybackState
from scoreflow.errors import UnsupportedPlatformError

from .conftest import FakeMount, GoneMount


@pytest.fixture
def rendered(controller):
    mount = FakeMount()
    return controller.render_block("a.mei", mount)


class TestRendering:
    def test_render_block_uses_configured_defaults(self, controller, engine, rendered):
        assert rendered in controller.registry
        options = engine.renders[-1]["options"]
        assert options["scale"] == 100
        assert options["font"] == "Leland"
        assert options["breaks"] == "auto"

    def test_render_block_reports_inline(self, controller, notices):
        mount = FakeMount()
        assert controller.render_block("missing.mei", mount) is None
        assert mount.errors == ["Error rendering data: File not found or not a valid file: missing.mei"]
        assert notices == []

    def test_unexpected_error_becomes_inline_message(self, controller, engine):
        def explode(page):
            raise RuntimeError("boom")

        engine.render_to_svg = explode
        mount = FakeMount()
        assert controller.render_block("a.mei", mount) is None
        assert mount.errors == ["Error rendering data: boom"]
        assert len(controller.registry) == 0

    def test_split_render(self, controller):
        mount = FakeMount()
        token = controller.begin_render(mount)
        prepared = controller.prepare_block("b.mei\nscale: 20")
        sid = controller.complete_block(prepared, mount, token)
        assert controller.registry.require(sid).options["scale"] == 20

    def test_completion_into_deleted_mount(self, controller, notices):
        mount = GoneMount()
        token = controller.begin_render(mount)
        prepared = controller.prepare_block("a.mei")
        assert controller.complete_block(prepared, mount, token) is None
        assert len(controller.registry) == 0
        assert notices == []

    def test_failed_fetch_into_deleted_mount(self, controller):
        mount = GoneMount()
        token = controller.begin_render(mount)
        prepared = controller.prepare_block("missing.mei")
        assert controller.complete_block(prepared, mount, token) is None
        assert len(controller.registry) == 0

    def test_render_into_deleted_mount(self, controller):
        assert controller.render_block("a.mei", GoneMount()) is None
        assert len(controller.registry) == 0

    def test_cancelled_render_is_not_mounted(self, controller):
        mount = FakeMount()
        token = controller.begin_render(mount)
        prepared = controller.prepare_block("a.mei")
        controller.cancel_render(mount)
        assert controller.complete_block(prepared, mount, token) is None
        assert mount.scores == [] and mount.errors == []
        assert len(controller.registry) == 0


class TestPages:
    def test_next_and_previous(self, controller, rendered, fetcher):
        assert controller.next_page(rendered) == 2
        assert controller.next_page(rendered) == 2
        assert controller.previous_page(rendered) == 1
        assert fetcher.requests.count("a.mei") == 4

    def test_unknown_session(self, controller, notices):
        assert controller.show_page("nope", 2) is None
        assert len(notices) == 1
        assert notices[0].startswith("Could not turn the page")


class TestPlayback:
    def test_play_and_stop(self, controller, rendered, player):
        assert controller.play(rendered)
        assert controller.synchronizer.state is PlaybackState.PLAYING
        controller.tick()
        assert controller.synchronizer.highlighted(rendered) == {"a1"}
        controller.stop(rendered)
        assert controller.synchronizer.state is PlaybackState.IDLE
        assert not player.playing

    def test_play_failure_is_reported(self, controller, notices):
        assert not controller.play("nope", b"data")
        assert notices and notices[0].startswith("Could not play the score")

    def test_tick_failure_stops_playback(self, controller, rendered, notices):
        controller.play(rendered)
        with patch.object(controller.player, "pump", side_effect=RuntimeError("device lost")):
            controller.tick()
        assert controller.synchronizer.state is PlaybackState.IDLE
        assert notices == ["Could not continue playback: device lost"]

    def test_discard_stops_active_session(self, controller, rendered):
        controller.play(rendered)
        controller.discard(rendered)
        assert controller.synchronizer.state is PlaybackState.IDLE
        assert rendered not in controller.registry

    def test_shutdown(self, controller, rendered, player):
        controller.play(rendered)
        controller.shutdown()
        assert not player.playing


class TestToolbarActions:
    def test_download(self, controller, rendered, tmp_path):
        target = tmp_path / "out.svg"
        assert controller.download(rendered, target) == target
        data = target.read_bytes()
        assert data.startswith(b"<?xml")
        assert b'id="a1"' in data

    def test_download_default_name(self, controller, rendered, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert controller.download(rendered) == tmp_path / "score.svg"

    def test_download_on_mobile(self, engine, fetcher, player, notices, tmp_path):
        controller = ScoreController(
            engine=engine, player=player, fetcher=fetcher, notify=notices.append, platform="android"
        )
        sid = controller.render_block("a.mei", FakeMount())
        assert controller.download(sid, tmp_path / "x.svg") is None
        assert notices == ["Downloading files is not supported on mobile."]
        assert not (tmp_path / "x.svg").exists()

    def test_open_vault_file(self, controller, rendered, fetcher):
        assert controller.open_externally(rendered)
        fetcher.vault.open_externally.assert_called_once_with("a.mei", platform="linux")

    def test_open_vault_file_unsupported(self, controller, rendered, fetcher, notices):
        fetcher.vault.open_externally.side_effect = UnsupportedPlatformError(
            "Opening files externally is not supported on mobile."
        )
        assert not controller.open_externally(rendered)
        assert notices == ["Opening files externally is not supported on mobile."]

    def test_open_url(self, controller, fetcher):
        fetcher.files["https://example.org/a.mei"] = fetcher.files["a.mei"]
        sid = controller.render_block("https://example.org/a.mei", FakeMount())
        with patch("scoreflow.controller.webbrowser.open") as open_url:
            assert controller.open_externally(sid)
        open_url.assert_called_once_with("https://example.org/a.mei")
        fetcher.vault.open_externally.assert_not_called()
