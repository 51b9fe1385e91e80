"""Tests for configuration loading."""

from __future__ import annotations

import json

from scoreflow.config import AppConfig, get_app_config, load_config


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()
        assert config.render_options == {
            "scale": 100,
            "adjustPageHeight": True,
            "adjustPageWidth": True,
            "breaks": "auto",
            "pageWidth": 700,
            "font": "Leland",
        }
        assert config.get("playback", "highlight_interval_ms") == 50
        assert config.get("playback", "lookahead_ms") == 33.5

    def test_user_overrides(self, tmp_path):
        path = tmp_path / "user.json"
        path.write_text(json.dumps({"render": {"scale": 60}, "extra": {"x": 1}}), encoding="utf-8")
        config = load_config(path)
        assert config.get("render", "scale") == 60
        assert config.get("render", "font") == "Leland"
        assert config.get("extra", "x") == 1

    def test_missing_user_file(self, tmp_path):
        assert load_config(tmp_path / "nope.json").get("render", "scale") == 100

    def test_environment_variable(self, tmp_path, monkeypatch):
        path = tmp_path / "user.json"
        path.write_text(json.dumps({"storage": {"vault_dir": str(tmp_path)}}), encoding="utf-8")
        monkeypatch.setenv("SCOREFLOW_CONFIG", str(path))
        assert get_app_config().get("storage", "vault_dir") == str(tmp_path)


class TestAppConfig:
    def test_get_default(self):
        config = AppConfig({"a": {"b": 1}})
        assert config.get("a", "b") == 1
        assert config.get("a", "c", default=5) == 5
        assert config.get("a", "b", "c", default=None) is None

    def test_render_options_is_a_copy(self):
        config = AppConfig({"render": {"scale": 100}})
        config.render_options["scale"] = 1
        assert config.get("render", "scale") == 100

    def test_merge_is_recursive(self):
        config = AppConfig({"render": {"scale": 100, "font": "Leland"}})
        config.merge({"render": {"scale": 50}})
        assert config.data == {"render": {"scale": 50, "font": "Leland"}}
