"""
tests/test_config.py — YAML Configuration Loader
=================================================
"""

from __future__ import annotations

import pytest

from tomorrow_people.config import TomorrowConfig, load_config

_MINIMAL = """\
community_name: "Tomorrow People"
community_tagline: "Build what comes next"
api_port: 8000
"""


class TestLoadConfig:
    def test_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(_MINIMAL, encoding="utf-8")
        cfg = load_config(path)
        assert isinstance(cfg, TomorrowConfig)
        assert cfg.community_name == "Tomorrow People"
        assert cfg.api_port == 8000
        assert (cfg.status_refresh_minutes, cfg.event_completed_after_hours) == (15, 4)
        assert (cfg.typing_ttl_seconds, cfg.message_search_limit) == (10, 50)

    def test_overrides(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            _MINIMAL + "status_refresh_minutes: 5\ntyping_ttl_seconds: '30'\n", encoding="utf-8",
        )
        cfg = load_config(path)
        assert cfg.status_refresh_minutes == 5
        assert cfg.typing_ttl_seconds == 30

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.yaml.example"):
            load_config(tmp_path / "nope.yaml")

    def test_missing_key(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("community_name: x\n", encoding="utf-8")
        with pytest.raises(KeyError):
            load_config(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(KeyError, match="community_name"):
            load_config(path)

    def test_frozen(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(_MINIMAL, encoding="utf-8")
        cfg = load_config(path)
        with pytest.raises(AttributeError):
            cfg.api_port = 9000
