import json
from pathlib import Path

import pytest

from alarmaudio.config import ENV_CONFIG_PATH, AudioConfig
from alarmaudio.errors import ConfigError


def test_defaults():
    cfg = AudioConfig.default()
    assert cfg.tick_interval_ms == 100
    assert cfg.watchdog_timeout_ms == 180_000
    assert cfg.volume_range == (0.0, 1.0)


def test_load_from_file(tmp_path: Path):
    path = tmp_path / "audio.json"
    path.write_text(json.dumps({"tick_interval_ms": 50, "watchdog_timeout_ms": 1000, "max_volume": 0.8}))

    cfg = AudioConfig.load(path)

    assert cfg.tick_interval_ms == 50
    assert cfg.watchdog_timeout_ms == 1000
    assert cfg.max_volume == 0.8


def test_load_honours_env_path(monkeypatch, tmp_path: Path):
    path = tmp_path / "env.json"
    path.write_text(json.dumps({"watchdog_timeout_ms": 5000}))
    monkeypatch.setenv(ENV_CONFIG_PATH, str(path))

    assert AudioConfig.load().watchdog_timeout_ms == 5000


def test_missing_or_malformed_file_falls_back_to_defaults(tmp_path: Path):
    assert AudioConfig.load(tmp_path / "nope.json") == AudioConfig.default()

    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    assert AudioConfig.load(bad) == AudioConfig.default()

    listy = tmp_path / "list.json"
    listy.write_text("[1, 2]")
    assert AudioConfig.load(listy) == AudioConfig.default()


def test_unknown_keys_are_ignored(tmp_path: Path):
    path = tmp_path / "audio.json"
    path.write_text(json.dumps({"tick_interval_ms": 20, "surround": True}))
    assert AudioConfig.load(path).tick_interval_ms == 20


@pytest.mark.parametrize(
    "kwargs",
    [
        {"tick_interval_ms": 0},
        {"watchdog_timeout_ms": -5},
        {"min_volume": 0.6, "max_volume": 0.4},
        {"max_volume": 1.5},
        {"min_volume": "loud"},
        {"tick_interval_ms": "fast"},
        {"watchdog_timeout_ms": None},
        {"watchdog_timeout_ms": float("inf")},
        {"tick_interval_ms": True},
    ],
)
def test_invalid_values_raise(kwargs):
    with pytest.raises(ConfigError):
        AudioConfig(**kwargs)


def test_clamp_volume():
    cfg = AudioConfig(min_volume=0.1, max_volume=0.9)
    assert cfg.clamp_volume(-1) == 0.1
    assert cfg.clamp_volume(2) == 0.9
    assert cfg.clamp_volume(0.5) == 0.5
    assert cfg.clamp_volume(float("nan")) == 0.1


def test_numeric_strings_are_converted():
    cfg = AudioConfig.from_dict({"tick_interval_ms": "5", "watchdog_timeout_ms": "180000"})

    assert cfg.tick_interval_ms == 5
    assert cfg.watchdog_timeout_ms == 180_000
    assert isinstance(cfg.watchdog_timeout_ms, int)
    assert AudioConfig(tick_interval_ms="12.5").tick_interval_ms == 12.5


def test_load_converts_string_timings(tmp_path: Path):
    path = tmp_path / "audio.json"
    path.write_text(json.dumps({"watchdog_timeout_ms": "50", "tick_interval_ms": 5}))

    cfg = AudioConfig.load(path)

    assert cfg.watchdog_timeout_ms == 50
    assert cfg.watchdog_timeout_ms > 0
