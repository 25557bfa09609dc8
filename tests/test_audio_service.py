from __future__ import annotations

from datetime import timedelta

import pytest

from alarmaudio.config import AudioConfig
from alarmaudio.engine import FakePlaybackEngine
from alarmaudio.errors import InvalidFadeSpec, OpenFailed
from alarmaudio.fade import LinearFade, StaircaseFade
from alarmaudio.resources import ResourceResolver
from alarmaudio.service import AudioService, VolumeFadeStep


@pytest.fixture
def engine() -> FakePlaybackEngine:
    return FakePlaybackEngine()


@pytest.fixture
def service(engine, tmp_path):
    config = AudioConfig(tick_interval_ms=5, watchdog_timeout_ms=60_000)
    resolver = ResourceResolver(assets_dir=tmp_path, documents_dir=tmp_path)
    svc = AudioService(config, engine=engine, resolver=resolver)
    yield svc
    svc.clean_up()


def test_play_and_stop_audio(service, engine):
    assert service.is_empty() is True

    service.play_audio(3, "alarm.mp3")
    service.play_audio(1, "alarm.mp3", loop_audio=True)

    assert service.get_playing_ids() == [1, 3]
    assert service.is_empty() is False

    service.stop_audio(3)
    assert service.get_playing_ids() == [1]
    service.stop_audio(3)  # no-op


def test_fade_duration_accepts_timedelta_and_seconds(service):
    service.play_audio(1, "a.mp3", fade_duration=timedelta(seconds=2))
    service.play_audio(2, "b.mp3", fade_duration=1.5)

    first = service.registry.get(1).curve
    second = service.registry.get(2).curve
    assert isinstance(first, LinearFade) and first.duration_ms == 2000
    assert isinstance(second, LinearFade) and second.duration_ms == 1500


def test_fade_steps_from_models_and_dicts(service):
    steps = [
        VolumeFadeStep(time=timedelta(0), volume=0.0),
        {"time": 2, "volume": 0.5},
        {"time": timedelta(seconds=4), "volume": 1.0},
    ]
    service.play_audio(1, "alarm.mp3", fade_steps=steps)

    curve = service.registry.get(1).curve
    assert isinstance(curve, StaircaseFade)
    assert [s.time_ms for s in curve.steps] == [0, 2000, 4000]
    assert curve.volume_at(1000) == pytest.approx(0.25)


@pytest.mark.parametrize(
    "steps",
    [
        [{"time": 1, "volume": 2.0}],
        [{"time": -1, "volume": 0.5}],
        [{"volume": 0.5}],
        [{"time": 2, "volume": 0.1}, {"time": 1, "volume": 0.2}],
    ],
)
def test_invalid_fade_steps_are_rejected(service, engine, steps):
    with pytest.raises(InvalidFadeSpec):
        service.play_audio(1, "alarm.mp3", fade_steps=steps)
    assert engine.opened == []


def test_invalid_fade_duration_type(service):
    with pytest.raises(InvalidFadeSpec):
        service.play_audio(1, "alarm.mp3", fade_duration="10s")


def test_open_failure_propagates(service, engine):
    engine.missing.add("broken.mp3")
    with pytest.raises(OpenFailed):
        service.play_audio(1, "broken.mp3")
    assert service.is_empty() is True


def test_on_complete_listener_receives_plain_signal(service, engine):
    calls = []
    service.set_on_complete_listener(lambda: calls.append("done"))
    service.play_audio(1, "alarm.mp3")

    engine.opened[0].finish()

    assert calls == ["done"]


def test_clean_up_and_context_manager(engine, tmp_path):
    config = AudioConfig(tick_interval_ms=5)
    resolver = ResourceResolver(assets_dir=tmp_path, documents_dir=tmp_path)
    with AudioService(config, engine=engine, resolver=resolver) as svc:
        svc.play_audio(1, "a.mp3", fade_duration=timedelta(seconds=5))
        svc.play_audio(2, "b.mp3", loop_audio=True)

    assert svc.is_empty() is True
    assert engine.live == []
