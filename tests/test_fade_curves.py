import math

import pytest

from alarmaudio.errors import InvalidFadeSpec
from alarmaudio.fade import FadeStep, LinearFade, StaircaseFade, build_fade_curve


def test_linear_fade_endpoints_and_monotonic():
    fade = LinearFade(2000)

    assert fade.volume_at(0) == 0.0
    assert fade.volume_at(2000) == 1.0
    assert math.isclose(fade.volume_at(500), 0.25)

    last = 0.0
    for t in range(0, 2001, 100):
        v = fade.volume_at(t)
        assert v >= last
        last = v


def test_linear_fade_holds_full_volume_after_duration():
    fade = LinearFade(1000)
    assert fade.is_done(1000) is True
    assert fade.is_done(999) is False
    assert fade.volume_at(5000) == 1.0
    assert fade.final_volume == 1.0


def test_linear_fade_clamps_negative_elapsed():
    assert LinearFade(1000).volume_at(-50) == 0.0


@pytest.mark.parametrize("duration", [0, -10, float("nan"), float("inf")])
def test_linear_fade_rejects_bad_duration(duration):
    with pytest.raises(InvalidFadeSpec):
        LinearFade(duration)


def test_staircase_midpoint_interpolation():
    fade = StaircaseFade([(0, 0.0), (1000, 1.0)])

    assert fade.volume_at(0) == 0.0
    assert math.isclose(fade.volume_at(500), 0.5)
    assert fade.volume_at(1000) == 1.0
    assert fade.is_done(1000) is True
    assert fade.is_done(1500) is True
    assert fade.is_done(999) is False


def test_staircase_single_point_with_late_start():
    fade = StaircaseFade([FadeStep(time_ms=500, volume=0.2)])

    assert fade.volume_at(0) == 0.2
    assert fade.volume_at(499) == 0.2
    assert fade.is_done(499) is False
    assert fade.is_done(500) is True
    assert fade.final_volume == 0.2


def test_staircase_multiple_segments():
    fade = StaircaseFade(
        [
            {"time_ms": 0, "volume": 0.1},
            {"time_ms": 1000, "volume": 0.5},
            {"time_ms": 3000, "volume": 0.5},
            {"time_ms": 4000, "volume": 1.0},
        ]
    )

    assert math.isclose(fade.volume_at(500), 0.3)
    assert math.isclose(fade.volume_at(2000), 0.5)
    assert math.isclose(fade.volume_at(3500), 0.75)
    assert fade.final_volume == 1.0


def test_staircase_coincident_points_jump():
    fade = StaircaseFade([(0, 0.0), (1000, 0.2), (1000, 0.8), (2000, 1.0)])

    assert math.isclose(fade.volume_at(1000), 0.2)
    assert math.isclose(fade.volume_at(1500), 0.9)


def test_staircase_rejects_unordered_points():
    with pytest.raises(InvalidFadeSpec):
        StaircaseFade([(1000, 0.5), (0, 0.0)])


@pytest.mark.parametrize(
    "step",
    [(0, 1.5), (0, -0.1), (-5, 0.5), {"time_ms": 0}, "loud", (0, float("nan"))],
)
def test_staircase_rejects_malformed_points(step):
    with pytest.raises(InvalidFadeSpec):
        StaircaseFade([step])


def test_staircase_rejects_empty():
    with pytest.raises(InvalidFadeSpec):
        StaircaseFade([])


def test_build_fade_curve_prefers_steps_over_duration():
    curve = build_fade_curve(5000, [(0, 0.0), (100, 1.0)])
    assert isinstance(curve, StaircaseFade)


def test_build_fade_curve_linear_and_none():
    assert isinstance(build_fade_curve(3000), LinearFade)
    assert build_fade_curve(None) is None
    assert build_fade_curve(0) is None
    assert build_fade_curve(None, []) is None


def test_build_fade_curve_rejects_negative_duration():
    with pytest.raises(InvalidFadeSpec):
        build_fade_curve(-1)
