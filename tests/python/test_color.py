from __future__ import annotations

import pytest
from pytest import approx

from meadow.sim.core.rng import DeterministicRng
from meadow.sim.utils.color import color_distance, jitter_color, to_hex, to_rgb


@pytest.mark.parametrize("hex_color", ["#dd1111", "#11dd11", "#1111dd", "#999999", "#000000", "#ffffff"])
def test_palette_colours_round_trip(hex_color):
    assert to_hex(*to_rgb(hex_color)) == hex_color


def test_to_rgb_channels():
    assert to_rgb("#dd1111") == (221, 17, 17)
    assert to_rgb("#00ff7f") == (0, 255, 127)


def test_to_hex_is_lower_case_and_padded():
    assert to_hex(1, 2, 171) == "#0102ab"


def test_to_hex_rejects_out_of_range_channel():
    with pytest.raises(ValueError):
        to_hex(256, 0, 0)


def test_to_rgb_rejects_garbage():
    with pytest.raises(ValueError):
        to_rgb("#zzzzzz")


def test_color_distance_identity_and_symmetry():
    a = (221, 17, 17)
    b = (17, 221, 17)
    assert color_distance(a, a) == 0.0
    assert color_distance(a, b) == color_distance(b, a)
    assert color_distance((0, 0, 0), (3, 4, 0)) == approx(5.0)


def test_jitter_color_stays_in_channel_range():
    rng = DeterministicRng(3)
    for _ in range(200):
        r, g, b = to_rgb(jitter_color(rng, "#ff0000", 25.0))
        assert r >= 230
        assert 0 <= g <= 25
        assert 0 <= b <= 25


def test_zero_variance_keeps_colour():
    rng = DeterministicRng(3)
    assert jitter_color(rng, "#1111dd", 0.0) == "#1111dd"
