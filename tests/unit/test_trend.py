"""Tests for year-over-year diffs."""

import pytest

from sitiocompare.models import Polarity
from sitiocompare.trend import DOWN, FLAT, UP, compute_diff, percent_change


class TestComputeDiff:

    def test_growth_of_better_indicator(self):
        d = compute_diff(40, 60, Polarity.BETTER)
        assert d.change == 20
        assert d.change_percent == 50.0
        assert d.trend == UP
        assert d.is_positive

    def test_drop_of_worse_indicator_is_positive(self):
        d = compute_diff(10, 5, Polarity.WORSE)
        assert d.trend == DOWN
        assert d.change_percent == -50.0
        assert d.is_positive

    def test_growth_of_worse_indicator_is_negative(self):
        assert not compute_diff(5, 10, Polarity.WORSE).is_positive

    def test_neutral_is_never_positive(self):
        assert not compute_diff(100, 150, Polarity.NEUTRAL).is_positive
        assert not compute_diff(150, 100, Polarity.NEUTRAL).is_positive
        assert not compute_diff(100, 150).is_positive

    def test_flat(self):
        d = compute_diff(7, 7, Polarity.BETTER)
        assert d.trend == FLAT
        assert d.change == 0
        assert d.change_percent == 0.0
        assert not d.is_positive

    def test_legacy_flag(self):
        assert compute_diff(1, 2, True).is_positive
        assert compute_diff(2, 1, False).is_positive
        assert not compute_diff(1, 2, None).is_positive

    def test_percent_is_not_rounded(self):
        assert compute_diff(3, 4, Polarity.BETTER).change_percent == pytest.approx(33.3333333)


def test_percent_change_from_zero():
    assert percent_change(0, 0) == 0.0
    assert percent_change(0, 5) == 100.0
    assert percent_change(0, -5) == 100.0
    assert compute_diff(0, 5, Polarity.BETTER).change_percent == 100.0
