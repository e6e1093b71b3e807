"""Tests for odds_math: implied probability, conversions, margin, book quality."""

import pytest

from market_intel.core.odds_math import (
    adjust_for_bookmaker_quality,
    american_to_decimal,
    bookmaker_margin,
    bookmaker_quality,
    decimal_to_american,
    implied_prob,
    pct_change,
    implied_fraction,
    prob_to_fair_odds,
    round_half_up,
)


class TestImpliedProb:

    @pytest.mark.parametrize("odds, expected", [
        (2.0, 50.0),
        (1.5, 66.7),
        (4.0, 25.0),
        (1.91, 52.4),
    ])
    def test_known_values(self, odds, expected):
        assert implied_prob(odds) == expected

    @pytest.mark.parametrize("odds", [1.0, 0.5, 0.0, -2.0])
    def test_degenerate_price_never_raises(self, odds):
        assert implied_prob(odds) == 100.0

    def test_monotonically_decreasing(self):
        prices = [1.01 + i * 0.07 for i in range(200)]
        probs = [implied_prob(p) for p in prices]
        for earlier, later in zip(probs, probs[1:]):
            assert later <= earlier
        assert probs[0] > probs[-1]


class TestConversions:

    @pytest.mark.parametrize("american, decimal", [
        (100, 2.0),
        (150, 2.5),
        (-200, 1.5),
        (-110, pytest.approx(1.909, abs=0.001)),
    ])
    def test_american_to_decimal(self, american, decimal):
        assert american_to_decimal(american) == decimal

    @pytest.mark.parametrize("decimal, american", [
        (2.0, 100),
        (2.5, 150),
        (1.5, -200),
    ])
    def test_decimal_to_american(self, decimal, american):
        assert decimal_to_american(decimal) == american

    def test_invalid_american_raises(self):
        with pytest.raises(ValueError):
            american_to_decimal(50)

    def test_invalid_decimal_raises(self):
        with pytest.raises(ValueError):
            decimal_to_american(1.0)

    def test_fair_odds(self):
        assert prob_to_fair_odds(50) == 2.0
        assert prob_to_fair_odds(80) == 1.25
        assert prob_to_fair_odds(0) == 999.0
        assert prob_to_fair_odds(100) == 1.0


def test_bookmaker_margin_two_way():
    assert bookmaker_margin(1.91, 1.91) == 4.7


def test_bookmaker_margin_three_way():
    # 1/2.0 + 1/3.5 + 1/3.8 = 1.0489...
    assert bookmaker_margin(2.0, 3.8, 3.5) == pytest.approx(4.9, abs=0.05)


def test_bookmaker_margin_degenerate_price_never_raises():
    # a zero price counts as 100 % implied, like implied_prob
    assert implied_fraction(0.0) == 1.0
    assert implied_fraction(1.0) == 1.0
    assert bookmaker_margin(0.0, 1.9) == 52.6
    assert bookmaker_margin(2.0, 2.0, -3.0) == 100.0


@pytest.mark.parametrize("value, expected", [
    (10.5, 11),
    (2.5, 3),
    (0.5, 1),
    (10.49, 10),
    (7.0, 7),
])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_pct_change():
    assert pct_change(1.94, 2.0) == pytest.approx(-3.0)
    assert pct_change(2.1, 2.0) == pytest.approx(5.0)
    assert pct_change(1.94, None) is None
    assert pct_change(1.94, 0) is None


class TestBookmakerQuality:

    def test_sharp_book_untouched(self):
        assert bookmaker_quality("pinnacle") == 1.0
        assert adjust_for_bookmaker_quality(60.0, "pinnacle", has_draw=True) == 60.0

    def test_unknown_book_defaults(self):
        assert bookmaker_quality("someoffshorebook") == 0.7
        assert bookmaker_quality(None) == 0.7

    def test_soft_book_regresses_toward_prior(self):
        adjusted = adjust_for_bookmaker_quality(70.0, "betus", has_draw=False)
        assert 50.0 < adjusted < 70.0
