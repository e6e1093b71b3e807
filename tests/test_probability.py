"""Tests for the probability estimators (full model and market proxy)."""

import itertools

import pytest

from market_intel.core.probability import (
    Fidelity,
    ModelProbability,
    ProxyProbability,
    clarity,
    confidence_band,
    estimate,
    market_proxy_probability,
    model_probability,
)
from market_intel.core.signals import (
    AvailabilityImpact,
    EfficiencyEdge,
    FormSignal,
    NormalizedSignals,
    StrengthEdge,
    TempoSignal,
    normalize_signals,
)


def _signals(
    edge_dir="even",
    magnitude=0,
    form_home="neutral",
    form_away="neutral",
    comparison="balanced",
    efficiency="none",
    availability="medium",
):
    return NormalizedSignals(
        sport="soccer",
        form=FormSignal(home=form_home, away=form_away, comparison=comparison),
        strength_edge=StrengthEdge(direction=edge_dir, magnitude=magnitude, label=""),
        tempo=TempoSignal(expected="medium"),
        efficiency_edge=EfficiencyEdge(direction=efficiency),
        availability=AvailabilityImpact(level=availability),
    )


# ---------------------------------------------------------------------------
# Full model
# ---------------------------------------------------------------------------

class TestModelProbability:

    def test_baseline_with_draw(self):
        p = model_probability(_signals(), has_draw=True)
        assert (p.home, p.away, p.draw) == (40, 30, 30)
        assert p.fidelity is Fidelity.FULL

    def test_baseline_two_way(self):
        p = model_probability(_signals(), has_draw=False)
        assert (p.home, p.away, p.draw) == (50, 50, None)

    def test_strong_home_weak_away_end_to_end(self, strong_home_match):
        signals = normalize_signals(strong_home_match)
        p = model_probability(signals, has_draw=True)
        assert p.home > 50
        assert p.home + p.away + p.draw == 100
        assert (p.home, p.away, p.draw) == (63, 13, 24)
        assert p.confidence == "high"
        assert p.confidence_score == 100

    def test_availability_high_raises_draw(self):
        base = model_probability(_signals(), has_draw=True)
        hit = model_probability(_signals(availability="high"), has_draw=True)
        assert hit.draw > base.draw

    @pytest.mark.parametrize(
        "edge_dir, magnitude, form_home, form_away, efficiency, availability, has_draw",
        list(itertools.product(
            ["home", "away", "even"],
            [0, 5, 20],
            ["strong", "weak", "neutral"],
            ["strong", "weak"],
            ["home", "away", "none"],
            ["low", "high"],
            [True, False],
        )),
    )
    def test_components_sum_to_100_and_wins_bounded(
        self, edge_dir, magnitude, form_home, form_away, efficiency, availability, has_draw,
    ):
        p = model_probability(
            _signals(edge_dir, magnitude, form_home, form_away,
                     efficiency=efficiency, availability=availability),
            has_draw=has_draw,
        )
        total = p.home + p.away + (p.draw or 0)
        assert total == 100
        assert 5 <= p.home <= 90
        assert 5 <= p.away <= 90
        assert all(isinstance(v, int) for v in (p.home, p.away))
        if has_draw:
            assert p.draw >= 0
        else:
            assert p.draw is None

    def test_favoured(self):
        p = ModelProbability(home=30, away=45, draw=25, confidence="low", confidence_score=0)
        assert p.favoured == "away"
        assert p.for_outcome("draw") == 25


class TestConfidence:

    def test_clarity_counts_clear_signals(self):
        assert clarity(_signals()) == 0
        assert clarity(_signals(
            edge_dir="home", magnitude=5, comparison="home_advantage",
            efficiency="home", availability="low",
        )) == 4

    @pytest.mark.parametrize("count, band", [(0, "low"), (1, "low"), (2, "medium"), (3, "high"), (4, "high")])
    def test_bands(self, count, band):
        assert confidence_band(count) == band


# ---------------------------------------------------------------------------
# Market proxy
# ---------------------------------------------------------------------------

class TestMarketProxy:

    def test_fidelity_tag(self):
        p = market_proxy_probability(2.0, 3.8, 3.5)
        assert isinstance(p, ProxyProbability)
        assert p.fidelity is Fidelity.MARKET_PROXY

    def test_bounds(self):
        for home, away, draw in [(1.1, 21.0, 9.0), (15.0, 1.15, 7.5), (2.0, 3.8, 3.5)]:
            p = market_proxy_probability(home, away, draw)
            assert 0.08 <= p.home <= 0.85
            assert 0.08 <= p.away <= 0.85
            assert 0.05 <= p.draw <= 0.40

    def test_underdog_boost(self):
        # Heavy home favourite: proxy gives the away side more than its vig-free share.
        p = market_proxy_probability(1.3, 9.0)
        fair_away = (1 / 9.0) / (1 / 1.3 + 1 / 9.0)
        assert p.away > fair_away
        assert p.draw is None

    def test_degenerate_price_does_not_raise(self):
        p = market_proxy_probability(0.0, 1.9)
        assert 0.08 <= p.home <= 0.85
        assert 0.08 <= p.away <= 0.85
        assert p.home > p.away

    def test_estimate_dispatch(self):
        assert isinstance(estimate(Fidelity.FULL, signals=_signals()), ModelProbability)
        assert isinstance(
            estimate(Fidelity.MARKET_PROXY, home_odds=2.0, away_odds=2.0),
            ProxyProbability,
        )

    def test_estimate_missing_inputs(self):
        with pytest.raises(ValueError):
            estimate(Fidelity.FULL)
        with pytest.raises(ValueError):
            estimate(Fidelity.MARKET_PROXY, home_odds=2.0)
