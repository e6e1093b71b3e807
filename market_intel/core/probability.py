"""
Outcome probability estimators.

Two estimators exist and both live here, selected by :class:`Fidelity`:

``Fidelity.FULL``
    The authoritative model.  Starts from a baseline split and applies the
    normalized signals (strength edge, form, efficiency, availability).
    Returns integer percentages that always sum to exactly 100.

``Fidelity.MARKET_PROXY``
    A crude odds-only estimate used by the odds poller to classify alerts
    when no team stats are available.  It regresses vig-free market
    probabilities toward the mean and gives underdogs a small boost.  It is
    *not* an independent forecast: it is derived from the very prices it is
    compared against, so the edges it produces mostly measure the regression
    and boost terms.  Persisted rows carry the fidelity tag so the two are
    never confused.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from market_intel.core.odds_math import implied_fraction, round_half_up
from market_intel.core.signals import NormalizedSignals


class Fidelity(str, Enum):
    FULL = "full"
    MARKET_PROXY = "market_proxy"


# Baselines (percent)
BASE_WITH_DRAW = (40.0, 30.0, 30.0)   # home, away, draw
BASE_TWO_WAY = (50.0, 50.0)

# Strength-edge shares
EDGE_TO_FAVOURED = 0.8
EDGE_FROM_OTHER = 0.5
EDGE_FROM_DRAW = 0.3

FORM_SWING = 5.0
EFFICIENCY_GAIN = 3.0
EFFICIENCY_LOSS = 2.0
AVAILABILITY_DRAW_GAIN = 3.0
AVAILABILITY_WIN_LOSS = 1.0

MIN_WIN_PROB = 5
MAX_WIN_PROB = 90

# Market proxy
PROXY_REGRESSION = 0.15
PROXY_MEAN = 0.40
PROXY_UNDERDOG_BOOST = 0.02


@dataclass(frozen=True)
class ModelProbability:
    """Model outcome probabilities in integer percent (sum = 100)."""

    home: int
    away: int
    draw: Optional[int]
    confidence: str                # low | medium | high
    confidence_score: int          # clarity × 25, 0–100
    fidelity: Fidelity = Fidelity.FULL

    def for_outcome(self, outcome: str) -> Optional[int]:
        return {"home": self.home, "away": self.away, "draw": self.draw}.get(outcome)

    @property
    def favoured(self) -> str:
        return "home" if self.home > self.away else "away"


@dataclass(frozen=True)
class ProxyProbability:
    """Market-proxy probabilities as fractions (0–1)."""

    home: float
    away: float
    draw: Optional[float] = None
    fidelity: Fidelity = Fidelity.MARKET_PROXY


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


# ---------------------------------------------------------------------------
# Full model
# ---------------------------------------------------------------------------

def clarity(signals: NormalizedSignals) -> int:
    """Count of unambiguous signals (0–4)."""
    score = 0
    if signals.form.comparison != "balanced":
        score += 1
    if signals.strength_edge.magnitude >= 5:
        score += 1
    if signals.efficiency_edge.direction != "none":
        score += 1
    if signals.availability.level == "low":
        score += 1
    return score


def confidence_band(clarity_count: int) -> str:
    if clarity_count >= 3:
        return "high"
    if clarity_count >= 2:
        return "medium"
    return "low"


def model_probability(signals: NormalizedSignals, has_draw: bool) -> ModelProbability:
    """Authoritative outcome probabilities from normalized signals.

    Adjustments are applied in a fixed order to the raw pools, then the pools
    are normalised to 100 and each win probability is clamped to [5, 90].
    The draw, when present, is the non-negative remainder.
    """
    if has_draw:
        home, away, draw = BASE_WITH_DRAW
    else:
        (home, away), draw = BASE_TWO_WAY, 0.0

    # (a) strength edge
    edge = signals.strength_edge
    m = float(edge.magnitude)
    if edge.direction == "home":
        home += m * EDGE_TO_FAVOURED
        away -= m * EDGE_FROM_OTHER
    elif edge.direction == "away":
        away += m * EDGE_TO_FAVOURED
        home -= m * EDGE_FROM_OTHER
    if has_draw and edge.direction in ("home", "away"):
        draw -= m * EDGE_FROM_DRAW

    # (b) form
    form = signals.form
    home += {"strong": FORM_SWING, "weak": -FORM_SWING}.get(form.home, 0.0)
    away += {"strong": FORM_SWING, "weak": -FORM_SWING}.get(form.away, 0.0)

    # (c) efficiency
    eff = signals.efficiency_edge.direction
    if eff == "home":
        home += EFFICIENCY_GAIN
        away -= EFFICIENCY_LOSS
    elif eff == "away":
        away += EFFICIENCY_GAIN
        home -= EFFICIENCY_LOSS

    # (d) availability
    if signals.availability.level == "high":
        if has_draw:
            draw += AVAILABILITY_DRAW_GAIN
        home -= AVAILABILITY_WIN_LOSS
        away -= AVAILABILITY_WIN_LOSS

    total = home + away + draw
    home_pct = int(_clamp(round_half_up(home / total * 100), MIN_WIN_PROB, MAX_WIN_PROB))

    if has_draw:
        away_pct = int(_clamp(round_half_up(away / total * 100), MIN_WIN_PROB, MAX_WIN_PROB))
        if home_pct + away_pct > 100:
            # Only reachable after clamping; the favourite keeps its share.
            if home_pct >= away_pct:
                away_pct = 100 - home_pct
            else:
                home_pct = 100 - away_pct
        draw_pct: Optional[int] = 100 - home_pct - away_pct
    else:
        away_pct = 100 - home_pct
        if away_pct > MAX_WIN_PROB:
            away_pct = MAX_WIN_PROB
            home_pct = 100 - away_pct
        draw_pct = None

    count = clarity(signals)
    return ModelProbability(
        home=home_pct,
        away=away_pct,
        draw=draw_pct,
        confidence=confidence_band(count),
        confidence_score=count * 25,
    )


# ---------------------------------------------------------------------------
# Market proxy
# ---------------------------------------------------------------------------

def market_proxy_probability(
    home_odds: float,
    away_odds: float,
    draw_odds: Optional[float] = None,
) -> ProxyProbability:
    """Odds-only probability proxy used by the poller to classify alerts."""
    implied_home = implied_fraction(home_odds)
    implied_away = implied_fraction(away_odds)
    implied_draw = implied_fraction(draw_odds) if draw_odds else 0.0

    total = implied_home + implied_away + implied_draw
    fair_home = implied_home / total
    fair_away = implied_away / total
    fair_draw = implied_draw / total if draw_odds else None

    strength_ratio = implied_home / (implied_home + implied_away)

    model_home = fair_home * (1 - PROXY_REGRESSION) + PROXY_MEAN * PROXY_REGRESSION
    model_away = fair_away * (1 - PROXY_REGRESSION) + PROXY_MEAN * PROXY_REGRESSION

    if strength_ratio > 0.6:
        model_away += PROXY_UNDERDOG_BOOST
        model_home -= PROXY_UNDERDOG_BOOST
    elif strength_ratio < 0.4:
        model_home += PROXY_UNDERDOG_BOOST
        model_away -= PROXY_UNDERDOG_BOOST

    model_total = model_home + model_away + (fair_draw or 0.0)
    return ProxyProbability(
        home=_clamp(model_home / model_total, 0.08, 0.85),
        away=_clamp(model_away / model_total, 0.08, 0.85),
        draw=_clamp(fair_draw / model_total, 0.05, 0.40) if fair_draw else None,
    )


def estimate(
    fidelity: Fidelity,
    signals: Optional[NormalizedSignals] = None,
    has_draw: bool = True,
    home_odds: Optional[float] = None,
    away_odds: Optional[float] = None,
    draw_odds: Optional[float] = None,
):
    """Dispatch to the estimator matching ``fidelity``.

    Raises:
        ValueError: If the inputs required by the chosen fidelity are missing.
    """
    if fidelity is Fidelity.FULL:
        if signals is None:
            raise ValueError("Fidelity.FULL requires normalized signals")
        return model_probability(signals, has_draw)
    if home_odds is None or away_odds is None:
        raise ValueError("Fidelity.MARKET_PROXY requires home and away odds")
    return market_proxy_probability(home_odds, away_odds, draw_odds)
