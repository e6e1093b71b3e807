"""
Value detection and market intelligence.

Compares model probabilities against bookmaker prices:

    implied     = round(100 / decimal_odds, 1)
    edge        = model_probability − implied       (percentage points)

An outcome is a value candidate when its edge exceeds the minimum value edge
(3 pts).  Among candidates the largest edge wins; exact ties are resolved by
the fixed evaluation order home → away → draw.  That order carries no
modelling meaning, it only makes the result deterministic.

:func:`analyze_market` wraps the value edge with implied probabilities, the
bookmaker margin, an optional line-movement read against a previous price
set, and a recommendation label.  :func:`analyze_match` runs the whole
synchronous pipeline (signals → probability → value) for one request.

Nothing here raises for sparse data: an analysis with no value simply
reports ``outcome=None`` and ``"No clear value"``.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from market_intel.core.odds_math import (
    adjust_for_bookmaker_quality,
    bookmaker_margin,
    implied_prob,
)
from market_intel.core.probability import ModelProbability, model_probability
from market_intel.core.signals import NormalizedSignals, RawMatchStats, normalize_signals
from market_intel.core.sport_config import MarketThresholds

#: Evaluation (and tie-break) order for value candidates.
OUTCOME_ORDER = ("home", "away", "draw")

_OUTCOME_LABELS = {"home": "Home", "away": "Away", "draw": "Draw"}


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MarketOdds:
    """Decimal prices for one event (a single book or a consensus)."""

    home: float
    away: float
    draw: Optional[float] = None
    bookmaker: Optional[str] = None

    def for_outcome(self, outcome: str) -> Optional[float]:
        return {"home": self.home, "away": self.away, "draw": self.draw}.get(outcome)


@dataclass(frozen=True)
class ValueEdge:
    outcome: Optional[str]         # home | away | draw | None
    edge_percent: float
    label: str
    strength: str                  # strong | moderate | slight | none
    edges: Dict[str, float] = field(default_factory=dict)

    @property
    def best_raw_edge(self) -> float:
        """Largest edge over all priced outcomes, value or not."""
        return max(self.edges.values()) if self.edges else 0.0


@dataclass(frozen=True)
class ImpliedProbabilities:
    home: float
    away: float
    draw: Optional[float]
    margin: float


@dataclass(frozen=True)
class LineMovement:
    direction: str                 # toward_home | toward_away | stable
    magnitude: str                 # sharp | moderate | slight
    delta: float                   # previous − current home price
    interpretation: str
    suspicious: bool
    is_steam_move: bool = False
    steam_direction: Optional[str] = None
    is_reverse: bool = False
    rlm_explanation: Optional[str] = None


@dataclass(frozen=True)
class MarketIntel:
    model_probability: ModelProbability
    implied: ImpliedProbabilities
    value_edge: ValueEdge
    recommendation: str            # strong_value | slight_value | fair_price | overpriced | avoid
    summary: str
    line_movement: Optional[LineMovement] = None
    conflict_explanation: Optional[str] = None


# ---------------------------------------------------------------------------
# Value edge
# ---------------------------------------------------------------------------

def value_strength(edge: float, thresholds: MarketThresholds) -> str:
    if edge >= thresholds.strong_value_edge:
        return "strong"
    if edge >= thresholds.moderate_value_edge:
        return "moderate"
    if edge >= thresholds.min_value_edge:
        return "slight"
    return "none"


def _implied_for(
    outcome: str,
    odds: MarketOdds,
    use_bookmaker_quality: bool,
) -> Optional[float]:
    price = odds.for_outcome(outcome)
    if price is None:
        return None
    implied = implied_prob(price)
    if use_bookmaker_quality:
        implied = adjust_for_bookmaker_quality(implied, odds.bookmaker, odds.draw is not None)
    return implied


def detect_value(
    model: ModelProbability,
    odds: MarketOdds,
    thresholds: Optional[MarketThresholds] = None,
    use_bookmaker_quality: bool = False,
) -> ValueEdge:
    """Find the outcome where the model most exceeds the market.

    Args:
        model:                 Model probabilities (percent).
        odds:                  Decimal prices for the same event.
        thresholds:            Value bands; defaults to
                               :meth:`MarketThresholds.default`.
        use_bookmaker_quality: Regress soft-book implied probabilities
                               toward a neutral prior before comparing.
    """
    t = thresholds or MarketThresholds.default()

    edges: Dict[str, float] = {}
    for outcome in OUTCOME_ORDER:
        model_pct = model.for_outcome(outcome)
        implied = _implied_for(outcome, odds, use_bookmaker_quality)
        if model_pct is None or implied is None:
            continue
        edges[outcome] = model_pct - implied

    best_outcome: Optional[str] = None
    best_edge = 0.0
    for outcome in OUTCOME_ORDER:
        edge = edges.get(outcome)
        if edge is None:
            continue
        if edge > t.min_value_edge and edge > best_edge:
            best_outcome, best_edge = outcome, edge

    rounded = {k: round(v, 1) for k, v in edges.items()}
    if best_outcome is None:
        return ValueEdge(
            outcome=None,
            edge_percent=0.0,
            label="No clear value",
            strength="none",
            edges=rounded,
        )

    return ValueEdge(
        outcome=best_outcome,
        edge_percent=round(best_edge, 1),
        label=f"{_OUTCOME_LABELS[best_outcome]} +{best_edge:.1f}% Value",
        strength=value_strength(best_edge, t),
        edges=rounded,
    )


# ---------------------------------------------------------------------------
# Line movement
# ---------------------------------------------------------------------------

def analyze_line_movement(
    current: MarketOdds,
    previous: MarketOdds,
    model: Optional[ModelProbability] = None,
    thresholds: Optional[MarketThresholds] = None,
) -> LineMovement:
    """Read the home-price move between two price sets.

    A shortening home price (positive delta) means money is coming for home.
    When a model is supplied, a move against a side the model clearly
    favours is flagged as reverse line movement.
    """
    t = thresholds or MarketThresholds.default()
    delta = previous.home - current.home
    size = abs(delta)

    if delta > t.movement_direction:
        direction = "toward_home"
    elif delta < -t.movement_direction:
        direction = "toward_away"
    else:
        direction = "stable"

    if size > t.movement_sharp:
        magnitude = "sharp"
    elif size > t.movement_moderate:
        magnitude = "moderate"
    else:
        magnitude = "slight"

    steam_direction = {"toward_home": "home", "toward_away": "away"}.get(direction)
    is_steam = steam_direction is not None and (
        magnitude == "sharp" or (magnitude == "moderate" and size > t.movement_steam)
    )

    is_reverse = False
    rlm_explanation = None
    if model is not None and direction != "stable":
        gap = model.home - model.away
        strongly_favours = None
        if gap > t.reverse_model_gap:
            strongly_favours = "home"
        elif -gap > t.reverse_model_gap:
            strongly_favours = "away"
        if strongly_favours and steam_direction and steam_direction != strongly_favours:
            is_reverse = True
            public = _OUTCOME_LABELS[strongly_favours]
            sharp = _OUTCOME_LABELS[steam_direction]
            rlm_explanation = (
                f"Reverse line movement: public likely on {public} (favourite) "
                f"but the line is moving toward {sharp}."
            )

    interpretation = {
        "toward_home": "Money coming for Home",
        "toward_away": "Money coming for Away",
    }.get(direction, "Line stable")

    return LineMovement(
        direction=direction,
        magnitude=magnitude,
        delta=round(delta, 3),
        interpretation=interpretation,
        suspicious=size > t.movement_suspicious,
        is_steam_move=is_steam,
        steam_direction=steam_direction if is_steam else None,
        is_reverse=is_reverse,
        rlm_explanation=rlm_explanation,
    )


# ---------------------------------------------------------------------------
# Market intelligence
# ---------------------------------------------------------------------------

def recommend(
    model: ModelProbability,
    value_edge: ValueEdge,
    thresholds: Optional[MarketThresholds] = None,
) -> str:
    """Map a value read to a recommendation label.

    ``overpriced`` only when every priced outcome sits below the overpriced
    edge, i.e. the best raw edge is under it.
    """
    t = thresholds or MarketThresholds.default()

    if value_edge.strength == "strong":
        return "strong_value"
    if value_edge.strength in ("moderate", "slight"):
        return "slight_value"
    if value_edge.best_raw_edge < t.overpriced_edge:
        return "overpriced"
    if model.confidence_score < t.avoid_confidence:
        return "avoid"
    return "fair_price"


def analyze_market(
    model: ModelProbability,
    odds: MarketOdds,
    previous_odds: Optional[MarketOdds] = None,
    thresholds: Optional[MarketThresholds] = None,
    use_bookmaker_quality: bool = False,
) -> MarketIntel:
    """Full market-intelligence read for one event."""
    t = thresholds or MarketThresholds.default()

    implied = ImpliedProbabilities(
        home=implied_prob(odds.home),
        away=implied_prob(odds.away),
        draw=implied_prob(odds.draw) if odds.draw else None,
        margin=bookmaker_margin(odds.home, odds.away, odds.draw),
    )

    movement = None
    if previous_odds is not None:
        movement = analyze_line_movement(odds, previous_odds, model, t)

    value_edge = detect_value(model, odds, t, use_bookmaker_quality)
    recommendation = recommend(model, value_edge, t)

    conflict = None
    if value_edge.outcome:
        summary = (
            f"Model sees {value_edge.label}. Market implies {implied.home}% home, "
            f"we calculate {model.home}%."
        )
        favoured = model.favoured
        if value_edge.outcome != favoured:
            favoured_prob = model.for_outcome(favoured)
            value_implied = getattr(implied, value_edge.outcome)
            conflict = (
                f"{_OUTCOME_LABELS[favoured]} is the stronger side ({favoured_prob}% model "
                f"probability) but the market has overpriced them. "
                f"{_OUTCOME_LABELS[value_edge.outcome]} offers +{value_edge.edge_percent}% "
                f"value: the market implies {value_implied}% vs our "
                f"{model.for_outcome(value_edge.outcome)}%."
            )
    else:
        summary = f"Fair price. Model and market align around {model.home}% home probability."

    return MarketIntel(
        model_probability=model,
        implied=implied,
        value_edge=value_edge,
        recommendation=recommendation,
        summary=summary,
        line_movement=movement,
        conflict_explanation=conflict,
    )


def analyze_match(
    data: RawMatchStats,
    odds: MarketOdds,
    previous_odds: Optional[MarketOdds] = None,
    thresholds: Optional[MarketThresholds] = None,
):
    """Signals → probability → market intelligence for one request.

    The market decides the outcome set: a draw is modelled only when a draw
    price is supplied.

    Returns:
        ``(signals, market_intel)`` tuple.
    """
    signals: NormalizedSignals = normalize_signals(data)
    model = model_probability(signals, has_draw=odds.draw is not None)
    return signals, analyze_market(model, odds, previous_odds, thresholds)
