"""
Signal normalizer: raw per-team stats → sport-agnostic signals.

Every sport is mapped onto the same five signals:

    1. Form            strong | neutral | weak per side, plus a comparison
    2. Strength edge   home +X% | away +X% | even
    3. Tempo           low | medium | high
    4. Efficiency edge home | away | none, with the dominant aspect
    5. Availability    low | medium | high, with an optional note

Downstream components (the probability model, upstream renderers) only ever
see these labels and small deltas, never raw stats.

The normalizer never raises.  Sparse or missing input degrades to neutral
defaults: an empty form string rates 50, a team with no games played has a
0.5 win rate and zero scoring rates.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

from market_intel.core.odds_math import round_half_up
from market_intel.core.sport_config import SportConfig, for_sport

#: Recency weights for the last five results, most recent first.
FORM_WEIGHTS: Tuple[float, ...] = (1.5, 1.3, 1.1, 1.0, 0.9)

FORM_STRONG = 65.0
FORM_WEAK = 35.0
FORM_COMPARISON_GAP = 15.0

EDGE_CLAMP = 20.0
EDGE_EVEN_BELOW = 3.0
GOAL_DIFF_SCALE = 0.05
H2H_WEIGHT = 0.10

# A team with no games must never look defensively efficient.
NO_GAMES_CONCEDED_RATE = 999.0


# ---------------------------------------------------------------------------
# Raw inputs
# ---------------------------------------------------------------------------

@dataclass
class TeamStats:
    """Per-team inputs supplied fresh with every analysis request."""

    form: str = ""                 # e.g. "WWLDW", most recent first
    played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    scored: float = 0.0            # goals or points
    conceded: float = 0.0
    injuries: int = 0
    key_absentees: Sequence[str] = field(default_factory=list)
    # Optional advanced metrics; carried through but not weighted.
    xg: Optional[float] = None
    possession: Optional[float] = None

    @property
    def win_rate(self) -> float:
        return self.wins / self.played if self.played > 0 else 0.5

    @property
    def scored_per_game(self) -> float:
        return self.scored / self.played if self.played > 0 else 0.0

    @property
    def conceded_per_game(self) -> float:
        return self.conceded / self.played if self.played > 0 else NO_GAMES_CONCEDED_RATE

    @property
    def goal_diff_per_game(self) -> float:
        if self.played <= 0:
            return 0.0
        return (self.scored - self.conceded) / self.played


@dataclass
class HeadToHead:
    home_wins: int = 0
    away_wins: int = 0
    draws: int = 0
    total: int = 0


@dataclass
class RawMatchStats:
    """Everything the normalizer needs for one match."""

    sport: str
    home: TeamStats
    away: TeamStats
    h2h: HeadToHead = field(default_factory=HeadToHead)
    home_team: str = "Home"
    away_team: str = "Away"


# ---------------------------------------------------------------------------
# Normalized outputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FormSignal:
    home: str                      # strong | neutral | weak
    away: str
    comparison: str                # home_advantage | away_advantage | balanced
    home_rating: float = 50.0
    away_rating: float = 50.0


@dataclass(frozen=True)
class StrengthEdge:
    direction: str                 # home | away | even
    magnitude: int                 # percentage points
    label: str


@dataclass(frozen=True)
class TempoSignal:
    expected: str                  # low | medium | high
    note: Optional[str] = None


@dataclass(frozen=True)
class EfficiencyEdge:
    direction: str                 # home | away | none
    aspect: Optional[str] = None   # offense | defense


@dataclass(frozen=True)
class AvailabilityImpact:
    level: str                     # low | medium | high
    note: Optional[str] = None


@dataclass(frozen=True)
class NormalizedSignals:
    sport: str
    form: FormSignal
    strength_edge: StrengthEdge
    tempo: TempoSignal
    efficiency_edge: EfficiencyEdge
    availability: AvailabilityImpact


# ---------------------------------------------------------------------------
# Individual signals
# ---------------------------------------------------------------------------

def form_rating(form: str, has_draw: bool) -> float:
    """Weighted 0–100 rating of the last five results.

    A win earns 3 points when draws are possible (1 otherwise), a draw earns
    1 point only when draws are possible, anything else earns nothing.
    """
    if not form:
        return 50.0

    per_win = 3 if has_draw else 1
    points = 0.0
    max_points = 0.0
    for result, weight in zip(form.upper(), FORM_WEIGHTS):
        max_points += per_win * weight
        if result == "W":
            points += per_win * weight
        elif result == "D" and has_draw:
            points += weight

    return points / max_points * 100.0 if max_points > 0 else 50.0


def form_label(rating: float) -> str:
    if rating >= FORM_STRONG:
        return "strong"
    if rating <= FORM_WEAK:
        return "weak"
    return "neutral"


def compare_form(home_rating: float, away_rating: float) -> str:
    if home_rating - away_rating >= FORM_COMPARISON_GAP:
        return "home_advantage"
    if away_rating - home_rating >= FORM_COMPARISON_GAP:
        return "away_advantage"
    return "balanced"


def strength_edge(data: RawMatchStats, config: SportConfig) -> StrengthEdge:
    """Win-rate gap + scaled goal-differential gap + h2h skew + home advantage."""
    win_rate_diff = data.home.win_rate - data.away.win_rate
    gd_diff = (data.home.goal_diff_per_game - data.away.goal_diff_per_game) * GOAL_DIFF_SCALE

    h2h = data.h2h
    h2h_factor = 0.0
    if h2h.total > 0:
        h2h_factor = (h2h.home_wins - h2h.away_wins) / h2h.total * H2H_WEIGHT

    raw = (win_rate_diff + gd_diff + h2h_factor) * 100.0 + config.home_advantage_pct
    clamped = max(-EDGE_CLAMP, min(EDGE_CLAMP, raw))

    if abs(clamped) < EDGE_EVEN_BELOW:
        return StrengthEdge(direction="even", magnitude=0, label="Even")

    direction = "home" if clamped > 0 else "away"
    magnitude = round_half_up(abs(clamped))
    return StrengthEdge(
        direction=direction,
        magnitude=magnitude,
        label=f"{direction.capitalize()} +{magnitude}%",
    )


def tempo(data: RawMatchStats, config: SportConfig) -> TempoSignal:
    avg = (data.home.scored_per_game + data.away.scored_per_game) / 2.0
    if avg < config.tempo_low:
        return TempoSignal(expected="low")
    if avg > config.tempo_high:
        return TempoSignal(expected="high")
    return TempoSignal(expected="medium")


def efficiency_edge(data: RawMatchStats, config: SportConfig) -> EfficiencyEdge:
    home, away = data.home, data.away
    home_net = home.scored_per_game - home.conceded_per_game
    away_net = away.scored_per_game - away.conceded_per_game
    diff = home_net - away_net

    if abs(diff) < config.efficiency_threshold:
        return EfficiencyEdge(direction="none")

    off_diff = home.scored_per_game - away.scored_per_game
    def_diff = away.conceded_per_game - home.conceded_per_game  # lower conceded is better
    aspect = "offense" if abs(off_diff) > abs(def_diff) else "defense"

    return EfficiencyEdge(direction="home" if diff > 0 else "away", aspect=aspect)


def availability_impact(data: RawMatchStats) -> AvailabilityImpact:
    home_out = list(data.home.key_absentees or [])
    away_out = list(data.away.key_absentees or [])
    key_out = home_out + away_out
    total_injuries = (data.home.injuries or 0) + (data.away.injuries or 0)

    if len(key_out) >= 2:
        sides = "both sides" if home_out and away_out else "one side"
        return AvailabilityImpact(level="high", note=f"Key absences on {sides}")

    if len(key_out) == 1 or total_injuries >= 4:
        note = f"{key_out[0]} unavailable" if key_out else None
        return AvailabilityImpact(level="medium", note=note)

    return AvailabilityImpact(level="low")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def normalize_signals(data: RawMatchStats) -> NormalizedSignals:
    """Convert raw match data to :class:`NormalizedSignals`.

    Recomputed on every call; nothing is cached.
    """
    config = for_sport(data.sport)

    home_rating = form_rating(data.home.form, config.has_draw)
    away_rating = form_rating(data.away.form, config.has_draw)

    return NormalizedSignals(
        sport=config.sport_id,
        form=FormSignal(
            home=form_label(home_rating),
            away=form_label(away_rating),
            comparison=compare_form(home_rating, away_rating),
            home_rating=round(home_rating, 1),
            away_rating=round(away_rating, 1),
        ),
        strength_edge=strength_edge(data, config),
        tempo=tempo(data, config),
        efficiency_edge=efficiency_edge(data, config),
        availability=availability_impact(data),
    )


def signal_summary(signals: NormalizedSignals) -> str:
    """One-line digest, e.g. for upstream prompt building or logs."""
    eff = signals.efficiency_edge
    efficiency = eff.direction if not eff.aspect else f"{eff.direction} ({eff.aspect})"
    availability = signals.availability.level
    if signals.availability.note:
        availability = f"{availability} ({signals.availability.note})"
    return (
        f"Form: {signals.form.home} vs {signals.form.away} "
        f"({signals.form.comparison.replace('_', ' ')}) | "
        f"Edge: {signals.strength_edge.label} | "
        f"Tempo: {signals.tempo.expected} | "
        f"Efficiency: {efficiency} | "
        f"Availability: {availability}"
    )
