"""Sport-level configuration - all sport-specific constants in one place.

This module is the **registry** for every constant that differs between
sports, plus the market thresholds shared by the value detector, the odds
poller and the CLV tracker.  Nowhere else in the codebase should tempo
bands, home-advantage figures, value-edge bands or steam thresholds be
hard-coded.

Architecture
------------
:class:`SportConfig` is a frozen dataclass carrying all per-sport constants.
Named constructors (:meth:`SportConfig.soccer`, :meth:`SportConfig.hockey`,
...) return pre-populated instances; :func:`for_sport` looks one up by its
canonical id.

:class:`MarketThresholds` is the equivalent bundle for market-side numbers.
To tune a single threshold for an experiment::

    from dataclasses import replace
    from market_intel.core.sport_config import MarketThresholds

    loose = replace(MarketThresholds.default(), steam_threshold_pct=2.0)

:data:`POLL_SPORTS` is the static sports catalog that selects what the odds
poller covers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Final, Tuple

#: Canonical sport identifiers.
SPORT_SOCCER: Final[str] = "soccer"
SPORT_BASKETBALL: Final[str] = "basketball"
SPORT_FOOTBALL: Final[str] = "football"
SPORT_HOCKEY: Final[str] = "hockey"


@dataclass(frozen=True)
class SportConfig:
    """Immutable configuration bundle for a single sport.

    Attributes:
        sport_id: Canonical identifier (``"soccer"``, ``"basketball"``, ...).
        sport_name: Human-readable name for logging.
        has_draw: Whether a drawn result is a possible outcome.  Drives the
            form-rating points scale (3/1/0 vs 1/0).
        tempo_low: Average per-game scoring below which tempo is "low".
        tempo_high: Average per-game scoring above which tempo is "high".
        home_advantage_pct: Fixed home-advantage term added to the strength
            edge, in percentage points.
        efficiency_threshold: Minimum net-efficiency gap (scoring units per
            game) before an efficiency edge is declared.
        scoring_unit: ``"goals"`` or ``"points"``; display only.
    """

    sport_id: str
    sport_name: str
    has_draw: bool
    tempo_low: float
    tempo_high: float
    home_advantage_pct: float = 3.0
    efficiency_threshold: float = 0.2
    scoring_unit: str = "goals"

    # ------------------------------------------------------------------ #
    #  Named constructors                                                  #
    # ------------------------------------------------------------------ #

    @classmethod
    def soccer(cls) -> SportConfig:
        return cls(
            sport_id=SPORT_SOCCER,
            sport_name="Soccer",
            has_draw=True,
            tempo_low=1.2,       # goals per game
            tempo_high=1.8,
        )

    @classmethod
    def basketball(cls) -> SportConfig:
        return cls(
            sport_id=SPORT_BASKETBALL,
            sport_name="Basketball",
            has_draw=False,
            tempo_low=105.0,     # points per game
            tempo_high=115.0,
            scoring_unit="points",
        )

    @classmethod
    def football(cls) -> SportConfig:
        return cls(
            sport_id=SPORT_FOOTBALL,
            sport_name="American Football",
            has_draw=False,
            tempo_low=20.0,      # points per game
            tempo_high=28.0,
            scoring_unit="points",
        )

    @classmethod
    def hockey(cls) -> SportConfig:
        """Hockey keeps draws in the form scale (regulation ties count)."""
        return cls(
            sport_id=SPORT_HOCKEY,
            sport_name="Ice Hockey",
            has_draw=True,
            tempo_low=2.5,       # goals per game
            tempo_high=3.5,
        )

    def __repr__(self) -> str:
        return (
            f"SportConfig(sport_id={self.sport_id!r}, "
            f"has_draw={self.has_draw}, "
            f"tempo=({self.tempo_low}, {self.tempo_high}))"
        )


_REGISTRY: Dict[str, SportConfig] = {
    SPORT_SOCCER: SportConfig.soccer(),
    SPORT_BASKETBALL: SportConfig.basketball(),
    SPORT_FOOTBALL: SportConfig.football(),
    SPORT_HOCKEY: SportConfig.hockey(),
}


def detect_sport(raw: str) -> str:
    """Map a free-text sport name or odds-provider sport key to a canonical id.

    Anything unrecognised is treated as soccer.

    Examples::

        detect_sport("basketball_nba")        → "basketball"
        detect_sport("americanfootball_nfl")  → "football"
        detect_sport("icehockey_nhl")         → "hockey"
        detect_sport("soccer_epl")            → "soccer"
    """
    s = (raw or "").lower()
    if "basketball" in s or "nba" in s:
        return SPORT_BASKETBALL
    if "american" in s or "nfl" in s:
        return SPORT_FOOTBALL
    if "hockey" in s or "nhl" in s:
        return SPORT_HOCKEY
    return SPORT_SOCCER


def for_sport(raw: str) -> SportConfig:
    """Return the :class:`SportConfig` for any sport string."""
    return _REGISTRY[detect_sport(raw)]


# ---------------------------------------------------------------------------
# Market thresholds
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MarketThresholds:
    """Every market-side number used by the value detector and batch jobs.

    Edges and probabilities are percentage points; line-movement bands are
    decimal-odds units; the steam threshold is a percentage price change.
    """

    # --- Value edge bands ---
    min_value_edge: float = 3.0
    moderate_value_edge: float = 6.0
    strong_value_edge: float = 10.0
    overpriced_edge: float = -5.0
    avoid_confidence: float = 40.0

    # --- Line movement (decimal odds units) ---
    movement_direction: float = 0.05
    movement_moderate: float = 0.08
    movement_sharp: float = 0.15
    movement_suspicious: float = 0.20
    movement_steam: float = 0.10
    reverse_model_gap: float = 10.0

    # --- Steam and alerting (poller) ---
    steam_threshold_pct: float = 2.5
    alert_high_edge: float = 5.0
    alert_medium_edge: float = 8.0
    alert_low_edge: float = 3.0

    # --- Batch windows ---
    poll_horizon_hours: float = 72.0
    snapshot_retention_hours: float = 24.0
    clv_window_hours: float = 2.0
    clv_batch_size: int = 20
    request_delay_seconds: float = 0.3

    # --- Market references ---
    sharp_book: str = "pinnacle"
    consensus_label: str = "consensus"

    @classmethod
    def default(cls) -> MarketThresholds:
        return cls()


# ---------------------------------------------------------------------------
# Sports catalog (poller coverage)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PollSport:
    """One entry of the poller's sports catalog."""

    sport_key: str
    league: str
    has_draw: bool


POLL_SPORTS: Final[Tuple[PollSport, ...]] = (
    PollSport("soccer_epl", "Premier League", True),
    PollSport("soccer_spain_la_liga", "La Liga", True),
    PollSport("soccer_germany_bundesliga", "Bundesliga", True),
    PollSport("basketball_nba", "NBA", False),
    PollSport("americanfootball_nfl", "NFL", False),
)
