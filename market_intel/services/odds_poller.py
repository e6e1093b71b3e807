"""
Scheduled odds snapshot poller and steam-move detector.

Each run walks the static sports catalog, fetches h2h prices for events
starting within the poll horizon (72 h), and upserts one consensus snapshot
per event:

    1. Consensus price per outcome (mean across bookmakers).
    2. % change against the stored snapshot of the previous run.
    3. Steam detection: a side whose price shortened by ≥ 2.5 % since the
       previous run is carrying sharp money.
    4. Market-proxy probabilities and per-outcome edges, used only to grade
       the alert level.  Snapshots carry ``model_fidelity="market_proxy"``.

Snapshots whose match date is more than 24 h in the past are purged at the
end of every run.

Error model
-----------
A missing API key aborts the whole run before any work is done.  A failed
sport fetch is recorded and the run moves on to the next sport.  A failed
event rolls back only that event's transaction.  Events committed earlier
in the run stay committed.  Nothing is retried within a run.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from market_intel.core.odds_math import pct_change
from market_intel.core.probability import Fidelity, market_proxy_probability
from market_intel.core.sport_config import POLL_SPORTS, MarketThresholds, PollSport
from market_intel.models import OddsSnapshot, SessionLocal
from market_intel.services.odds import (
    ConsensusOdds,
    OddsAPIClient,
    consensus_odds,
    parse_commence_time,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class SteamSignal:
    has_steam: bool
    direction: str = "stable"      # toward_home | toward_away | stable
    note: Optional[str] = None


@dataclass
class PollSummary:
    sports_polled: int = 0
    events_processed: int = 0
    snapshots_created: int = 0
    snapshots_updated: int = 0
    steam_moves_detected: int = 0
    snapshots_deleted: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "sports_polled": self.sports_polled,
            "events_processed": self.events_processed,
            "snapshots_created": self.snapshots_created,
            "snapshots_updated": self.snapshots_updated,
            "steam_moves_detected": self.steam_moves_detected,
            "snapshots_deleted": self.snapshots_deleted,
            "errors": list(self.errors),
            "timestamp": datetime.utcnow().isoformat(),
        }


# ---------------------------------------------------------------------------
# Detection rules (pure)
# ---------------------------------------------------------------------------

def detect_steam_move(
    home_change: Optional[float],
    away_change: Optional[float],
    threshold: float = 2.5,
) -> SteamSignal:
    """
    Classify a cycle-to-cycle price move.

    Shortening odds mean money is coming in, so only a side whose price
    dropped by at least ``threshold`` percent counts.  When both sides
    shortened that far the larger drop sets the direction.  A move where the
    only large change is a lengthening is not steam.
    """
    home_short = home_change is not None and home_change <= -threshold
    away_short = away_change is not None and away_change <= -threshold

    if home_short and away_short:
        direction = "toward_home" if abs(home_change) >= abs(away_change) else "toward_away"
        return SteamSignal(True, direction, "Unusual market movement on both sides")
    if home_short:
        return SteamSignal(
            True, "toward_home",
            f"Sharp action on home team (-{abs(home_change):.1f}% odds drop)",
        )
    if away_short:
        return SteamSignal(
            True, "toward_away",
            f"Sharp action on away team (-{abs(away_change):.1f}% odds drop)",
        )
    return SteamSignal(False)


def alert_level(
    has_steam: bool,
    best_edge: float,
    thresholds: Optional[MarketThresholds] = None,
) -> Optional[str]:
    """HIGH: steam with edge > 5.  MEDIUM: steam, or edge > 8.  LOW: edge > 3."""
    t = thresholds or MarketThresholds.default()
    if has_steam and best_edge > t.alert_high_edge:
        return "HIGH"
    if has_steam or best_edge > t.alert_medium_edge:
        return "MEDIUM"
    if best_edge > t.alert_low_edge:
        return "LOW"
    return None


def proxy_edges(consensus: ConsensusOdds) -> Dict[str, Optional[float]]:
    """Market-proxy probabilities (fractions) and edges (percentage points)."""
    proxy = market_proxy_probability(consensus.home, consensus.away, consensus.draw)

    home_edge = (proxy.home - 1.0 / consensus.home) * 100
    away_edge = (proxy.away - 1.0 / consensus.away) * 100
    draw_edge = None
    if proxy.draw is not None and consensus.draw:
        draw_edge = (proxy.draw - 1.0 / consensus.draw) * 100

    return {
        "model_home_prob": proxy.home,
        "model_away_prob": proxy.away,
        "model_draw_prob": proxy.draw,
        "home_edge": round(home_edge, 2),
        "away_edge": round(away_edge, 2),
        "draw_edge": round(draw_edge, 2) if draw_edge is not None else None,
    }


# ---------------------------------------------------------------------------
# Persistence helpers
# ---------------------------------------------------------------------------

def cleanup_stale_snapshots(
    db: Session,
    now: Optional[datetime] = None,
    retention_hours: float = 24.0,
) -> int:
    """Delete snapshots whose match date is older than the retention window.

    Returns the number of deleted rows.  Errors propagate to the caller.
    """
    now = now or datetime.utcnow()
    cutoff = now - timedelta(hours=retention_hours)
    deleted = (
        db.query(OddsSnapshot)
        .filter(OddsSnapshot.match_date < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted


def _event_label(event) -> str:
    if not isinstance(event, dict):
        return repr(event)
    return f"{event.get('home_team')} vs {event.get('away_team')}"


def _upsert_snapshot(
    db: Session,
    sport: PollSport,
    event: Dict,
    match_date: datetime,
    consensus: ConsensusOdds,
    t: MarketThresholds,
) -> tuple:
    """Create or refresh the consensus snapshot for one event.

    Returns ``(created, steam)``.
    """
    match_ref = f"{event['home_team']} vs {event['away_team']}"
    snapshot = (
        db.query(OddsSnapshot)
        .filter(
            OddsSnapshot.match_ref == match_ref,
            OddsSnapshot.sport == sport.sport_key,
            OddsSnapshot.bookmaker == t.consensus_label,
        )
        .first()
    )

    prev_home = snapshot.home_odds if snapshot else None
    prev_away = snapshot.away_odds if snapshot else None
    prev_draw = snapshot.draw_odds if snapshot else None

    home_change = pct_change(consensus.home, prev_home)
    away_change = pct_change(consensus.away, prev_away)
    draw_change = pct_change(consensus.draw, prev_draw) if consensus.draw else None

    steam = detect_steam_move(home_change, away_change, t.steam_threshold_pct)
    derived = proxy_edges(consensus)
    priced = [e for e in (derived["home_edge"], derived["away_edge"], derived["draw_edge"]) if e is not None]
    best_edge = max(priced)

    created = snapshot is None
    if created:
        snapshot = OddsSnapshot(
            match_ref=match_ref,
            sport=sport.sport_key,
            bookmaker=t.consensus_label,
            opening_home_odds=consensus.home,
            opening_away_odds=consensus.away,
            opening_draw_odds=consensus.draw,
        )
        db.add(snapshot)

    snapshot.league = sport.league
    snapshot.home_team = event["home_team"]
    snapshot.away_team = event["away_team"]
    snapshot.match_date = match_date
    snapshot.home_odds = consensus.home
    snapshot.away_odds = consensus.away
    snapshot.draw_odds = consensus.draw
    snapshot.prev_home_odds = prev_home
    snapshot.prev_away_odds = prev_away
    snapshot.prev_draw_odds = prev_draw
    snapshot.home_change = home_change
    snapshot.away_change = away_change
    snapshot.draw_change = draw_change
    snapshot.model_fidelity = Fidelity.MARKET_PROXY.value
    for key, value in derived.items():
        setattr(snapshot, key, value)
    snapshot.has_steam_move = steam.has_steam
    snapshot.has_value_edge = best_edge > t.min_value_edge
    snapshot.alert_level = alert_level(steam.has_steam, best_edge, t)
    snapshot.alert_note = steam.note

    db.commit()
    return created, steam


# ---------------------------------------------------------------------------
# Scheduled job
# ---------------------------------------------------------------------------

def poll_odds(
    db: Optional[Session] = None,
    client: Optional[OddsAPIClient] = None,
    sports: Sequence[PollSport] = POLL_SPORTS,
    now: Optional[datetime] = None,
    thresholds: Optional[MarketThresholds] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> PollSummary:
    """
    Poll every catalog sport once and upsert consensus snapshots.

    Called by the scheduler every ``ODDS_POLL_INTERVAL_MIN`` minutes.

    Raises:
        ConfigurationError: When no odds API key is configured.  Raised
            before any database or network work.
    """
    t = thresholds or MarketThresholds.default()
    client = client or OddsAPIClient()

    owns_session = db is None
    db = db or SessionLocal()
    now = now or datetime.utcnow()
    horizon = now + timedelta(hours=t.poll_horizon_hours)
    summary = PollSummary()

    logger.info("Starting poll_odds for %d sports", len(sports))
    try:
        for i, sport in enumerate(sports):
            if i > 0:
                sleep(t.request_delay_seconds)

            try:
                events = client.get_odds_for_sport(
                    sport.sport_key,
                    markets="h2h",
                    commence_from=now,
                    commence_to=horizon,
                )
            except Exception as exc:
                logger.error("Odds fetch failed for %s: %s", sport.sport_key, exc)
                summary.errors.append(f"{sport.sport_key}: {exc}")
                continue

            if not events:
                logger.info("No events found for %s", sport.sport_key)
                continue
            summary.sports_polled += 1

            for event in events:
                try:
                    match_date = parse_commence_time(event.get("commence_time"))
                    if match_date is None:
                        logger.debug("Skipping event with unusable commence_time %r",
                                     event.get("commence_time"))
                        continue
                    if not (now <= match_date <= horizon):
                        continue

                    consensus = consensus_odds(event)
                    if consensus is None:
                        logger.debug("No h2h consensus for %s vs %s",
                                     event.get("home_team"), event.get("away_team"))
                        continue

                    created, steam = _upsert_snapshot(db, sport, event, match_date, consensus, t)
                except Exception as exc:
                    db.rollback()
                    label = _event_label(event)
                    logger.error("Error processing %s: %s", label, exc, exc_info=True)
                    summary.errors.append(f"{label}: {exc}")
                    continue

                if created:
                    summary.snapshots_created += 1
                else:
                    summary.snapshots_updated += 1
                if steam.has_steam:
                    summary.steam_moves_detected += 1
                    logger.info("Steam move detected: %s vs %s - %s",
                                event["home_team"], event["away_team"], steam.note)
                summary.events_processed += 1

            logger.info("Remaining API quota: %s", getattr(client, "requests_remaining", None))

        try:
            summary.snapshots_deleted = cleanup_stale_snapshots(db, now, t.snapshot_retention_hours)
            logger.info("Cleaned up %d old snapshots", summary.snapshots_deleted)
        except Exception as exc:
            db.rollback()
            logger.error("Snapshot cleanup error: %s", exc, exc_info=True)
            summary.errors.append(f"cleanup: {exc}")
    finally:
        if owns_session:
            db.close()

    logger.info("poll_odds done: %s", summary.to_dict())
    return summary
