"""
Closing Line Value (CLV) tracking for published predictions.

CLV is the primary edge-validation metric in sports betting.  Positive CLV
means the price at publication was better than where the market settled just
before kickoff, which correlates with long-term profitability independent of
individual results.

For a prediction on one side with decimal prices:

    opening_prob    = 100 / opening_odds
    closing_prob    = 100 / closing_odds
    clv_percentage  = (closing_prob − opening_prob) / opening_prob × 100
    clv_value       = closing_prob − opening_prob        (percentage points)

A shortening price on our side raises its implied probability, so positive
values mean we beat the close.

The scheduled job (:func:`fetch_closing_lines`) picks pending predictions
kicking off within the CLV window, reads the sharp reference book's h2h
price for the predicted side, and latches ``clv_fetched``.  The latch is
one-way: a latched prediction is never selected again.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from market_intel.core.sport_config import MarketThresholds
from market_intel.models import PredictionRecord, SessionLocal
from market_intel.services.odds import OddsAPIClient, reference_quote
from market_intel.services.team_matching import find_event, split_match_ref

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------

@dataclass
class CLVResult:
    """CLV metrics for a single prediction."""

    opening_odds: float
    closing_odds: float
    opening_prob: float        # percent
    closing_prob: float        # percent
    clv_percentage: float      # relative change (positive = good)
    clv_value: float           # absolute change, percentage points

    def is_positive(self) -> bool:
        """True when the market moved toward our side."""
        return self.clv_percentage > 0

    def grade(self) -> str:
        """Human-readable CLV grade for display."""
        if self.clv_percentage >= 5.0:
            return "STRONG+"
        elif self.clv_percentage >= 1.0:
            return "POSITIVE"
        elif self.clv_percentage >= -1.0:
            return "NEUTRAL"
        elif self.clv_percentage >= -5.0:
            return "NEGATIVE"
        return "STRONG-"


@dataclass
class CLVRunSummary:
    candidates: int = 0
    updated: int = 0
    unresolved: int = 0
    errors: List[str] = field(default_factory=list)
    results: List[Dict] = field(default_factory=list)

    @property
    def avg_clv(self) -> Optional[float]:
        if not self.results:
            return None
        return round(sum(r["clv_percentage"] for r in self.results) / len(self.results), 2)

    @property
    def positive_clv_rate(self) -> Optional[float]:
        if not self.results:
            return None
        positive = sum(1 for r in self.results if r["clv_percentage"] > 0)
        return round(positive / len(self.results) * 100, 1)

    def to_dict(self) -> Dict:
        return {
            "candidates": self.candidates,
            "updated": self.updated,
            "unresolved": self.unresolved,
            "errors": list(self.errors),
            "avg_clv": self.avg_clv,
            "positive_clv_rate": self.positive_clv_rate,
            "results": list(self.results),
            "timestamp": datetime.utcnow().isoformat(),
        }


# ---------------------------------------------------------------------------
# Calculation
# ---------------------------------------------------------------------------

def calculate_clv(opening_odds: float, closing_odds: float) -> CLVResult:
    """
    CLV for one side from its opening and closing decimal prices.

    Raises:
        ValueError: If either price is ≤ 1.0.
    """
    if opening_odds is None or opening_odds <= 1.0:
        raise ValueError(f"opening_odds={opening_odds} is not a valid decimal price")
    if closing_odds is None or closing_odds <= 1.0:
        raise ValueError(f"closing_odds={closing_odds} is not a valid decimal price")

    opening_prob = 100.0 / opening_odds
    closing_prob = 100.0 / closing_odds
    return CLVResult(
        opening_odds=opening_odds,
        closing_odds=closing_odds,
        opening_prob=opening_prob,
        closing_prob=closing_prob,
        clv_percentage=(closing_prob - opening_prob) / opening_prob * 100.0,
        clv_value=closing_prob - opening_prob,
    )


def prediction_side(prediction: str) -> Optional[str]:
    """Map free-text prediction to ``home`` / ``away`` / ``draw``.

    >>> prediction_side("Home Win")
    'home'
    >>> prediction_side("Away -1.5")
    'away'
    """
    text = (prediction or "").strip().lower()
    if "home win" in text or "home -" in text or text == "1":
        return "home"
    if "away win" in text or "away -" in text or text == "2":
        return "away"
    if "draw" in text or text in ("x", "tie"):
        return "draw"
    return None


# ---------------------------------------------------------------------------
# Scheduled job
# ---------------------------------------------------------------------------

def _pending_predictions(db: Session, now: datetime, t: MarketThresholds) -> List[PredictionRecord]:
    window_end = now + timedelta(hours=t.clv_window_hours)
    return (
        db.query(PredictionRecord)
        .filter(
            PredictionRecord.kickoff >= now,
            PredictionRecord.kickoff <= window_end,
            PredictionRecord.clv_fetched.is_(False),
            PredictionRecord.opening_odds.isnot(None),
            PredictionRecord.outcome == "PENDING",
        )
        .order_by(PredictionRecord.kickoff.asc())
        .limit(t.clv_batch_size)
        .all()
    )


def _mark_unresolved(db: Session, pred: PredictionRecord, reason: str, summary: CLVRunSummary) -> None:
    logger.info("CLV unresolved for prediction %d (%s): %s", pred.id, pred.match_ref, reason)
    pred.clv_fetched = True
    db.commit()
    summary.unresolved += 1


def fetch_closing_lines(
    db: Optional[Session] = None,
    client: Optional[OddsAPIClient] = None,
    now: Optional[datetime] = None,
    thresholds: Optional[MarketThresholds] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> CLVRunSummary:
    """
    Capture closing lines for predictions about to kick off.

    Called by the scheduler every ``CLV_FETCH_INTERVAL_MIN`` minutes.
    Upstream fetch failures leave the prediction untouched so the next run
    retries it; predictions that can never resolve are latched without CLV.

    Raises:
        ConfigurationError: When no odds API key is configured.
    """
    t = thresholds or MarketThresholds.default()
    client = client or OddsAPIClient()

    owns_session = db is None
    db = db or SessionLocal()
    now = now or datetime.utcnow()
    summary = CLVRunSummary()
    events_by_sport: Dict[str, List[Dict]] = {}
    calls_made = 0

    logger.info("Starting fetch_closing_lines")
    try:
        predictions = _pending_predictions(db, now, t)
        summary.candidates = len(predictions)
        logger.info("Found %d predictions needing CLV fetch", len(predictions))

        for pred in predictions:
            pred_id, match_ref = pred.id, pred.match_ref
            try:
                teams = split_match_ref(pred.match_ref)
                if teams is None:
                    _mark_unresolved(db, pred, "invalid match_ref format", summary)
                    continue
                home, away = teams

                if pred.sport not in events_by_sport:
                    if calls_made > 0:
                        sleep(t.request_delay_seconds)
                    calls_made += 1
                    try:
                        events_by_sport[pred.sport] = client.get_odds_for_sport(pred.sport, markets="h2h")
                    except Exception as exc:
                        logger.error("Odds fetch failed for prediction %d (%s): %s",
                                     pred.id, pred.sport, exc)
                        summary.errors.append(f"{pred.match_ref}: {exc}")
                        continue

                event = find_event(events_by_sport[pred.sport], home, away)
                if event is None:
                    _mark_unresolved(db, pred, "no matching event", summary)
                    continue

                quote = reference_quote(event, t.sharp_book)
                if quote is None:
                    _mark_unresolved(db, pred, "no h2h market", summary)
                    continue

                side = prediction_side(pred.prediction)
                if side is None:
                    _mark_unresolved(db, pred, f"cannot determine side of '{pred.prediction}'", summary)
                    continue

                closing = getattr(quote, side)
                if closing is None or closing <= 1.0 or not pred.opening_odds or pred.opening_odds <= 1.0:
                    _mark_unresolved(db, pred, "invalid odds", summary)
                    continue

                result = calculate_clv(pred.opening_odds, closing)
                pred.closing_odds = closing
                pred.closing_probability_fair = result.closing_prob
                pred.clv_percentage = result.clv_percentage
                pred.clv_value = result.clv_value
                pred.clv_fetched = True
                db.commit()

                summary.updated += 1
                summary.results.append({
                    "prediction_id": pred.id,
                    "match_ref": pred.match_ref,
                    "bookmaker": quote.bookmaker,
                    "opening_odds": pred.opening_odds,
                    "closing_odds": closing,
                    "clv_percentage": round(result.clv_percentage, 2),
                    "grade": result.grade(),
                })
                logger.info(
                    "CLV %s: %.2f -> %.2f (%.1f%%, %s)",
                    pred.match_ref, pred.opening_odds, closing,
                    result.clv_percentage, result.grade(),
                )
            except Exception as exc:
                db.rollback()
                logger.error("Error processing prediction %d: %s", pred_id, exc, exc_info=True)
                summary.errors.append(f"{match_ref}: {exc}")
    finally:
        if owns_session:
            db.close()

    logger.info("fetch_closing_lines done: %s", summary.to_dict())
    return summary
