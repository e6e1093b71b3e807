"""
FastAPI service shell for the market-intelligence core.

Exposes the synchronous analysis pipeline and registers the two batch jobs
(odds snapshot poller, CLV tracker) on an APScheduler background scheduler.
"""

from fastapi import FastAPI, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import text
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from contextlib import asynccontextmanager
from datetime import datetime
import logging
import os

from market_intel.auth import verify_api_key, verify_admin_api_key
from market_intel.core.errors import ConfigurationError
from market_intel.core.signals import HeadToHead, RawMatchStats, TeamStats, signal_summary
from market_intel.core.value import MarketOdds, analyze_match
from market_intel.models import get_db, init_db
from market_intel.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    LineMovementResponse,
    ProbabilityResponse,
    SignalsResponse,
    ValueEdgeResponse,
)
from market_intel.services.clv import fetch_closing_lines
from market_intel.services.odds_poller import poll_odds

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Scheduler instance
scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting Market Intelligence service")
    init_db()

    poll_interval = int(os.getenv("ODDS_POLL_INTERVAL_MIN", "30"))
    clv_interval = int(os.getenv("CLV_FETCH_INTERVAL_MIN", "60"))

    scheduler.add_job(
        _poll_odds_job,
        IntervalTrigger(minutes=poll_interval),
        id="poll_odds",
        name="Odds Snapshot Poller",
        replace_existing=True,
        max_instances=1,
    )

    scheduler.add_job(
        _fetch_clv_job,
        IntervalTrigger(minutes=clv_interval),
        id="fetch_clv",
        name="Closing Line Value Tracker",
        replace_existing=True,
        max_instances=1,
    )

    scheduler.start()
    logger.info(
        "Scheduler started: odds poll every %dmin, CLV fetch every %dmin",
        poll_interval, clv_interval,
    )

    yield

    logger.info("Shutting down Market Intelligence service")
    scheduler.shutdown()


app = FastAPI(
    title="Market Intelligence Core",
    description="Signals, probability, value detection, steam and CLV tracking",
    version="1.0",
    lifespan=lifespan,
)


# ============================================================================
# SCHEDULED JOBS
# ============================================================================

def _poll_odds_job():
    """Upsert consensus odds snapshots and detect steam moves."""
    try:
        summary = poll_odds()
        logger.info("Odds poll: %s", summary.to_dict())
    except Exception as exc:
        logger.error("Odds poll job failed: %s", exc, exc_info=True)


def _fetch_clv_job():
    """Capture closing lines for predictions about to kick off."""
    try:
        summary = fetch_closing_lines()
        logger.info("CLV fetch: %s", summary.to_dict())
    except Exception as exc:
        logger.error("CLV fetch job failed: %s", exc, exc_info=True)


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint"""
    health = {
        "status": "healthy",
        "database": "connected",
        "scheduler": "running",
        "timestamp": datetime.utcnow().isoformat(),
    }

    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Health check database error: %s", e)
        health["status"] = "degraded"
        health["database"] = f"error: {str(e)}"

    if not scheduler.running:
        health["status"] = "degraded"
        health["scheduler"] = "stopped"

    return health


# ============================================================================
# AUTHENTICATED ENDPOINTS
# ============================================================================

def _to_team_stats(payload) -> TeamStats:
    return TeamStats(
        form=payload.form,
        played=payload.played,
        wins=payload.wins,
        draws=payload.draws,
        losses=payload.losses,
        scored=payload.scored,
        conceded=payload.conceded,
        injuries=payload.injuries,
        key_absentees=list(payload.key_absentees),
        xg=payload.xg,
        possession=payload.possession,
    )


def _to_market_odds(payload) -> MarketOdds:
    return MarketOdds(
        home=payload.home,
        away=payload.away,
        draw=payload.draw,
        bookmaker=payload.bookmaker,
    )


@app.post("/api/analyze", response_model=AnalyzeResponse)
async def analyze(
    request: AnalyzeRequest,
    user: str = Depends(verify_api_key),
):
    """Run signals → probability → value detection for one match."""
    data = RawMatchStats(
        sport=request.sport,
        home=_to_team_stats(request.home),
        away=_to_team_stats(request.away),
        h2h=HeadToHead(**request.h2h.model_dump()),
        home_team=request.home_team,
        away_team=request.away_team,
    )
    previous = _to_market_odds(request.previous_odds) if request.previous_odds else None
    signals, intel = analyze_match(data, _to_market_odds(request.odds), previous)

    model = intel.model_probability
    movement = intel.line_movement
    logger.info(
        "Analysis for %s: %s vs %s -> %s (%s)",
        user, request.home_team, request.away_team,
        intel.recommendation, intel.value_edge.label,
    )

    return AnalyzeResponse(
        home_team=request.home_team,
        away_team=request.away_team,
        signals=SignalsResponse(
            sport=signals.sport,
            form_home=signals.form.home,
            form_away=signals.form.away,
            form_comparison=signals.form.comparison,
            strength_edge=signals.strength_edge.label,
            tempo=signals.tempo.expected,
            efficiency_edge=signals.efficiency_edge.direction,
            efficiency_aspect=signals.efficiency_edge.aspect,
            availability=signals.availability.level,
            availability_note=signals.availability.note,
            summary=signal_summary(signals),
        ),
        probability=ProbabilityResponse(
            home=model.home,
            away=model.away,
            draw=model.draw,
            confidence=model.confidence,
            confidence_score=model.confidence_score,
            fidelity=model.fidelity.value,
        ),
        implied_home=intel.implied.home,
        implied_away=intel.implied.away,
        implied_draw=intel.implied.draw,
        margin=intel.implied.margin,
        value_edge=ValueEdgeResponse(
            outcome=intel.value_edge.outcome,
            edge_percent=intel.value_edge.edge_percent,
            label=intel.value_edge.label,
            strength=intel.value_edge.strength,
            edges=intel.value_edge.edges,
        ),
        recommendation=intel.recommendation,
        summary=intel.summary,
        line_movement=LineMovementResponse(
            direction=movement.direction,
            magnitude=movement.magnitude,
            delta=movement.delta,
            interpretation=movement.interpretation,
            suspicious=movement.suspicious,
            is_steam_move=movement.is_steam_move,
            is_reverse=movement.is_reverse,
            rlm_explanation=movement.rlm_explanation,
        ) if movement else None,
        conflict_explanation=intel.conflict_explanation,
    )


# ============================================================================
# ADMIN ENDPOINTS
# ============================================================================

@app.post("/admin/jobs/poll-odds")
def trigger_poll_odds(user: str = Depends(verify_admin_api_key)):
    """Manually trigger the odds snapshot poller (admin only)."""
    logger.info("Manual odds poll triggered by %s", user)
    try:
        summary = poll_odds()
    except ConfigurationError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except Exception as exc:
        logger.error("Manual odds poll failed: %s", exc, exc_info=True)
        raise HTTPException(status_code=500, detail=str(exc))
    return {"message": "Odds poll complete", **summary.to_dict()}


@app.post("/admin/jobs/fetch-clv")
def trigger_fetch_clv(user: str = Depends(verify_admin_api_key)):
    """Manually trigger the CLV tracker (admin only)."""
    logger.info("Manual CLV fetch triggered by %s", user)
    try:
        summary = fetch_closing_lines()
    except ConfigurationError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except Exception as exc:
        logger.error("Manual CLV fetch failed: %s", exc, exc_info=True)
        raise HTTPException(status_code=500, detail=str(exc))
    return {"message": "CLV fetch complete", **summary.to_dict()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
