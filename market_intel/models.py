"""
Database models for the market-intelligence core
SQLAlchemy ORM
"""

from sqlalchemy import (
    create_engine,
    Column,
    Integer,
    String,
    Float,
    DateTime,
    Boolean,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./market_intel.db")

# pool_pre_ping=True keeps long-lived scheduler connections healthy
engine = create_engine(DATABASE_URL, pool_pre_ping=True, echo=False)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class OddsSnapshot(Base):
    """Latest consensus prices for one event, upserted every poll cycle.

    One row per (match_ref, sport, bookmaker); the poller always writes
    bookmaker="consensus".  Rows are deleted once the match date is more than
    24 hours in the past.
    """

    __tablename__ = "odds_snapshots"

    id = Column(Integer, primary_key=True, index=True)
    match_ref = Column(String, nullable=False, index=True)  # "Home vs Away"
    sport = Column(String, nullable=False, index=True)      # provider sport key
    league = Column(String, nullable=False)
    bookmaker = Column(String, nullable=False, default="consensus")
    home_team = Column(String, nullable=False)
    away_team = Column(String, nullable=False)
    match_date = Column(DateTime, nullable=False, index=True)

    # Current consensus (decimal odds)
    home_odds = Column(Float, nullable=False)
    away_odds = Column(Float, nullable=False)
    draw_odds = Column(Float)

    # Previous cycle
    prev_home_odds = Column(Float)
    prev_away_odds = Column(Float)
    prev_draw_odds = Column(Float)

    # First price ever seen for this event (never overwritten)
    opening_home_odds = Column(Float)
    opening_away_odds = Column(Float)
    opening_draw_odds = Column(Float)

    # Percentage change vs previous cycle
    home_change = Column(Float)
    away_change = Column(Float)
    draw_change = Column(Float)

    # Embedded probability proxy (fractions) and edges (percentage points)
    model_fidelity = Column(String, default="market_proxy")
    model_home_prob = Column(Float)
    model_away_prob = Column(Float)
    model_draw_prob = Column(Float)
    home_edge = Column(Float)
    away_edge = Column(Float)
    draw_edge = Column(Float)

    # Flags
    has_steam_move = Column(Boolean, default=False, nullable=False)
    has_value_edge = Column(Boolean, default=False, nullable=False)
    alert_level = Column(String)  # HIGH | MEDIUM | LOW | NULL
    alert_note = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("match_ref", "sport", "bookmaker", name="_match_sport_bookmaker_uc"),
    )


class PredictionRecord(Base):
    """Published prediction.  Owned upstream; the CLV tracker only updates
    the closing-line fields and the clv_fetched latch."""

    __tablename__ = "predictions"

    id = Column(Integer, primary_key=True, index=True)
    match_ref = Column(String, nullable=False)  # "Home vs Away"
    sport = Column(String, nullable=False)      # provider sport key
    league = Column(String)
    kickoff = Column(DateTime, nullable=False, index=True)
    prediction = Column(String, nullable=False)  # e.g. "Home Win"
    outcome = Column(String, nullable=False, default="PENDING", index=True)

    opening_odds = Column(Float)  # decimal odds at publication

    # CLV tracking
    closing_odds = Column(Float)
    closing_probability_fair = Column(Float)  # percent
    clv_percentage = Column(Float)            # relative change, percent
    clv_value = Column(Float)                 # absolute change, percentage points
    clv_fetched = Column(Boolean, default=False, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# Create all tables
def init_db():
    """Initialize database tables"""
    Base.metadata.create_all(bind=engine)


if __name__ == "__main__":
    init_db()
