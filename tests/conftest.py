"""Shared fixtures: sample match data and an in-memory database session."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from market_intel.core.signals import RawMatchStats, TeamStats
from market_intel.models import Base


@pytest.fixture
def strong_home_match():
    """Home "WWWWD" 12-4 over 5 games vs away "LLWDL" 5-9 over 5 games."""
    return RawMatchStats(
        sport="soccer_epl",
        home=TeamStats(form="WWWWD", played=5, wins=4, draws=1, losses=0, scored=12, conceded=4),
        away=TeamStats(form="LLWDL", played=5, wins=1, draws=1, losses=3, scored=5, conceded=9),
        home_team="Arsenal",
        away_team="Chelsea",
    )


@pytest.fixture
def db_session():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
