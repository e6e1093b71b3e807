"""
Pydantic request/response schemas for the Market Intelligence API.

Raw stats arrive fresh with every analysis request; nothing is cached
between calls.
"""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Analysis request
# ---------------------------------------------------------------------------

class TeamStatsIn(BaseModel):
    form: str = Field("", max_length=10, description='Recent results, most recent first, e.g. "WWLDW"')
    played: int = Field(0, ge=0)
    wins: int = Field(0, ge=0)
    draws: int = Field(0, ge=0)
    losses: int = Field(0, ge=0)
    scored: float = Field(0.0, ge=0, description="Goals or points scored")
    conceded: float = Field(0.0, ge=0, description="Goals or points conceded")
    injuries: int = Field(0, ge=0)
    key_absentees: List[str] = Field(default_factory=list)
    xg: Optional[float] = Field(None, ge=0)
    possession: Optional[float] = Field(None, ge=0, le=100)

    @field_validator("form")
    @classmethod
    def normalize_form(cls, v: str) -> str:
        return v.strip().upper()


class HeadToHeadIn(BaseModel):
    home_wins: int = Field(0, ge=0)
    away_wins: int = Field(0, ge=0)
    draws: int = Field(0, ge=0)
    total: int = Field(0, ge=0)


class OddsIn(BaseModel):
    """Decimal prices for one event."""

    home: float = Field(..., gt=1.0)
    away: float = Field(..., gt=1.0)
    draw: Optional[float] = Field(None, gt=1.0)
    bookmaker: Optional[str] = None


class AnalyzeRequest(BaseModel):
    """Payload for POST /api/analyze."""

    sport: str = Field(..., min_length=2, description='Sport name or provider key, e.g. "soccer_epl"')
    home_team: str = Field(..., min_length=1, max_length=120)
    away_team: str = Field(..., min_length=1, max_length=120)
    home: TeamStatsIn = Field(default_factory=TeamStatsIn)
    away: TeamStatsIn = Field(default_factory=TeamStatsIn)
    h2h: HeadToHeadIn = Field(default_factory=HeadToHeadIn)
    odds: OddsIn
    previous_odds: Optional[OddsIn] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "sport": "soccer_epl",
                "home_team": "Arsenal",
                "away_team": "Chelsea",
                "home": {"form": "WWWWD", "played": 10, "wins": 7, "draws": 2,
                         "losses": 1, "scored": 20, "conceded": 8},
                "away": {"form": "LLWDL", "played": 10, "wins": 3, "draws": 2,
                         "losses": 5, "scored": 10, "conceded": 15},
                "h2h": {"home_wins": 3, "away_wins": 1, "draws": 1, "total": 5},
                "odds": {"home": 1.8, "away": 4.5, "draw": 3.6},
            }
        }
    }


# ---------------------------------------------------------------------------
# Analysis response
# ---------------------------------------------------------------------------

class SignalsResponse(BaseModel):
    sport: str
    form_home: str
    form_away: str
    form_comparison: str
    strength_edge: str
    tempo: str
    efficiency_edge: str
    efficiency_aspect: Optional[str] = None
    availability: str
    availability_note: Optional[str] = None
    summary: str


class ProbabilityResponse(BaseModel):
    home: int
    away: int
    draw: Optional[int] = None
    confidence: Literal["low", "medium", "high"]
    confidence_score: int
    fidelity: str


class ValueEdgeResponse(BaseModel):
    outcome: Optional[Literal["home", "away", "draw"]] = None
    edge_percent: float
    label: str
    strength: Literal["strong", "moderate", "slight", "none"]
    edges: Dict[str, float] = Field(default_factory=dict)


class LineMovementResponse(BaseModel):
    direction: str
    magnitude: str
    delta: float
    interpretation: str
    suspicious: bool
    is_steam_move: bool
    is_reverse: bool
    rlm_explanation: Optional[str] = None


class AnalyzeResponse(BaseModel):
    home_team: str
    away_team: str
    signals: SignalsResponse
    probability: ProbabilityResponse
    implied_home: float
    implied_away: float
    implied_draw: Optional[float] = None
    margin: float
    value_edge: ValueEdgeResponse
    recommendation: Literal["strong_value", "slight_value", "fair_price", "overpriced", "avoid"]
    summary: str
    line_movement: Optional[LineMovementResponse] = None
    conflict_explanation: Optional[str] = None
