"""
Matching of stored team names against odds-provider event names.

Predictions store their fixture as free text ("Arsenal vs Chelsea") while the
provider uses its own naming ("Arsenal FC", "Chelsea").  A name matches when
the last token of the shorter name appears inside the longer one, compared
case-insensitively.  Home and away are matched independently.

This heuristic can misfire on shared suffixes ("Manchester United" vs
"Newcastle United"), so every accepted match is also scored with rapidfuzz
and low-confidence matches are logged for review.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from rapidfuzz import fuzz

logger = logging.getLogger(__name__)

LOW_CONFIDENCE_SCORE = 85


def last_token(name: str) -> str:
    """Final whitespace-separated token, lower-cased ("" for blank names)."""
    parts = (name or "").lower().split()
    return parts[-1] if parts else ""


def teams_match(a: str, b: str) -> bool:
    """True when the shorter name's last token is contained in the longer name."""
    a_l = (a or "").strip().lower()
    b_l = (b or "").strip().lower()
    if not a_l or not b_l:
        return False

    shorter, longer = (a_l, b_l) if len(a_l) <= len(b_l) else (b_l, a_l)
    token = last_token(shorter)
    return bool(token) and token in longer


def match_confidence(a: str, b: str) -> float:
    """Token-set similarity in [0, 100]; order and duplicate words are ignored."""
    return float(fuzz.token_set_ratio((a or "").lower(), (b or "").lower()))


def split_match_ref(match_ref: str) -> Optional[tuple]:
    """Split ``"Home vs Away"`` into ``(home, away)``; None when malformed."""
    parts = (match_ref or "").split(" vs ")
    if len(parts) != 2:
        return None
    home, away = parts[0].strip(), parts[1].strip()
    if not home or not away:
        return None
    return home, away


def find_event(events: Iterable[Dict], home: str, away: str) -> Optional[Dict]:
    """First provider event whose home and away teams both match."""
    for event in events:
        event_home = event.get("home_team") or ""
        event_away = event.get("away_team") or ""
        if not (teams_match(event_home, home) and teams_match(event_away, away)):
            continue

        score = min(match_confidence(event_home, home), match_confidence(event_away, away))
        if score < LOW_CONFIDENCE_SCORE:
            logger.warning(
                "Low-confidence team match (%.0f): '%s vs %s' -> '%s vs %s'",
                score, home, away, event_home, event_away,
            )
        return event

    logger.info("No provider event found for %s vs %s", home, away)
    return None
