"""Fundamental odds mathematics - the single source of truth.

Every function here is **pure**: no I/O, no logging, no side effects.
Import from this module; never reimplement locally in services or models.

All prices are **decimal** (European) odds unless a function name says
otherwise, and all probabilities are expressed in **percent** (0–100),
because that is how model probabilities and edges are reported to callers.

Design decisions
----------------
* Degenerate prices (``d <= 1``) never raise from :func:`implied_prob`,
  :func:`implied_fraction` or :func:`bookmaker_margin`; they map to 100 %
  so a single malformed quote cannot abort an analysis.
  Conversions that cannot produce a meaningful answer
  (:func:`american_to_decimal`, :func:`decimal_to_american`) do raise
  ``ValueError`` because their callers parse external input and must skip it.
* Vig is *not* removed from implied probabilities.  Summed implied
  probabilities exceed 100 % by the bookmaker margin, which is reported
  separately by :func:`bookmaker_margin`.
"""

from __future__ import annotations

import math
from typing import Dict, Final, Optional

#: American-odds magnitude floor.
_MIN_AMERICAN_MAGNITUDE: Final[int] = 100

#: Fair-odds sentinel returned for non-positive probabilities.
MAX_FAIR_ODDS: Final[float] = 999.0

#: Quality assumed for bookmakers missing from :data:`BOOKMAKER_QUALITY`.
DEFAULT_BOOK_QUALITY: Final[float] = 0.7


# ---------------------------------------------------------------------------
# Odds conversion
# ---------------------------------------------------------------------------


def implied_prob(decimal_odds: float) -> float:
    """Vig-inclusive implied probability of a decimal price, in percent.

    Rounded to one decimal place.  Strictly decreasing in ``decimal_odds``
    for ``decimal_odds > 1`` (ties are possible only through rounding).

    Examples::

        implied_prob(2.0)  → 50.0
        implied_prob(1.5)  → 66.7
        implied_prob(1.0)  → 100.0   (degenerate price)
    """
    if decimal_odds <= 1:
        return 100.0
    return round(100.0 / decimal_odds, 1)


def implied_fraction(decimal_odds: float) -> float:
    """Unrounded implied probability as a fraction (0–1).

    Degenerate prices (``d <= 1``) map to 1.0, matching :func:`implied_prob`.
    """
    if decimal_odds <= 1:
        return 1.0
    return 1.0 / decimal_odds


def prob_to_fair_odds(probability: float) -> float:
    """Fair (no-margin) decimal price for a probability in percent.

    Examples::

        prob_to_fair_odds(50)  → 2.0
        prob_to_fair_odds(80)  → 1.25
    """
    if probability <= 0:
        return MAX_FAIR_ODDS
    if probability >= 100:
        return 1.0
    return round(100.0 / probability, 2)


def american_to_decimal(american: int | float) -> float:
    """Convert American odds to decimal.

    Raises:
        ValueError: If ``|american| < 100``.
    """
    if abs(american) < _MIN_AMERICAN_MAGNITUDE:
        raise ValueError(
            f"Invalid American odds {american!r}: magnitude must be ≥ 100."
        )
    if american > 0:
        return american / 100.0 + 1.0
    return 100.0 / abs(american) + 1.0


def decimal_to_american(decimal_odds: float) -> int:
    """Convert decimal odds to the nearest American integer.

    Raises:
        ValueError: If ``decimal_odds <= 1.0``.
    """
    if decimal_odds <= 1.0:
        raise ValueError(f"Decimal odds {decimal_odds!r} must be > 1.0.")
    if decimal_odds >= 2.0:
        return round((decimal_odds - 1.0) * 100)
    return round(-100.0 / (decimal_odds - 1.0))


# ---------------------------------------------------------------------------
# Market-level measures
# ---------------------------------------------------------------------------


def bookmaker_margin(
    home_odds: float,
    away_odds: float,
    draw_odds: Optional[float] = None,
) -> float:
    """Bookmaker margin (overround) in percent, one decimal place.

    Computed from unrounded implied probabilities::

        bookmaker_margin(1.91, 1.91)  → 4.7
    """
    total = implied_fraction(home_odds) + implied_fraction(away_odds)
    if draw_odds:
        total += implied_fraction(draw_odds)
    return round((total - 1.0) * 100.0, 1)


def pct_change(current: float, previous: Optional[float]) -> Optional[float]:
    """Percentage change from ``previous`` to ``current``.

    Returns ``None`` when there is no usable previous price, so callers can
    distinguish "no history" from "no movement".

    Examples::

        pct_change(1.94, 2.00)  → -3.0
        pct_change(1.94, None)  → None
    """
    if not previous:
        return None
    return (current - previous) / previous * 100.0


# ---------------------------------------------------------------------------
# Bookmaker quality weighting
# ---------------------------------------------------------------------------

#: Sharpness ratings (0–1).  Sharp books' prices are closest to true
#: probabilities; soft books carry higher margins and more pricing noise.
BOOKMAKER_QUALITY: Final[Dict[str, float]] = {
    # Sharp
    "pinnacle": 1.0,
    "betfair_ex_eu": 0.98,
    "betfair_ex_uk": 0.98,
    "betfair": 0.95,
    "matchbook": 0.92,
    # Mid-sharp
    "betonlineag": 0.85,
    "bovada": 0.82,
    "mybookieag": 0.80,
    "williamhill": 0.80,
    "williamhill_us": 0.80,
    # Mainstream
    "bet365": 0.78,
    "unibet": 0.75,
    "unibet_eu": 0.75,
    "unibet_uk": 0.75,
    "draftkings": 0.75,
    "fanduel": 0.75,
    "betmgm": 0.72,
    "caesars": 0.72,
    "pointsbetus": 0.70,
    "wynnbet": 0.70,
    # Soft
    "betrivers": 0.68,
    "superbook": 0.65,
    "twinspires": 0.65,
    "barstool": 0.62,
    "lowvig": 0.60,
    "betus": 0.55,
}


def bookmaker_quality(bookmaker: Optional[str]) -> float:
    """Quality rating for a bookmaker key; 0.7 when unknown or missing."""
    if not bookmaker:
        return DEFAULT_BOOK_QUALITY
    key = "".join(c for c in bookmaker.lower() if c.isalnum() or c == "_")
    return BOOKMAKER_QUALITY.get(key, DEFAULT_BOOK_QUALITY)


def adjust_for_bookmaker_quality(
    implied: float,
    bookmaker: Optional[str],
    has_draw: bool = True,
) -> float:
    """Regress an implied probability toward a neutral prior by book quality.

    ``adjusted = q · implied + (1 − q) · prior`` where the prior is 33.3 for
    three-way markets and 50 for two-way markets.  A quality of 1.0 leaves
    the price untouched.
    """
    quality = bookmaker_quality(bookmaker)
    prior = 33.3 if has_draw else 50.0
    return round(quality * implied + (1.0 - quality) * prior, 1)


# ---------------------------------------------------------------------------
# Rounding
# ---------------------------------------------------------------------------


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (10.5 → 11)."""
    return int(math.floor(value + 0.5))
