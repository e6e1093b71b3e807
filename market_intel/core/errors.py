"""Exception hierarchy for the market-intelligence services."""


class MarketIntelError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(MarketIntelError, ValueError):
    """A required setting (e.g. the odds provider key) is missing.

    Raised before any per-item work starts so a whole batch run fails fast
    with a single explicit error.
    """


class OddsAPIError(MarketIntelError):
    """The odds provider could not be reached or returned an HTTP error."""

    def __init__(self, sport_key: str, message: str):
        super().__init__(f"{sport_key}: {message}")
        self.sport_key = sport_key
