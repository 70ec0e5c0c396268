"""Failure taxonomy shared by the scraper, the stores and the poller."""


class RadarError(Exception):
    """Base class for all errors raised by the radar."""


class ParseFailure(RadarError, ValueError):
    """The page structure (or the URL itself) was not recognized."""


class FetchFailure(RadarError):
    """Transport error or non-success response from the listings site."""


class PersistenceFailure(RadarError):
    """Reading from or writing to the SQLite store failed."""
