"""Exception types raised by the subway arrival puller."""


class SubwayPullerError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(SubwayPullerError):
    """Raised when a sink or cycle is built from invalid configuration."""


class SourceUnavailableError(SubwayPullerError):
    """Raised when a realtime feed cannot be fetched."""

    def __init__(self, url: str, cause: Exception):
        super().__init__(f"Feed {url} unavailable: {cause}")
        self.url = url
        self.cause = cause


class FeedDecodeError(SubwayPullerError):
    """Raised when a feed payload is not a valid GTFS-Realtime message."""
