"""Error taxonomy shared by the library code and the HTTP layer.

Only ``ValidationError``, ``AuthorizationError`` and ``AggregationError`` ever
reach a client.  ``UpstreamQueryError`` is contained by the unit that raised
it (a generator, the suggestion or trending step) and ``CacheError`` is logged
and dropped by the cache manager.
"""


class DiscoveryError(Exception):
    """Base class for all errors raised by this service."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DiscoveryError):
    """A required field is missing or malformed; no work has been done."""

    status_code = 400


class AuthorizationError(DiscoveryError):
    """The authenticated caller may not read or write the requested user."""

    status_code = 403


class UpstreamQueryError(DiscoveryError):
    """A backing store read failed or returned something unusable."""

    status_code = 502


class CacheError(DiscoveryError):
    """A cache read or write failed."""


class AggregationError(DiscoveryError):
    """Candidate lists could not be merged into a ranking."""
