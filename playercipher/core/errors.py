"""
Error taxonomy for player cipher resolution.

Only ``ResolutionUnavailable`` (and its subclasses) aborts a whole resolution
call. ``EvaluationFailure`` is raised by script evaluators and is always
caught per format, where it downgrades that format's URL instead of failing
the batch. Incomplete analysis is not an exception at all; it shows up as
issues on the resolved formats.
"""


class ResolutionError(Exception):
    """Base class for resolution errors."""

    default_code = "resolution.failed"

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code or self.default_code


class ResolutionUnavailable(ResolutionError):
    """Raised when no format of the current request can be resolved."""

    default_code = "resolution.unavailable"


class LocatorMiss(ResolutionUnavailable):
    """Raised when the bootstrap document does not reference a player script."""

    default_code = "player.not_found"


class TransportFailure(ResolutionUnavailable):
    """Raised when the bootstrap document or the player script cannot be fetched."""

    default_code = "player.download_failed"

    def __init__(self, message: str, url: str | None = None, error_code: str | None = None):
        super().__init__(message, error_code=error_code)
        self.url = url


class EvaluationFailure(ResolutionError):
    """Raised when the n-parameter function cannot be evaluated."""

    default_code = "nsig.evaluation_failed"
