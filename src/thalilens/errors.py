"""Error taxonomy shared by services and adapters."""


class ThaliLensError(Exception):
    """Base error for the application."""


class ValidationError(ThaliLensError):
    """Input was malformed or a required value was missing."""


class AnalysisError(ThaliLensError):
    """The analysis model failed or returned data that failed validation."""


class PersistenceError(ThaliLensError):
    """A store operation failed."""


class NotAuthenticatedError(PersistenceError):
    """A store operation needed a user identity and none was supplied."""
