"""
Failure taxonomy for the extraction pipeline.

Retriable errors are absorbed by the retry policy while attempts remain.
Fatal errors skip local retries and reach the caller straight away.
"""


class ScraperError(Exception):
    """Base class for every scraping / caching failure."""


class RetriableError(ScraperError):
    pass


class FatalError(ScraperError):
    pass


class ReadinessTimeout(RetriableError):
    """None of the readiness selectors rendered in time."""


class NoDataFound(RetriableError):
    """Page rendered but held zero entries."""


class StoreUnavailable(RetriableError):
    """Persistence layer could not be reached."""


class SessionUnavailable(FatalError):
    """Browser could not be (re)started."""


class AuthenticationRequired(FatalError):
    """Target site wants an interactive login."""
