# ===== TYPES & INTERFACES =====
from typing import Optional


class GameDealsError(Exception):
    """Base class for every error raised by the deal pipeline."""


class Fatal(GameDealsError):
    """Configuration or authentication error. Aborts the run with a FATAL outcome."""


class SourceUnavailable(GameDealsError):
    """A source adapter could not produce data. Adapters absorb it into an empty result."""


class EnrichmentUnresolved(GameDealsError):
    """Review or metadata lookup failed for a single candidate."""


class ImageUnavailable(GameDealsError):
    """The candidate's promotional image could not be downloaded."""


class HistoryStoreError(GameDealsError):
    """The posting history could not be read or written."""


class PublishError(GameDealsError):
    """Base class for failures reported by the publish capability."""


class PublishTransient(PublishError):
    """A publish attempt failed in a way that may succeed for the next candidate."""


class PublishRateLimited(PublishError):
    """The account is being throttled; the run must stop immediately."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class PublishFatal(PublishError, Fatal):
    """A publish failure that will not go away by retrying (bad credentials, bad chat)."""
