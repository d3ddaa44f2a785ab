"""
Error taxonomy for the mood journal.

Every failure surfaced by the journal derives from JournalError so callers
can catch the whole family at their boundary:
- ValidationError: bad input, raised before any side effect
- ExternalServiceError: sentiment service failure (absorbed by the classifier)
- StorageError: media upload or entry persistence failure
- SyncError: live subscription transport failure
"""


class JournalError(Exception):
    """Base class for all mood journal errors."""
    pass


class ValidationError(JournalError):
    """Raised when a submission is rejected before any side effect."""
    pass


class ExternalServiceError(JournalError):
    """Raised when the sentiment inference service fails or answers garbage."""
    pass


class StorageError(JournalError):
    """Raised when a media upload or an entry insert fails."""
    pass


class SyncError(JournalError):
    """
    Raised (or delivered to a subscriber) when the live entry stream fails.

    Attributes:
        recoverable: True if the subscription keeps retrying on its own,
            False if the caller must subscribe again.
    """

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.recoverable = recoverable


class SubmissionInProgressError(JournalError):
    """Raised when a session already has a submission in flight."""
    pass
