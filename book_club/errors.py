class BookClubError(Exception):
    """Base class for errors raised by the application."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookClubError):
    """A required field was missing or blank. The user can fix and resubmit."""

    status_code = 400


class StorageUnavailable(BookClubError):
    """No persistence backend is configured."""

    status_code = 500


class UpstreamLookupFailure(BookClubError):
    """An external metadata or cover service was unreachable or answered badly.

    Never shown to visitors; callers turn it into a fallback value.
    """

    status_code = 502
