"""Error taxonomy for the challenge app."""


class ChallengeError(Exception):
    """Base class for every error raised by the challenge app."""


class ConfigurationError(ChallengeError):
    """Credentials are missing or unusable. Fatal: the app refuses to operate."""


class AuthenticationError(ChallengeError):
    """Sign-in failed; the session stays unauthenticated."""


class StorageError(ChallengeError):
    pass


class StorageReadError(StorageError):
    """The snapshot subscription could not deliver the current record."""


class StorageWriteError(StorageError):
    """An upsert into the document store failed."""


class ValidationError(ChallengeError):
    """Registration input was rejected."""


class DayLockedError(ChallengeError):
    """A day cannot be opened right now.

    ``reason`` is one of the ``tracker.LOADING``, ``OUT_OF_RANGE``,
    ``PREVIOUS_INCOMPLETE`` or ``NOT_YET_OPEN`` constants.
    """

    def __init__(self, day, reason, message):
        super().__init__(message)
        self.day = day
        self.reason = reason
