"""Failures raised by the scoreboard session core."""


class ScoreboardError(Exception):
    """Base class for scoreboard session failures."""


class StoreReadError(ScoreboardError):
    """The backing key-value store could not be read."""


class StoreWriteError(ScoreboardError):
    """The backing key-value store rejected a write."""


class ParseError(ScoreboardError):
    """A stored collection (or one of its records) is not valid JSON of the expected shape."""


class InvariantViolation(ScoreboardError):
    """A grid or move log does not fit the session that owns it."""


class SessionAlreadyCompleted(ScoreboardError):
    """A finished game was offered for resuming."""
