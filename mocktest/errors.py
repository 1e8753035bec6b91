"""Exception types raised by the attempt engine."""


class MockTestError(Exception):
    """Base class for all mock test errors."""


class StoreError(MockTestError):
    """A read or write against the remote tables failed."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code

    @property
    def is_unique_violation(self) -> bool:
        return self.code == "23505"


class PreconditionError(MockTestError):
    """Missing test/attempt record or a test without questions."""


class SubmissionError(MockTestError):
    """Final submit could not be persisted. The session is back in progress."""
