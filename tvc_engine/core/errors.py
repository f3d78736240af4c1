"""Grading error taxonomy shared by the grading authority and the quiz client."""

from __future__ import annotations

from typing import Any


class GradingError(Exception):
    """Base class for every failure of a grading call.

    All of them are reported to the student as a retry-able notice; none may
    leave a quiz session stuck in ``submitting``.
    """

    retryable = True

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class NotFound(GradingError):
    """The material or its answer key configuration does not exist."""


class InvalidAnswerShape(GradingError):
    """The submitted answers do not match the configured question layout."""


class TransientFailure(GradingError):
    """Network or service failure while the grading call was in flight."""


class AlreadySubmitted(GradingError):
    """The attempt was already graded and recorded.

    ``result`` carries the authoritative result of the recorded attempt when
    the authority could reconstruct it.
    """

    retryable = False

    def __init__(self, message: str = "", result: Any = None) -> None:
        super().__init__(message)
        self.result = result
