"""Quiz session state machine for one attempt at a timed TVC test.

States::

    not-started -> running -> time-expired -> submitting -> graded
                   running ------------------> submitting

``running -> submitting`` is the manual submit (all questions answered);
``running -> time-expired -> submitting`` is the forced submit when the
countdown reaches zero, which grades whatever has been answered. A failed
grading call returns the session to ``running`` or ``time-expired`` with the
answers intact so the student can retry.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from tvc_engine.client.config import client_settings
from tvc_engine.client.timer import CountdownTimer, TimerCommand, TimerCommandKind
from tvc_engine.core.errors import AlreadySubmitted, GradingError
from tvc_engine.models.answer_key import EMPTY, OPTION_LETTERS
from tvc_engine.schemas.grading import (
    GradingResult,
    MultiSubjectGradingRequest,
    MultiSubjectGradingResult,
    SingleGradingRequest,
)
from tvc_engine.schemas.material import MaterialStudentView

logger = logging.getLogger(__name__)

TIME_EXPIRED_MESSAGE = "Time expired, answers submitted automatically"
LOW_TIME_MESSAGE = "5 minutes left"


class SessionStatus(str, Enum):
    NOT_STARTED = "not-started"
    RUNNING = "running"
    TIME_EXPIRED = "time-expired"
    SUBMITTING = "submitting"
    GRADED = "graded"


class SessionError(Exception):
    pass


class InvalidTransition(SessionError):
    pass


class IncompleteAnswers(SessionError):
    pass


class InvalidAnswer(SessionError):
    pass


class Grader(Protocol):
    async def verify(
        self, request: SingleGradingRequest | MultiSubjectGradingRequest
    ) -> GradingResult | MultiSubjectGradingResult: ...


@dataclass(slots=True, frozen=True)
class Notice:
    """Something to show the student; ``auto_dismiss_seconds`` of None means sticky."""

    kind: str
    message: str
    auto_dismiss_seconds: float | None = None


class QuizSession:
    def __init__(
        self,
        material_id: uuid.UUID,
        total_seconds: int,
        grader: Grader,
        *,
        question_count: int | None = None,
        subjects: dict[str, int] | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        warning_at: int = client_settings.LOW_TIME_WARNING_SECONDS,
        on_notice: Callable[[Notice], None] | None = None,
        on_tick: Callable[[int], None] | None = None,
    ) -> None:
        if total_seconds <= 0:
            raise ValueError("total_seconds must be positive")
        if (question_count is None) == (subjects is None):
            raise ValueError("Give exactly one of question_count or subjects")
        layout: dict[str | None, int] = {None: question_count} if subjects is None else dict(subjects)
        if any(count is None or count < 1 for count in layout.values()):
            raise ValueError("Every question count must be at least 1")

        self.material_id = material_id
        self.total_seconds = total_seconds
        self._grader = grader
        self._layout = layout
        self._sleep = sleep
        self._warning_at = warning_at
        self._on_notice = on_notice
        self._on_tick = on_tick
        self.notices: list[Notice] = []
        self._new_attempt()

    @classmethod
    def from_material(cls, material: MaterialStudentView, grader: Grader, **kwargs) -> QuizSession:
        minutes = material.timer_minutes or client_settings.DEFAULT_TIMER_MINUTES
        if material.subject_config:
            kwargs["subjects"] = {
                subject: summary.question_count for subject, summary in material.subject_config.items()
            }
        else:
            if not material.question_count:
                raise ValueError("Material has no questions to answer")
            kwargs["question_count"] = material.question_count
        return cls(material.id, minutes * 60, grader, **kwargs)

    def _new_attempt(self) -> None:
        self.attempt_id = uuid.uuid4().hex
        self.status = SessionStatus.NOT_STARTED
        self.result: GradingResult | MultiSubjectGradingResult | None = None
        self.active_subject = next(iter(self._layout))
        self._answers = {key: [EMPTY] * count for key, count in self._layout.items()}
        self._channel: asyncio.Queue[TimerCommand] = asyncio.Queue()
        self._timer: CountdownTimer | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._graded = asyncio.Event()
        self._forced = False
        self._closed = False

    # --- read-only state ---

    @property
    def is_multi_subject(self) -> bool:
        return None not in self._layout

    @property
    def subjects(self) -> list[str]:
        return [key for key in self._layout if key is not None]

    @property
    def remaining_seconds(self) -> int:
        if self._timer is None:
            return self.total_seconds
        return self._timer.remaining_seconds

    @property
    def time_spent_seconds(self) -> int:
        return self.total_seconds - self.remaining_seconds

    @property
    def answers(self) -> list[str] | dict[str, list[str]]:
        if self.is_multi_subject:
            return {key: list(values) for key, values in self._answers.items()}
        return list(self._answers[None])

    def is_complete(self) -> bool:
        return all(value != EMPTY for values in self._answers.values() for value in values)

    # --- transitions ---

    def start(self) -> None:
        self._ensure_open()
        if self.status is not SessionStatus.NOT_STARTED:
            raise InvalidTransition(f"Cannot start a session that is {self.status.value}")
        self._timer = CountdownTimer(self._channel, warning_at=self._warning_at, sleep=self._sleep)
        self._timer.start(self.total_seconds)
        self._consumer = asyncio.get_running_loop().create_task(self._consume())
        self.status = SessionStatus.RUNNING
        logger.info(
            "Quiz session started",
            extra={
                "material_id": str(self.material_id),
                "attempt_id": self.attempt_id,
                "total_seconds": self.total_seconds,
            },
        )

    def set_answer(self, question_index: int, letter: str, subject: str | None = None) -> None:
        self._ensure_open()
        if self.status is not SessionStatus.RUNNING:
            raise InvalidTransition(f"Answers cannot change while {self.status.value}")
        key = subject if self.is_multi_subject else None
        if self.is_multi_subject and key is None:
            key = self.active_subject
        if key not in self._answers:
            raise InvalidAnswer(f"Unknown subject: {subject}")
        answers = self._answers[key]
        if not 0 <= question_index < len(answers):
            raise InvalidAnswer(f"Question index {question_index} out of range")
        value = (letter or EMPTY).strip().upper()
        if value != EMPTY and value not in OPTION_LETTERS:
            raise InvalidAnswer(f"Invalid option: {letter!r}")
        answers[question_index] = value

    def set_active_subject(self, subject: str) -> None:
        if subject not in self._layout or subject is None:
            raise InvalidAnswer(f"Unknown subject: {subject}")
        self.active_subject = subject

    async def submit(self) -> GradingResult | MultiSubjectGradingResult | None:
        """Manual submit. Re-entrant calls while submitting or graded are no-ops."""
        self._ensure_open()
        if self.status in (SessionStatus.SUBMITTING, SessionStatus.GRADED):
            return self.result
        if self.status is SessionStatus.NOT_STARTED:
            raise InvalidTransition("Session has not started")
        if self.status is SessionStatus.RUNNING and not self.is_complete():
            raise IncompleteAnswers("Answer every question before submitting")
        return await self._submit(forced=False)

    async def wait_graded(self) -> GradingResult | MultiSubjectGradingResult | None:
        await self._graded.wait()
        return self.result

    async def close(self) -> None:
        """Abandon the session. Nothing is submitted and nothing is recorded."""
        if self._closed:
            return
        self._closed = True
        if self._timer is not None:
            await self._timer.aclose()
        await self._stop_consumer()
        logger.info(
            "Quiz session closed",
            extra={
                "material_id": str(self.material_id),
                "attempt_id": self.attempt_id,
                "status": self.status.value,
            },
        )

    def reset(self) -> None:
        """Start over after grading: new attempt id, fresh timer, cleared answers."""
        self._ensure_open()
        if self.status is not SessionStatus.GRADED:
            raise InvalidTransition("Only a graded session can be reset")
        self.notices = []
        self._new_attempt()

    async def __aenter__(self) -> QuizSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # --- internals ---

    def _ensure_open(self) -> None:
        if self._closed:
            raise InvalidTransition("Session is closed")

    def _notify(self, kind: str, message: str, auto_dismiss_seconds: float | None = None) -> None:
        notice = Notice(kind=kind, message=message, auto_dismiss_seconds=auto_dismiss_seconds)
        self.notices.append(notice)
        if self._on_notice is not None:
            self._on_notice(notice)

    def _build_request(self) -> SingleGradingRequest | MultiSubjectGradingRequest:
        if self.is_multi_subject:
            return MultiSubjectGradingRequest(
                material_id=self.material_id,
                multi_subject_answers=self.answers,
                time_spent_seconds=self.time_spent_seconds,
                attempt_id=self.attempt_id,
            )
        return SingleGradingRequest(
            material_id=self.material_id,
            answers=self.answers,
            time_spent_seconds=self.time_spent_seconds,
            attempt_id=self.attempt_id,
        )

    def _resumable_status(self) -> SessionStatus:
        if self._timer is not None and self._timer.expired:
            return SessionStatus.TIME_EXPIRED
        return SessionStatus.RUNNING

    async def _submit(self, forced: bool) -> GradingResult | MultiSubjectGradingResult | None:
        # Runs synchronously up to the grading call, so the first caller wins.
        request = self._build_request()
        self.status = SessionStatus.SUBMITTING
        logger.info(
            "Submitting quiz",
            extra={
                "material_id": str(self.material_id),
                "attempt_id": self.attempt_id,
                "forced": forced,
                "time_spent_seconds": request.time_spent_seconds,
            },
        )
        try:
            result = await self._grader.verify(request)
        except AlreadySubmitted as exc:
            if exc.result is None:
                self._fail(exc)
                raise
            result = exc.result
        except GradingError as exc:
            self._fail(exc)
            raise
        except Exception:
            self.status = self._resumable_status()
            self._notify("error", "Grading failed, please submit again")
            raise

        self.result = result
        self.status = SessionStatus.GRADED
        self._graded.set()
        if self._timer is not None:
            self._timer.cancel()
        if asyncio.current_task() is not self._consumer:
            await self._stop_consumer()
        if forced:
            self._notify("info", TIME_EXPIRED_MESSAGE)
        else:
            self._notify("success", "Answers submitted")
        logger.info(
            "Quiz graded",
            extra={"material_id": str(self.material_id), "attempt_id": self.attempt_id, "forced": forced},
        )
        return result

    def _fail(self, exc: GradingError) -> None:
        self.status = self._resumable_status()
        self._notify("error", f"Could not grade the test: {exc.message}. Please submit again.")
        logger.warning(
            "Grading failed",
            extra={
                "material_id": str(self.material_id),
                "attempt_id": self.attempt_id,
                "error": type(exc).__name__,
                "status": self.status.value,
            },
        )

    async def _stop_consumer(self) -> None:
        if self._consumer is not None and not self._consumer.done():
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass

    async def _consume(self) -> None:
        while self.status is not SessionStatus.GRADED:
            command = await self._channel.get()
            if command.kind is TimerCommandKind.TICK:
                if self._on_tick is not None:
                    self._on_tick(command.remaining_seconds)
            elif command.kind is TimerCommandKind.LOW_TIME:
                self._notify("warning", LOW_TIME_MESSAGE, client_settings.WARNING_DISMISS_SECONDS)
            elif command.kind is TimerCommandKind.EXPIRED:
                await self._on_expired()

    async def _on_expired(self) -> None:
        if self.status is SessionStatus.RUNNING:
            self.status = SessionStatus.TIME_EXPIRED
        if self._forced or self.status is not SessionStatus.TIME_EXPIRED:
            # A manual submit already holds the session, or expiry was handled.
            return
        self._forced = True
        try:
            await self._submit(forced=True)
        except GradingError:
            # Already surfaced as a notice; the student retries with submit().
            return
        except Exception:
            logger.exception(
                "Forced submit failed",
                extra={"material_id": str(self.material_id), "attempt_id": self.attempt_id},
            )
