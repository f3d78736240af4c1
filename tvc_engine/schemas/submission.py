import uuid
from datetime import datetime

from tvc_engine.models.db import Submission
from tvc_engine.schemas.grading import CamelModel


class SubmissionRecord(CamelModel):
    id: uuid.UUID
    user_id: uuid.UUID
    material_id: uuid.UUID
    attempt_id: str | None = None
    answers: list[str] | dict[str, list[str]]
    score: int
    total_questions: int
    time_spent_seconds: int | None = None
    submitted_at: datetime

    @classmethod
    def from_row(cls, row: Submission) -> "SubmissionRecord":
        return cls(
            id=row.id,
            user_id=row.user_id,
            material_id=row.material_id,
            attempt_id=row.attempt_id,
            answers=row.answers,
            score=row.score,
            total_questions=row.total_questions,
            time_spent_seconds=row.time_spent_seconds,
            submitted_at=row.submitted_at,
        )
