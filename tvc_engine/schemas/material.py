import uuid
from typing import Any

from pydantic import Field, model_validator

from tvc_engine.schemas.grading import CamelModel


class SubjectSummary(CamelModel):
    question_count: int
    oficiu: int = 0


class MaterialStudentView(CamelModel):
    """What a student may see of a test material. There is no answer key field."""

    id: uuid.UUID
    title: str
    timer_minutes: int | None = None
    question_count: int | None = None
    has_answer_key: bool
    is_multi_subject: bool = False
    subject_config: dict[str, SubjectSummary] | None = None


class SubjectKeyConfig(CamelModel):
    question_count: int = Field(ge=1)
    answer_key: list[str]
    oficiu: int = Field(default=0, ge=0)
    files: dict[str, Any] | None = None


class MaterialPrivilegedView(CamelModel):
    id: uuid.UUID
    title: str
    timer_minutes: int | None = None
    question_count: int | None = None
    has_answer_key: bool
    is_multi_subject: bool = False
    answer_key: list[str] | None = None
    oficiu: int | None = None
    subject_config: dict[str, SubjectKeyConfig] | None = None


class AnswerKeyWrite(CamelModel):
    answer_key: list[str] | None = None
    oficiu: int = Field(default=0, ge=0)
    subject_config: dict[str, SubjectKeyConfig] | None = None

    @model_validator(mode="after")
    def _one_layout(self) -> "AnswerKeyWrite":
        if (self.answer_key is None) == (self.subject_config is None):
            raise ValueError("Provide exactly one of answerKey or subjectConfig")
        return self


class ResizeRequest(CamelModel):
    question_count: int = Field(ge=1)
    subject: str | None = None


class QuestionCountResponse(CamelModel):
    material_id: uuid.UUID
    question_count: int
