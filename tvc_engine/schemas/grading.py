import uuid
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, RootModel, Tag
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SingleGradingRequest(CamelModel):
    material_id: uuid.UUID
    answers: list[str]
    time_spent_seconds: int = Field(default=0, ge=0)
    attempt_id: str | None = Field(default=None, max_length=64)
    is_multi_subject: Literal[False] = False


class MultiSubjectGradingRequest(CamelModel):
    material_id: uuid.UUID
    multi_subject_answers: dict[str, list[str]]
    time_spent_seconds: int = Field(default=0, ge=0)
    attempt_id: str | None = Field(default=None, max_length=64)
    is_multi_subject: Literal[True] = True


def _request_kind(value: Any) -> str:
    if isinstance(value, dict):
        flag = value.get("isMultiSubject", value.get("is_multi_subject", False))
    else:
        flag = getattr(value, "is_multi_subject", False)
    return "multi" if flag is True else "single"


GradingRequest = Annotated[
    Union[
        Annotated[SingleGradingRequest, Tag("single")],
        Annotated[MultiSubjectGradingRequest, Tag("multi")],
    ],
    Discriminator(_request_kind),
]


class GradingRequestBody(RootModel[GradingRequest]):
    pass


class QuestionResult(CamelModel):
    question_index: int
    user_answer: str
    correct_answer: str
    is_correct: bool


class GradingResult(CamelModel):
    is_multi_subject: Literal[False] = False
    score: int
    total_questions: int
    results: list[QuestionResult]
    time_spent_seconds: int
    oficiu: int = 0
    base_grade: int
    final_grade: int


class SubjectResult(CamelModel):
    subject: str
    score: int
    total_questions: int
    oficiu: int
    base_grade: float
    final_grade: float
    results: list[QuestionResult]


class MultiSubjectGradingResult(CamelModel):
    is_multi_subject: Literal[True] = True
    subject_results: list[SubjectResult]
    weighted_average: float
    total_score: int
    total_questions: int
    time_spent_seconds: int


AnyGradingResult = Annotated[
    Union[
        Annotated[GradingResult, Tag("single")],
        Annotated[MultiSubjectGradingResult, Tag("multi")],
    ],
    Discriminator(_request_kind),
]


class GradingResultBody(RootModel[AnyGradingResult]):
    pass
