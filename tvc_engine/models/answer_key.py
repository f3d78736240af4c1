"""Answer key configuration value types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

OPTION_LETTERS = ("A", "B", "C", "D")
EMPTY = ""

SUBJECT_WEIGHTS = {
    "matematica": 0.5,
    "informatica": 0.3,
    "fizica": 0.2,
}
ELIGIBLE_SUBJECTS = tuple(SUBJECT_WEIGHTS)


def is_valid_letter(value: str) -> bool:
    return value == EMPTY or value in OPTION_LETTERS


def resize_answers(answers: list[str], count: int) -> list[str]:
    """Truncate or blank-pad ``answers`` to ``count`` entries, keeping the prefix."""
    if count < 0:
        raise ValueError("count must be non-negative")
    resized = [EMPTY] * count
    for index in range(min(len(answers), count)):
        resized[index] = answers[index]
    return resized


@dataclass(slots=True)
class AnswerKeyConfig:
    """Correct letters for one test (or one subject of a multi-subject test)."""

    question_count: int
    answer_key: list[str]
    oficiu: int = 0

    def __post_init__(self) -> None:
        if self.question_count < 1:
            raise ValueError("question_count must be at least 1")
        if len(self.answer_key) != self.question_count:
            raise ValueError(
                f"answer_key has {len(self.answer_key)} entries, expected {self.question_count}"
            )
        bad = [value for value in self.answer_key if not is_valid_letter(value)]
        if bad:
            raise ValueError(f"invalid option letters: {bad}")
        if self.oficiu < 0:
            raise ValueError("oficiu must be non-negative")

    def resized(self, question_count: int) -> AnswerKeyConfig:
        return AnswerKeyConfig(
            question_count=question_count,
            answer_key=resize_answers(self.answer_key, question_count),
            oficiu=self.oficiu,
        )

    def is_complete(self) -> bool:
        return all(value != EMPTY for value in self.answer_key)

    def has_answers(self) -> bool:
        return any(value != EMPTY for value in self.answer_key)

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> AnswerKeyConfig:
        answer_key = list(raw.get("answerKey") or [])
        question_count = int(raw.get("questionCount") or len(answer_key))
        # Stored keys written by older editors may be shorter than the count.
        if len(answer_key) != question_count:
            answer_key = resize_answers(answer_key, question_count)
        return cls(
            question_count=question_count,
            answer_key=answer_key,
            oficiu=int(raw.get("oficiu") or 0),
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "questionCount": self.question_count,
            "answerKey": list(self.answer_key),
            "oficiu": self.oficiu,
        }


@dataclass(slots=True)
class MultiSubjectConfig:
    """Per-subject answer keys of a multi-subject test, in fixed subject order."""

    subjects: dict[str, AnswerKeyConfig]
    files: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        unknown = sorted(set(self.subjects) - set(ELIGIBLE_SUBJECTS))
        if unknown:
            raise ValueError(f"subjects not eligible for multi-subject tests: {unknown}")
        if not self.subjects:
            raise ValueError("a multi-subject test needs at least one subject")
        self.subjects = {
            subject: self.subjects[subject] for subject in ELIGIBLE_SUBJECTS if subject in self.subjects
        }

    @property
    def question_count(self) -> int:
        return sum(config.question_count for config in self.subjects.values())

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> MultiSubjectConfig:
        subjects = {}
        files = {}
        for subject, value in raw.items():
            value = value or {}
            subjects[subject] = AnswerKeyConfig.from_json(value)
            if value.get("files"):
                files[subject] = value["files"]
        return cls(subjects=subjects, files=files)

    def to_json(self) -> dict[str, Any]:
        data = {}
        for subject, config in self.subjects.items():
            entry = config.to_json()
            if subject in self.files:
                entry["files"] = self.files[subject]
            data[subject] = entry
        return data
