import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tvc_engine.core.errors import AlreadySubmitted, InvalidAnswerShape, NotFound
from tvc_engine.models.answer_key import (
    EMPTY,
    SUBJECT_WEIGHTS,
    AnswerKeyConfig,
    MultiSubjectConfig,
)
from tvc_engine.models.db import Material, Submission
from tvc_engine.models.ledger import SubmissionLedger
from tvc_engine.schemas.grading import (
    GradingResult,
    MultiSubjectGradingRequest,
    MultiSubjectGradingResult,
    QuestionResult,
    SingleGradingRequest,
    SubjectResult,
)

logger = logging.getLogger(__name__)

MAX_GRADE = 10.0
MIN_GRADE = 1.0


def grade_answers(answer_key: list[str], answers: list[str]) -> list[QuestionResult]:
    """Compare answers to the key slot by slot.

    An unanswered slot never matches, and neither does a slot the author left
    blank in the key.
    """
    results = []
    for index, correct in enumerate(answer_key):
        given = answers[index] if index < len(answers) else EMPTY
        given = given or EMPTY
        results.append(
            QuestionResult(
                question_index=index,
                user_answer=given,
                correct_answer=correct,
                is_correct=given != EMPTY and given == correct,
            )
        )
    return results


def count_correct(results: list[QuestionResult]) -> int:
    return sum(1 for item in results if item.is_correct)


def base_grade(score: int, question_count: int) -> float:
    if question_count <= 0:
        return MIN_GRADE
    return max(MIN_GRADE, round(MAX_GRADE * score / question_count, 2))


def final_grade(base: float, oficiu: int) -> float:
    return min(MAX_GRADE, round(base + oficiu, 2))


def weighted_average(final_grades: dict[str, float]) -> float:
    # Subjects missing from the test add nothing; weights are not renormalized.
    total = sum(grade * SUBJECT_WEIGHTS.get(subject, 0.0) for subject, grade in final_grades.items())
    return round(total, 4)


def _check_shape(answers: list[str], question_count: int, subject: str | None = None) -> None:
    if len(answers) != question_count:
        where = f" for {subject}" if subject else ""
        raise InvalidAnswerShape(
            f"Expected {question_count} answers{where}, got {len(answers)}"
        )


def grade_single(
    config: AnswerKeyConfig, answers: list[str], time_spent_seconds: int
) -> GradingResult:
    _check_shape(answers, config.question_count)
    results = grade_answers(config.answer_key, answers)
    score = count_correct(results)
    return GradingResult(
        score=score,
        total_questions=config.question_count,
        results=results,
        time_spent_seconds=time_spent_seconds,
        oficiu=config.oficiu,
        base_grade=score,
        final_grade=score + config.oficiu,
    )


def grade_multi_subject(
    config: MultiSubjectConfig,
    answers_by_subject: dict[str, list[str]],
    time_spent_seconds: int,
) -> MultiSubjectGradingResult:
    unknown = sorted(set(answers_by_subject) - set(config.subjects))
    if unknown:
        raise InvalidAnswerShape(f"Answers given for subjects not in this test: {unknown}")
    for subject, subject_config in config.subjects.items():
        if subject not in answers_by_subject:
            raise InvalidAnswerShape(f"Missing answers for {subject}")
        _check_shape(answers_by_subject[subject], subject_config.question_count, subject)

    subject_results = []
    for subject, subject_config in config.subjects.items():
        results = grade_answers(subject_config.answer_key, answers_by_subject[subject])
        score = count_correct(results)
        base = base_grade(score, subject_config.question_count)
        subject_results.append(
            SubjectResult(
                subject=subject,
                score=score,
                total_questions=subject_config.question_count,
                oficiu=subject_config.oficiu,
                base_grade=base,
                final_grade=final_grade(base, subject_config.oficiu),
                results=results,
            )
        )

    return MultiSubjectGradingResult(
        subject_results=subject_results,
        weighted_average=weighted_average({item.subject: item.final_grade for item in subject_results}),
        total_score=sum(item.score for item in subject_results),
        total_questions=sum(item.total_questions for item in subject_results),
        time_spent_seconds=time_spent_seconds,
    )


async def load_material(material_id: uuid.UUID, db: AsyncSession) -> Material:
    result = await db.execute(select(Material).where(Material.id == material_id))
    material = result.scalar_one_or_none()
    if not material:
        raise NotFound("Material not found")
    return material


def single_config(material: Material) -> AnswerKeyConfig:
    if not material.answer_key or not any(material.answer_key):
        raise NotFound("This material has no answer key")
    answer_key = list(material.answer_key)
    try:
        return AnswerKeyConfig(
            question_count=len(answer_key),
            answer_key=answer_key,
            oficiu=material.oficiu or 0,
        )
    except ValueError as exc:
        raise NotFound(f"Stored answer key is unusable: {exc}") from exc


def multi_subject_config(material: Material) -> MultiSubjectConfig:
    if not material.subject_config:
        raise NotFound("This material has no subject configuration")
    try:
        config = MultiSubjectConfig.from_json(material.subject_config)
    except ValueError as exc:
        raise NotFound(f"Stored subject configuration is unusable: {exc}") from exc
    if not any(item.has_answers() for item in config.subjects.values()):
        raise NotFound("This material has no answer key")
    return config


def _grade(
    material: Material,
    request: SingleGradingRequest | MultiSubjectGradingRequest,
    answers: Any,
    time_spent_seconds: int,
) -> GradingResult | MultiSubjectGradingResult:
    if isinstance(request, MultiSubjectGradingRequest):
        return grade_multi_subject(multi_subject_config(material), answers, time_spent_seconds)
    return grade_single(single_config(material), answers, time_spent_seconds)


async def verify(
    user_id: uuid.UUID,
    request: SingleGradingRequest | MultiSubjectGradingRequest,
    db: AsyncSession,
) -> GradingResult | MultiSubjectGradingResult:
    """Grade one attempt and record it in the submission ledger.

    The answer key never leaves this function except as per-question
    ``correct_answer`` values inside the returned result.
    """
    material = await load_material(request.material_id, db)
    ledger = SubmissionLedger(db)

    if request.attempt_id:
        existing = await ledger.find_attempt(user_id, material.id, request.attempt_id)
        if existing:
            raise AlreadySubmitted(
                "Attempt already submitted",
                result=_regrade(material, request, existing),
            )

    if isinstance(request, MultiSubjectGradingRequest):
        answers: Any = request.multi_subject_answers
    else:
        answers = request.answers
    result = _grade(material, request, answers, request.time_spent_seconds)

    if isinstance(result, MultiSubjectGradingResult):
        score, total_questions = result.total_score, result.total_questions
    else:
        score, total_questions = result.score, result.total_questions

    try:
        await ledger.append(
            Submission(
                user_id=user_id,
                material_id=material.id,
                attempt_id=request.attempt_id,
                answers=answers,
                score=score,
                total_questions=total_questions,
                time_spent_seconds=request.time_spent_seconds,
            )
        )
    except AlreadySubmitted as exc:
        # Lost a race against a concurrent request for the same attempt; report
        # the recorded row, not this request.
        material = await load_material(request.material_id, db)
        existing = await ledger.find_attempt(user_id, request.material_id, request.attempt_id)
        exc.result = _regrade(material, request, existing) if existing else None
        raise

    logger.info(
        "Quiz verified",
        extra={
            "user_id": str(user_id),
            "material_id": str(material.id),
            "multi_subject": isinstance(result, MultiSubjectGradingResult),
            "score": score,
            "total_questions": total_questions,
            "weighted_average": getattr(result, "weighted_average", None),
        },
    )
    return result


def _regrade(
    material: Material,
    request: SingleGradingRequest | MultiSubjectGradingRequest,
    existing: Submission,
) -> GradingResult | MultiSubjectGradingResult | None:
    expected = dict if isinstance(request, MultiSubjectGradingRequest) else list
    if not isinstance(existing.answers, expected):
        return None
    try:
        return _grade(material, request, existing.answers, existing.time_spent_seconds or 0)
    except (InvalidAnswerShape, NotFound):
        # The key changed since the attempt was recorded.
        logger.warning(
            "Recorded attempt no longer matches the answer key",
            extra={"submission_id": str(existing.id), "material_id": str(material.id)},
        )
        return None
