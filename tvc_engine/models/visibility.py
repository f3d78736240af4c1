"""Role-scoped reads of test materials.

Students get :class:`MaterialStudentView`, a type with no answer key field, so
a student-scoped read cannot carry correct answers no matter what is stored.
"""

import logging

from tvc_engine.models.answer_key import EMPTY, MultiSubjectConfig
from tvc_engine.models.db import Material
from tvc_engine.schemas.material import (
    MaterialPrivilegedView,
    MaterialStudentView,
    SubjectKeyConfig,
    SubjectSummary,
)

logger = logging.getLogger(__name__)

PRIVILEGED_ROLES = frozenset({"teacher", "admin"})


def is_privileged(role: str | None) -> bool:
    return role in PRIVILEGED_ROLES


def _subject_config(material: Material) -> MultiSubjectConfig | None:
    if not material.subject_config:
        return None
    try:
        return MultiSubjectConfig.from_json(material.subject_config)
    except ValueError:
        logger.warning("Unusable subject_config", extra={"material_id": str(material.id)})
        return None


def has_answer_key(material: Material) -> bool:
    if material.answer_key and any(value != EMPTY for value in material.answer_key):
        return True
    config = _subject_config(material)
    return bool(config and any(item.has_answers() for item in config.subjects.values()))


def question_count(material: Material) -> int | None:
    """Number of question rows the quiz UI has to render."""
    if material.answer_key:
        return len(material.answer_key)
    config = _subject_config(material)
    if config:
        return config.question_count
    return None


def student_view(material: Material) -> MaterialStudentView:
    config = _subject_config(material)
    summary = None
    if config:
        summary = {
            subject: SubjectSummary(question_count=item.question_count, oficiu=item.oficiu)
            for subject, item in config.subjects.items()
        }
    return MaterialStudentView(
        id=material.id,
        title=material.title,
        timer_minutes=material.timer_minutes,
        question_count=question_count(material),
        has_answer_key=has_answer_key(material),
        is_multi_subject=summary is not None,
        subject_config=summary,
    )


def privileged_view(material: Material) -> MaterialPrivilegedView:
    config = _subject_config(material)
    subjects = None
    if config:
        subjects = {
            subject: SubjectKeyConfig(
                question_count=item.question_count,
                answer_key=list(item.answer_key),
                oficiu=item.oficiu,
                files=config.files.get(subject),
            )
            for subject, item in config.subjects.items()
        }
    return MaterialPrivilegedView(
        id=material.id,
        title=material.title,
        timer_minutes=material.timer_minutes,
        question_count=question_count(material),
        has_answer_key=has_answer_key(material),
        is_multi_subject=subjects is not None,
        answer_key=list(material.answer_key) if material.answer_key else None,
        oficiu=material.oficiu,
        subject_config=subjects,
    )


def material_view(material: Material, role: str | None) -> MaterialStudentView | MaterialPrivilegedView:
    if is_privileged(role):
        return privileged_view(material)
    return student_view(material)
