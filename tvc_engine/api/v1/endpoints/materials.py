import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tvc_engine.api.deps import CurrentUser, get_current_user
from tvc_engine.core.database import get_db
from tvc_engine.core.errors import NotFound
from tvc_engine.models.answer_key import AnswerKeyConfig, MultiSubjectConfig
from tvc_engine.models.db import Material
from tvc_engine.models.grading import load_material
from tvc_engine.models.visibility import is_privileged, material_view, privileged_view, question_count
from tvc_engine.schemas.material import AnswerKeyWrite, QuestionCountResponse, ResizeRequest


router = APIRouter(prefix="/materials", tags=["materials"])
logger = logging.getLogger(__name__)


def _require_privileged(user: CurrentUser) -> None:
    if not is_privileged(user.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def _parse_id(material_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(material_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid material_id") from exc


async def _get_material(material_id: str, db: AsyncSession) -> Material:
    try:
        return await load_material(_parse_id(material_id), db)
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Material not found") from exc


@router.get("")
async def list_materials(
    category: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> list[dict]:
    query = select(Material)
    if category:
        query = query.where(Material.category == category)
    result = await db.execute(query.order_by(Material.created_at.desc()))
    materials = result.scalars().all()
    return [
        material_view(material, current_user.role).model_dump(mode="json", by_alias=True)
        for material in materials
    ]


@router.get("/{material_id}")
async def get_material(
    material_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> dict:
    material = await _get_material(material_id, db)
    return material_view(material, current_user.role).model_dump(mode="json", by_alias=True)


@router.get("/{material_id}/question-count", response_model=QuestionCountResponse)
async def get_question_count(
    material_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> QuestionCountResponse:
    material = await _get_material(material_id, db)
    count = question_count(material)
    if count is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Material has no answer key")
    return QuestionCountResponse(material_id=material.id, question_count=count)


@router.put("/{material_id}/answer-key")
async def put_answer_key(
    material_id: str,
    payload: AnswerKeyWrite,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> dict:
    _require_privileged(current_user)
    material = await _get_material(material_id, db)
    try:
        if payload.subject_config is not None:
            config = MultiSubjectConfig.from_json(
                {
                    subject: item.model_dump(by_alias=True, exclude_none=True)
                    for subject, item in payload.subject_config.items()
                }
            )
            material.subject_config = config.to_json()
            material.answer_key = None
        else:
            answer_key = payload.answer_key or []
            AnswerKeyConfig(question_count=len(answer_key), answer_key=answer_key, oficiu=payload.oficiu)
            material.answer_key = list(answer_key)
            material.oficiu = payload.oficiu
            material.subject_config = None
    except ValueError as exc:
        logger.info(
            "Answer key rejected",
            extra={"material_id": str(material.id), "user_id": str(current_user.id), "reason": str(exc)},
        )
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    await db.commit()
    await db.refresh(material)
    logger.info(
        "Answer key updated",
        extra={
            "material_id": str(material.id),
            "user_id": str(current_user.id),
            "multi_subject": material.subject_config is not None,
        },
    )
    return privileged_view(material).model_dump(mode="json", by_alias=True)


@router.patch("/{material_id}/answer-key/size")
async def resize_answer_key(
    material_id: str,
    payload: ResizeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> dict:
    _require_privileged(current_user)
    material = await _get_material(material_id, db)
    try:
        if payload.subject:
            raw = dict(material.subject_config or {})
            entry = dict(raw.get(payload.subject) or {"questionCount": 1, "answerKey": [""]})
            resized = AnswerKeyConfig.from_json(entry).resized(payload.question_count)
            raw[payload.subject] = {**entry, **resized.to_json()}
            material.subject_config = MultiSubjectConfig.from_json(raw).to_json()
        else:
            current = AnswerKeyConfig(
                question_count=len(material.answer_key or []) or 1,
                answer_key=list(material.answer_key or [""]),
                oficiu=material.oficiu or 0,
            )
            material.answer_key = current.resized(payload.question_count).answer_key
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    await db.commit()
    await db.refresh(material)
    return privileged_view(material).model_dump(mode="json", by_alias=True)
