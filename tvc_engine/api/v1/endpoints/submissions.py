import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tvc_engine.api.deps import CurrentUser, get_current_user
from tvc_engine.core.database import get_db
from tvc_engine.models.ledger import SubmissionLedger
from tvc_engine.models.visibility import is_privileged
from tvc_engine.schemas.submission import SubmissionRecord


router = APIRouter(prefix="/submissions", tags=["submissions"])
logger = logging.getLogger(__name__)


def _parse_ids(material_ids: list[str]) -> set[uuid.UUID]:
    try:
        return {uuid.UUID(value) for value in material_ids}
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid material_id") from exc


@router.get("", response_model=list[SubmissionRecord])
async def list_submissions(
    material_id: list[str] = Query(default=[]),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> list[SubmissionRecord]:
    ids = _parse_ids(material_id)
    # Students only ever see their own attempts.
    owner = None if is_privileged(current_user.role) else current_user.id
    rows = await SubmissionLedger(db).list_for(ids, user_id=owner)
    logger.info(
        "Submissions fetched",
        extra={
            "user_id": str(current_user.id),
            "material_count": len(ids),
            "row_count": len(rows),
        },
    )
    return [SubmissionRecord.from_row(row) for row in rows]


@router.get("/status")
async def submission_status(
    material_id: list[str] = Query(default=[]),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> dict[str, bool]:
    ids = _parse_ids(material_id)
    submitted = await SubmissionLedger(db).has_submission(current_user.id, ids)
    return {str(key): value for key, value in submitted.items()}
