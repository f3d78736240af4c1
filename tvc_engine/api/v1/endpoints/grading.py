import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from tvc_engine.api.deps import CurrentUser, get_current_user
from tvc_engine.core.database import get_db
from tvc_engine.core.errors import AlreadySubmitted, InvalidAnswerShape, NotFound
from tvc_engine.models.grading import verify
from tvc_engine.schemas.grading import GradingRequestBody, GradingResultBody


router = APIRouter(prefix="/grading", tags=["grading"])
logger = logging.getLogger(__name__)


@router.post("/verify", response_model=GradingResultBody)
async def verify_quiz_answers(
    payload: GradingRequestBody,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> GradingResultBody:
    request = payload.root
    logger.info(
        "Verify request",
        extra={
            "user_id": str(current_user.id),
            "material_id": str(request.material_id),
            "multi_subject": request.is_multi_subject,
            "attempt_id": request.attempt_id,
        },
    )
    try:
        result = await verify(current_user.id, request, db)
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message) from exc
    except InvalidAnswerShape as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.message
        ) from exc
    except AlreadySubmitted as exc:
        body = {"detail": exc.message, "result": None}
        if exc.result is not None:
            body["result"] = exc.result.model_dump(mode="json", by_alias=True)
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=body)
    return GradingResultBody(result)
