from fastapi import APIRouter

from tvc_engine.api.v1.endpoints.grading import router as grading_router
from tvc_engine.api.v1.endpoints.materials import router as materials_router
from tvc_engine.api.v1.endpoints.submissions import router as submissions_router


router = APIRouter()
router.include_router(grading_router)
router.include_router(materials_router)
router.include_router(submissions_router)
