"""Append-only ledger of graded TVC attempts."""

import logging
import uuid
from collections.abc import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tvc_engine.core.errors import AlreadySubmitted
from tvc_engine.models.db import Submission

logger = logging.getLogger(__name__)


class SubmissionLedger:
    """Persists one row per completed attempt; rows are never updated or deleted."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def append(self, record: Submission) -> Submission:
        attempt = {
            "user_id": str(record.user_id),
            "material_id": str(record.material_id),
            "attempt_id": record.attempt_id,
        }
        self._db.add(record)
        try:
            await self._db.commit()
        except IntegrityError as exc:
            await self._db.rollback()
            logger.warning("Duplicate submission rejected", extra=attempt)
            raise AlreadySubmitted("Attempt already submitted") from exc
        await self._db.refresh(record)
        logger.info(
            "Submission appended",
            extra={
                "submission_id": str(record.id),
                "user_id": str(record.user_id),
                "material_id": str(record.material_id),
                "score": record.score,
                "total_questions": record.total_questions,
            },
        )
        return record

    async def list_for(
        self,
        material_ids: Iterable[uuid.UUID],
        user_id: uuid.UUID | None = None,
    ) -> Sequence[Submission]:
        ids = set(material_ids)
        if not ids:
            return []
        query = select(Submission).where(Submission.material_id.in_(ids))
        if user_id is not None:
            query = query.where(Submission.user_id == user_id)
        result = await self._db.execute(query.order_by(Submission.submitted_at.desc()))
        return result.scalars().all()

    async def has_submission(
        self, user_id: uuid.UUID, material_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, bool]:
        ids = set(material_ids)
        if not ids:
            return {}
        result = await self._db.execute(
            select(Submission.material_id)
            .where(Submission.user_id == user_id)
            .where(Submission.material_id.in_(ids))
            .distinct()
        )
        submitted = set(result.scalars().all())
        return {material_id: material_id in submitted for material_id in ids}

    async def find_attempt(
        self, user_id: uuid.UUID, material_id: uuid.UUID, attempt_id: str
    ) -> Submission | None:
        result = await self._db.execute(
            select(Submission).where(
                Submission.user_id == user_id,
                Submission.material_id == material_id,
                Submission.attempt_id == attempt_id,
            )
        )
        return result.scalar_one_or_none()
