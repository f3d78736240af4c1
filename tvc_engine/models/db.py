import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# JSONB on PostgreSQL, plain JSON everywhere else (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


class Material(Base):
    __tablename__ = "materials"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(100), nullable=False, server_default=text("'tvc'"))
    category: Mapped[str] = mapped_column(String(100), nullable=False, server_default=text("'tvc'"))
    timer_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Secret relative to the student role; see models.visibility.
    answer_key: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    oficiu: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # {subject: {"questionCount", "answerKey", "oficiu", "files"?}}
    subject_config: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    submissions: Mapped[list["Submission"]] = relationship("Submission", back_populates="material")


class Submission(Base):
    __tablename__ = "tvc_submissions"
    __table_args__ = (
        UniqueConstraint("user_id", "material_id", "attempt_id", name="uq_tvc_submission_attempt"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    material_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("materials.id"), nullable=False, index=True
    )
    attempt_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    # list[str] for single-subject tests, {subject: list[str]} for multi-subject.
    answers: Mapped[list | dict] = mapped_column(JSONType, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    time_spent_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    material: Mapped[Material] = relationship("Material", back_populates="submissions")
