import asyncio
import os
import tempfile
import uuid
from pathlib import Path

import pytest

_DB_DIR = Path(tempfile.mkdtemp(prefix="tvc-engine-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR / 'test.db'}"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from fastapi.testclient import TestClient
from sqlalchemy import select

from tvc_engine.core.database import AsyncSessionLocal, engine
from tvc_engine.core.security import create_access_token
from tvc_engine.main import app
from tvc_engine.models.db import Base, Material, Submission


async def _reset_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def _add_material(fields: dict) -> Material:
    async with AsyncSessionLocal() as db:
        material = Material(**fields)
        db.add(material)
        await db.commit()
        await db.refresh(material)
        return material


async def _load_material(material_id: uuid.UUID) -> Material:
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Material).where(Material.id == material_id))
        return result.scalar_one()


async def _all_submissions() -> list[Submission]:
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Submission))
        return list(result.scalars().all())


@pytest.fixture(autouse=True)
def fresh_db():
    asyncio.run(_reset_schema())
    yield


@pytest.fixture
def make_material():
    def _make(**fields) -> Material:
        fields.setdefault("title", "TVC practice test")
        fields.setdefault("timer_minutes", 10)
        return asyncio.run(_add_material(fields))

    return _make


@pytest.fixture
def reload_material():
    return lambda material_id: asyncio.run(_load_material(material_id))


@pytest.fixture
def ledger_rows():
    return lambda: asyncio.run(_all_submissions())


@pytest.fixture
def make_token():
    def _make(role: str = "student", user_id: uuid.UUID | None = None) -> str:
        return create_access_token({"sub": str(user_id or uuid.uuid4()), "role": role})

    return _make


@pytest.fixture
def auth_headers(make_token):
    def _headers(role: str = "student", user_id: uuid.UUID | None = None) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(role, user_id)}"}

    return _headers


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def multi_subject_config() -> dict:
    return {
        "matematica": {"questionCount": 2, "answerKey": ["A", "B"], "oficiu": 1},
        "informatica": {"questionCount": 2, "answerKey": ["C", "D"], "oficiu": 0},
        "fizica": {"questionCount": 1, "answerKey": ["A"], "oficiu": 0},
    }
