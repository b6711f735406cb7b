"""Shared fixtures: in-memory database, API client and record factories."""
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from therapy_modules.core.security import create_session_token
from therapy_modules.db.base import Base
from therapy_modules.db.session import get_db
from therapy_modules.models import (
    Module,
    ModuleAssignment,
    ModuleEnrollment,
    Program,
    Question,
    ScoreBand,
    User,
)
from therapy_modules.models.enums import AccessPolicy, AssignmentStatus, ModuleType, UserRole

# Monday 2024-01-15 is in GMT, so London local time equals UTC that week
MONDAY = datetime(2024, 1, 15, 0, 0, tzinfo=timezone.utc)

FREQUENCY_CHOICES = [
    {"text": "Not at all", "score": 0},
    {"text": "Several days", "score": 1},
    {"text": "More than half the days", "score": 2},
    {"text": "Nearly every day", "score": 3},
]

PHQ9_BANDS = [
    (0, 4, "Minimal"),
    (5, 9, "Mild"),
    (10, 14, "Moderate"),
    (15, 19, "Moderately severe"),
    (20, 27, "Severe"),
]


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient against the app, with ``get_db`` bound to the test database."""
    from therapy_modules.main import app

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_session_token(user.id)}"}


class Factory:
    """Creates committed records with sensible defaults."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self._seq = 0
        self._program = None

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    async def _save(self, obj):
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def user(self, roles=(UserRole.PATIENT,), therapist=None, verified=False, name=None) -> User:
        n = self._next()
        return await self._save(
            User(
                email=f"user{n}@example.com",
                username=f"user{n}",
                name=name,
                roles=[getattr(r, "value", r) for r in roles],
                is_verified_therapist=verified,
                therapist_id=therapist.id if therapist else None,
            )
        )

    async def therapist(self, verified=True) -> User:
        return await self.user(roles=(UserRole.THERAPIST,), verified=verified)

    async def admin(self) -> User:
        return await self.user(roles=(UserRole.ADMIN,))

    async def patient(self, therapist=None) -> User:
        return await self.user(therapist=therapist)

    async def program(self) -> Program:
        if self._program is None:
            self._program = await self._save(Program(title="Depression", description="Low mood"))
        return self._program

    async def module(
        self,
        type=ModuleType.QUESTIONNAIRE,
        access_policy=AccessPolicy.OPEN,
        title=None,
        disclaimer="Not a diagnosis.",
    ) -> Module:
        program = await self.program()
        return await self._save(
            Module(
                program_id=program.id,
                title=title or f"Module {self._next()}",
                description="",
                disclaimer=disclaimer,
                type=getattr(type, "value", type),
                access_policy=getattr(access_policy, "value", access_policy),
            )
        )

    async def questionnaire(self, access_policy=AccessPolicy.OPEN, questions=9, bands=PHQ9_BANDS) -> Module:
        module = await self.module(access_policy=access_policy)
        for order in range(1, questions + 1):
            self.db.add(
                Question(
                    module_id=module.id,
                    order=order,
                    text=f"Question {order}",
                    choices=[dict(c) for c in FREQUENCY_CHOICES],
                )
            )
        for low, high, label in bands:
            self.db.add(ScoreBand(module_id=module.id, min=low, max=high, label=label, interpretation=label))
        await self.db.commit()
        return module

    async def diary(self, access_policy=AccessPolicy.OPEN) -> Module:
        return await self.module(type=ModuleType.ACTIVITY_DIARY, access_policy=access_policy)

    async def enroll(self, module: Module, user: User) -> ModuleEnrollment:
        return await self._save(ModuleEnrollment(module_id=module.id, user_id=user.id))

    async def assignment(
        self,
        module: Module,
        patient: User,
        therapist: User,
        status=AssignmentStatus.ASSIGNED,
        due_at=None,
    ) -> ModuleAssignment:
        return await self._save(
            ModuleAssignment(
                user_id=patient.id,
                therapist_id=therapist.id,
                program_id=module.program_id,
                module_id=module.id,
                module_type=module.type,
                status=getattr(status, "value", status),
                due_at=due_at,
            )
        )

    async def questions(self, module: Module) -> list[Question]:
        from therapy_modules.services.catalog import get_questions

        return await get_questions(self.db, module.id)


@pytest.fixture
def factory(db) -> Factory:
    return Factory(db)


def full_answers(questions, score=1) -> list[dict]:
    return [{"question_id": q.id, "chosen_score": score} for q in questions]
