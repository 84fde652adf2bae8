"""Shared fixtures and utilities for tests."""

import os

# Settings are read at import time, so the environment must be in place first
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-min-32-chars-long-for-security")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("JSON_LOGS", "false")
os.environ.setdefault("NOTIFICATIONS_BACKEND", "log")
os.environ.setdefault("SITE_URL", "https://teams.example.edu")
os.environ.setdefault("RESUME_BUCKET", "test-resumes")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")

from contextlib import asynccontextmanager
from datetime import timedelta
from itertools import count
from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import database.models  # noqa: F401
from core.security import create_access_token
from core.utils.datetime import now
from database.engine import Base
from database.models.applications import Application, ApplicationStatus, Note
from database.models.communications import Message, SenderType
from database.models.profiles import ClassStanding, Profile
from database.models.teams import Team, TeamMember, TeamRole
from database.models.users import User


QUESTIONS = [
    {"id": "why", "type": "textarea", "label": "Why this team?", "required": True},
    {"id": "role", "type": "select", "label": "Preferred role", "required": True,
     "options": ["Software", "Mechanical"]},
    {"id": "github", "type": "text", "label": "GitHub", "required": False},
]

COMPLETE_ANSWERS = {"why": "I like robots", "role": "Software"}


class RecordingNotifier:
    """Notifier that keeps every notification it is handed."""

    def __init__(self):
        self.sent = []

    def notify(self, notification) -> None:
        self.sent.append(notification)

    def kinds(self) -> list[str]:
        return [n.kind for n in self.sent]


class Factory:
    """Inserts rows with sensible defaults."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._seq = count(1)

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def user(self, email: Optional[str] = None) -> User:
        n = next(self._seq)
        return await self._save(
            User(id=f"user-{n:04d}", email=email or f"user{n}@cornell.edu")
        )

    async def student(
        self,
        netid: Optional[str] = None,
        full_name: str = "Ada Lovelace",
        class_standing: Optional[ClassStanding] = None,
    ) -> Profile:
        user = await self.user()
        netid = netid or f"ab{next(self._seq)}"
        profile = Profile(
            id=user.id,
            netid=netid,
            email=f"{netid}@cornell.edu",
            full_name=full_name,
            class_standing=class_standing,
        )
        return await self._save(profile)

    async def team(
        self,
        owner: Optional[User] = None,
        name: str = "Cornell Robotics",
        questions: Optional[list[dict[str, Any]]] = None,
        upper: Any = None,
        lower: Any = None,
        category: Optional[str] = "Engineering",
    ) -> Team:
        return await self._save(
            Team(
                name=name,
                category=category,
                owner_id=owner.id if owner else None,
                custom_questions=QUESTIONS if questions is None else questions,
                upperclassman_deadline=upper,
                lowerclassman_deadline=lower,
            )
        )

    async def reviewer(self, team: Team, profile: Profile) -> TeamMember:
        return await self._save(
            TeamMember(team_id=team.id, user_id=profile.id, role=TeamRole.REVIEWER)
        )

    async def application(
        self,
        student: Profile,
        team: Team,
        status: ApplicationStatus = ApplicationStatus.SUBMITTED,
        answers: Optional[dict[str, str]] = None,
    ) -> Application:
        return await self._save(
            Application(
                student_id=student.id,
                team_id=team.id,
                status=status,
                answers=dict(COMPLETE_ANSWERS if answers is None else answers),
            )
        )

    async def message(
        self, application: Application, sender_id: str, sender_type: SenderType, body: str
    ) -> Message:
        return await self._save(
            Message(
                application_id=application.id,
                sender_id=sender_id,
                sender_type=sender_type,
                body=body,
            )
        )

    async def note(self, application: Application, author_id: str, body: str) -> Note:
        return await self._save(
            Note(application_id=application.id, author_id=author_id, body=body)
        )


@pytest.fixture
async def engine():
    """In-memory SQLite engine with the schema created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def factory(session):
    return Factory(session)


@pytest.fixture
def concurrent_insert(session, session_factory):
    """
    Commit a row from a second session right after the n-th query on ``session``.

    Lets a competing request win the gap between a service's existence check
    and its own insert, so the store's unique constraint has to catch it.
    """

    @asynccontextmanager
    async def interleave(make_row, after_query: int = 1):
        execute = session.execute
        calls = count(1)

        async def execute_then_insert(statement, *args, **kwargs):
            result = await execute(statement, *args, **kwargs)
            if next(calls) == after_query:
                async with session_factory() as other:
                    other.add(make_row())
                    await other.commit()
            return result

        with patch.object(session, "execute", new=execute_then_insert):
            yield

    return interleave


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def storage():
    """Stand-in for the S3 resume bucket."""
    storage = MagicMock()
    storage.upload = AsyncMock(side_effect=lambda data, key, content_type=None: key)
    storage.delete = AsyncMock(return_value=True)
    storage.public_url = MagicMock(
        side_effect=lambda key: f"https://test-resumes.s3.us-east-1.amazonaws.com/{key}"
    )
    return storage


@pytest.fixture
def future():
    return now() + timedelta(days=14)


@pytest.fixture
def past():
    return now() - timedelta(days=1)


@pytest.fixture
async def world(factory, future):
    """A team with an owner, one reviewer, one submitted applicant and an outsider."""
    owner = await factory.user(email="robotics@teams.example.edu")
    team = await factory.team(owner=owner, upper=future, lower=future)
    reviewer = await factory.student(netid="rv12", full_name="Grace Hopper")
    await factory.reviewer(team, reviewer)
    applicant = await factory.student(netid="ap34", full_name="Alan Turing")
    application = await factory.application(applicant, team)
    outsider = await factory.student(netid="ot56", full_name="Ed Outsider")
    return SimpleNamespace(
        owner=owner,
        team=team,
        reviewer=reviewer,
        applicant=applicant,
        application=application,
        outsider=outsider,
    )


def auth_headers(user_id: str, email: str) -> dict[str, str]:
    token = create_access_token(subject=user_id, email=email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def login():
    """Bearer headers for a user id and email."""
    return auth_headers


@pytest.fixture
async def client(session_factory, notifier, storage):
    """HTTP client against the app with database, notifier and storage overridden."""
    from api.dependencies import get_session_factory, get_storage
    from api.main import app
    from api.services.notifications import get_notifier
    from database.engine import get_db

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
