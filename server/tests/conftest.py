"""
Shared test fixtures.

Every test runs against the in-memory backend with a controllable clock.
"""
import os

os.environ["DB_BACKEND"] = "memory"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient

from database.MemoryDB import MemoryDatabase
from database.factory import get_database, reset_database
from models.models import Event, Question, Team, TeamMember, User
from routes.dependencies import token_strategy

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class Seeder:
    """Writes users, teams and events straight into a database."""

    def __init__(self, db, now: datetime = NOW):
        self.db = db
        self.now = now

    async def user(self, username, participation_type="individual", role="user", score=0, wins=0):
        user = User(
            username=username,
            email=f"{username}@example.com",
            password="not-a-real-hash",
            role=role,
            participationType=participation_type,
            score=score,
            wins=wins,
        )
        await self.db.insert_user(user)
        return user

    async def team(self, name, captain, members=(), score=0, wins=0):
        team = Team(name=name, captain=captain.id, score=score, wins=wins)
        team.ensure_captain(captain)
        for member in members:
            team.members.append(TeamMember(name=member.username, email=member.email, user=member.id))
        async with self.db.unit_of_work() as uow:
            uow.add_team(team)
            for user in [captain, *members]:
                stored = await uow.get_user(user.id)
                stored.teamId = team.id
                stored.participationType = "team"
                stored.isCaptain = user.id == captain.id
                uow.save_user(stored)
            await uow.commit()
        return team

    async def online_event(self, name="Capitals Quiz", starts_in=timedelta(hours=-1), duration=timedelta(hours=2)):
        event = Event(
            name=name,
            type="online",
            description="Geography and numbers",
            startDate=self.now + starts_in,
            endDate=self.now + starts_in + duration,
            questions=[
                Question(id="q1", question="Capital of France?", options=["Paris", "Lyon"], answer="Paris"),
                Question(id="q2", question="The answer?", options=["0", "42"], answer="42"),
            ],
            maxParticipants=10000,
        )
        await self.db.insert_event(event)
        return event

    async def offline_event(self, name="Hall Finals", max_participants=5, team_size=5, starts_in=timedelta(days=1)):
        event = Event(
            name=name,
            type="offline",
            description="In-person finals",
            location="Main hall",
            startDate=self.now + starts_in,
            endDate=self.now + starts_in + timedelta(hours=4),
            maxParticipants=max_participants,
            teamSize=team_size,
        )
        await self.db.insert_event(event)
        return event


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def db():
    return MemoryDatabase()


@pytest.fixture
def seed(db):
    return Seeder(db)


def auth_header(user):
    return {"Authorization": f"Bearer {token_strategy.create_access_token(user.id)}"}


@pytest.fixture
def api():
    """Test client over a fresh in-memory database, plus a seeder for it."""
    reset_database()
    database = get_database()
    seeder = Seeder(database, now=datetime.now(timezone.utc))
    from main import app
    with TestClient(app) as test_client:
        yield test_client, seeder
    reset_database()


def run(coroutine):
    """Run a seeding coroutine from synchronous test code."""
    return asyncio.run(coroutine)
