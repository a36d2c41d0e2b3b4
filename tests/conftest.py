"""Shared test fixtures: in-memory database, frozen clock, fake collaborators."""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

# Force test config BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "development"

from src.incidents.infrastructure import InMemoryDirectory, SQLAlchemyUnitOfWork
from src.infrastructure.database import build_engine, build_session_maker, create_tables
from src.main import build_incident_service
from src.sla.infrastructure import YAMLConfigProvider


ORG = "org-1"
OTHER_ORG = "org-2"
REPORTER = "user-1"
AGENT = "agent-1"
TEAM = "team-1"

# Monday, inside business hours
MONDAY_10AM = datetime(2024, 1, 8, 10, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(MONDAY_10AM)


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test (shared via StaticPool)."""
    engine = build_engine("sqlite+aiosqlite:///:memory:", echo=False)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
def uow_factory(session_maker):
    return lambda: SQLAlchemyUnitOfWork(session_maker)


@pytest.fixture
def directory():
    directory = InMemoryDirectory()
    directory.add_users(ORG, [REPORTER, AGENT])
    directory.add_teams(ORG, [TEAM])
    directory.add_configuration_items(ORG, ["ci-db", "ci-vpn"])
    directory.add_users(OTHER_ORG, ["outsider"])
    return directory


@pytest.fixture
def workflow():
    """Workflow gateway with no open tasks and no templates."""
    gateway = MagicMock()
    gateway.count_open_tasks = AsyncMock(return_value=0)
    gateway.auto_assign = AsyncMock(return_value=None)
    return gateway


@pytest.fixture
def activity_sink():
    sink = MagicMock()
    sink.publish = AsyncMock()
    return sink


@pytest.fixture
def reported():
    """Side-channel failures handed to the error reporter."""
    return []


@pytest.fixture
def config_provider(tmp_path):
    """Default SLA configuration (no file)."""
    return YAMLConfigProvider(tmp_path / "missing.yaml")


@pytest.fixture
def service(session_maker, config_provider, directory, workflow, activity_sink, reported, clock):
    return build_incident_service(
        session_maker,
        config_provider,
        directory=directory,
        workflow=workflow,
        activity_sink=activity_sink,
        error_reporter=reported.append,
        clock=clock,
    )
