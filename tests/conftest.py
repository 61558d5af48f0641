"""Shared test fixtures — async DB, client, auth helpers, org factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from leaveflow.common.constants import StepType, UserRole, WorkflowMode
from leaveflow.common.triggers import (
    AuditEvent,
    NotificationEvent,
    TriggerBus,
    set_trigger_bus,
)
from leaveflow.config import settings
from leaveflow.database import Base, get_db
from leaveflow.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import leaveflow.auth.models  # noqa: F401
import leaveflow.common.audit  # noqa: F401
import leaveflow.core_hr.models  # noqa: F401
import leaveflow.leave.models  # noqa: F401
import leaveflow.notifications.models  # noqa: F401

from leaveflow.auth.models import RoleAssignment
from leaveflow.core_hr.models import Employee, Office, PublicHoliday, Team
from leaveflow.leave.models import (
    Delegation,
    LeaveBalance,
    LeaveType,
    WorkflowConfig,
    WorkflowStep,
)

# ── SQLite compat: compile PG-specific types to TEXT/BLOB ───────────

from sqlalchemy.dialects.postgresql import INET, JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(INET, "sqlite")
def _inet_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() as a SQLite custom function."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from leaveflow.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Trigger recording ───────────────────────────────────────────────

class RecordingAuditSink:
    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    async def record(self, db, event: AuditEvent) -> None:
        self.events.append(event)

    @property
    def actions(self) -> list[str]:
        return [e.action for e in self.events]


class RecordingNotificationSink:
    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    async def send(self, db, event: NotificationEvent) -> None:
        self.events.append(event)

    @property
    def kinds(self) -> list[str]:
        return [e.kind.value for e in self.events]


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def notification_sink() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture(autouse=True)
def triggers(audit_sink, notification_sink):
    """Install recording sinks as the process-wide trigger bus."""
    bus = TriggerBus(
        audit_sinks=[audit_sink],
        notification_sinks=[notification_sink],
    )
    set_trigger_bus(bus)
    yield bus
    set_trigger_bus(None)


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

async def seed_office(
    db: AsyncSession,
    *,
    name: Optional[str] = None,
    working_days: Optional[list[str]] = None,
    probation_months: int = 3,
) -> Office:
    office = Office(
        id=uuid.uuid4(),
        name=name or f"Office {uuid.uuid4().hex[:6]}",
        country="Tunisia",
        city="Tunis",
        working_days=working_days or ["MON", "TUE", "WED", "THU", "FRI"],
        probation_months=probation_months,
        is_active=True,
    )
    db.add(office)
    await db.flush()
    return office


async def seed_employee(
    db: AsyncSession,
    office: Office,
    *,
    team: Optional[Team] = None,
    first_name: str = "Test",
    last_name: str = "User",
    hire_date: date = date(2024, 1, 15),
    is_active: bool = True,
) -> Employee:
    emp = Employee(
        id=uuid.uuid4(),
        email=f"{first_name.lower()}.{uuid.uuid4().hex[:8]}@example.com",
        first_name=first_name,
        last_name=last_name,
        office_id=office.id,
        team_id=team.id if team else None,
        hire_date=hire_date,
        is_active=is_active,
    )
    db.add(emp)
    await db.flush()
    return emp


async def seed_team(
    db: AsyncSession,
    office: Office,
    *,
    manager: Optional[Employee] = None,
    name: str = "Engineering",
) -> Team:
    team = Team(
        id=uuid.uuid4(),
        name=name,
        office_id=office.id,
        manager_id=manager.id if manager else None,
    )
    db.add(team)
    await db.flush()
    return team


async def seed_role(
    db: AsyncSession,
    employee: Employee,
    role: UserRole = UserRole.hr_admin,
    *,
    is_active: bool = True,
) -> RoleAssignment:
    ra = RoleAssignment(
        id=uuid.uuid4(),
        employee_id=employee.id,
        role=role,
        is_active=is_active,
    )
    db.add(ra)
    await db.flush()
    return ra


async def seed_leave_type(
    db: AsyncSession,
    office: Office,
    *,
    code: str = "ANNUAL",
    name: str = "Annual Leave",
    deducts_from_balance: bool = True,
    balance_type: Optional[str] = "annual",
    is_balance_exempt: bool = False,
    is_active: bool = True,
) -> LeaveType:
    lt = LeaveType(
        id=uuid.uuid4(),
        office_id=office.id,
        code=code,
        name=name,
        deducts_from_balance=deducts_from_balance,
        balance_type=balance_type,
        is_balance_exempt=is_balance_exempt,
        is_active=is_active,
    )
    db.add(lt)
    await db.flush()
    return lt


async def seed_balance(
    db: AsyncSession,
    employee: Employee,
    *,
    year: int = 2026,
    balance_type: str = "annual",
    total_days: Decimal = Decimal("20"),
    carried_over_days: Decimal = Decimal("0"),
    used_days: Decimal = Decimal("0"),
    pending_days: Decimal = Decimal("0"),
) -> LeaveBalance:
    bal = LeaveBalance(
        id=uuid.uuid4(),
        employee_id=employee.id,
        year=year,
        balance_type=balance_type,
        total_days=total_days,
        carried_over_days=carried_over_days,
        used_days=used_days,
        pending_days=pending_days,
        version=1,
    )
    db.add(bal)
    await db.flush()
    return bal


async def seed_workflow(
    db: AsyncSession,
    office: Office,
    step_types: list[StepType],
    *,
    team: Optional[Team] = None,
    mode: WorkflowMode = WorkflowMode.sequential,
    is_active: bool = True,
) -> WorkflowConfig:
    config = WorkflowConfig(
        id=uuid.uuid4(),
        office_id=office.id,
        team_id=team.id if team else None,
        mode=mode,
        is_active=is_active,
        steps=[
            WorkflowStep(id=uuid.uuid4(), step_order=i + 1, step_type=st)
            for i, st in enumerate(step_types)
        ],
    )
    db.add(config)
    await db.flush()
    return config


async def seed_delegation(
    db: AsyncSession,
    from_user: Employee,
    to_user: Employee,
    *,
    start_date: date,
    end_date: date,
    is_active: bool = True,
) -> Delegation:
    d = Delegation(
        id=uuid.uuid4(),
        from_user_id=from_user.id,
        to_user_id=to_user.id,
        start_date=start_date,
        end_date=end_date,
        is_active=is_active,
        created_by=from_user.id,
    )
    db.add(d)
    await db.flush()
    return d


async def seed_holiday(
    db: AsyncSession, office: Office, day: date, name: str = "Holiday",
) -> PublicHoliday:
    h = PublicHoliday(id=uuid.uuid4(), office_id=office.id, holiday_date=day, name=name)
    db.add(h)
    await db.flush()
    return h


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_header(
    employee_id: uuid.UUID, role: UserRole = UserRole.employee,
) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee_id, role)}"}
