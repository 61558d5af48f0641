"""001 – Initial schema: directory, roles, leave lifecycle, ledger, audit, notifications.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 10:00:00.000000+00:00
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("user_role", ["employee", "manager", "hr_admin", "system_admin"]),
    (
        "leave_status",
        [
            "draft",
            "pending_manager",
            "pending_hr",
            "approved",
            "refused",
            "cancelled",
            "returned",
        ],
    ),
    ("half_day", ["full_day", "morning", "afternoon"]),
    ("step_type", ["manager", "hr"]),
    ("step_action", ["approved", "refused", "returned"]),
    ("workflow_mode", ["sequential", "parallel"]),
    ("notification_type", ["new_request", "approved", "refused", "returned"]),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. offices ────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE offices (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name             VARCHAR(100) NOT NULL UNIQUE,
            country          VARCHAR(100),
            city             VARCHAR(100),
            working_days     JSONB NOT NULL
                DEFAULT '["MON", "TUE", "WED", "THU", "FRI"]',
            probation_months INTEGER NOT NULL DEFAULT 3,
            is_active        BOOLEAN DEFAULT TRUE,
            created_at       TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. teams ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE teams (
            id         UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name       VARCHAR(150) NOT NULL,
            office_id  UUID NOT NULL REFERENCES offices(id),
            manager_id UUID  -- FK added after employees table
        )
    """)

    # ── 3. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id         UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            email      VARCHAR(255) NOT NULL UNIQUE,
            first_name VARCHAR(100) NOT NULL,
            last_name  VARCHAR(100) NOT NULL,
            office_id  UUID NOT NULL REFERENCES offices(id),
            team_id    UUID REFERENCES teams(id),
            hire_date  DATE,
            is_active  BOOLEAN DEFAULT TRUE,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        ALTER TABLE teams
            ADD CONSTRAINT fk_team_manager
            FOREIGN KEY (manager_id) REFERENCES employees(id)
    """)
    op.execute("CREATE INDEX idx_employees_team ON employees(team_id)")

    # ── 4. public_holidays ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE public_holidays (
            id        UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            office_id UUID NOT NULL REFERENCES offices(id),
            date      DATE NOT NULL,
            name      VARCHAR(200) NOT NULL,
            CONSTRAINT uq_holiday_office_date UNIQUE (office_id, date)
        )
    """)

    # ── 5. role_assignments ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE role_assignments (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            role        user_role NOT NULL,
            assigned_by UUID REFERENCES employees(id),
            assigned_at TIMESTAMPTZ DEFAULT NOW(),
            is_active   BOOLEAN DEFAULT TRUE
        )
    """)
    op.execute(
        "CREATE INDEX idx_role_assignments_role ON role_assignments(role, is_active)"
    )

    # ── 6. leave_types ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id                   UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            office_id            UUID NOT NULL REFERENCES offices(id),
            code                 VARCHAR(30)  NOT NULL,
            name                 VARCHAR(100) NOT NULL,
            deducts_from_balance BOOLEAN DEFAULT TRUE,
            balance_type         VARCHAR(30),
            is_balance_exempt    BOOLEAN DEFAULT FALSE,
            is_active            BOOLEAN DEFAULT TRUE,
            CONSTRAINT uq_leave_type_office_code UNIQUE (office_id, code)
        )
    """)

    # ── 7. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id       UUID NOT NULL REFERENCES employees(id),
            year              INTEGER NOT NULL,
            balance_type      VARCHAR(30) NOT NULL,
            total_days        NUMERIC(6,1) DEFAULT 0,
            carried_over_days NUMERIC(6,1) DEFAULT 0,
            used_days         NUMERIC(6,1) DEFAULT 0,
            pending_days      NUMERIC(6,1) DEFAULT 0,
            version           INTEGER NOT NULL DEFAULT 1,
            updated_at        TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balance UNIQUE (employee_id, year, balance_type)
        )
    """)

    # ── 8. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id        UUID NOT NULL REFERENCES employees(id),
            leave_type_id      UUID NOT NULL REFERENCES leave_types(id),
            start_date         DATE NOT NULL,
            end_date           DATE NOT NULL,
            start_half_day     half_day NOT NULL DEFAULT 'full_day',
            end_half_day       half_day NOT NULL DEFAULT 'full_day',
            total_days         NUMERIC(6,1) NOT NULL,
            status             leave_status NOT NULL DEFAULT 'draft',
            reason             TEXT,
            exceptional_reason TEXT,
            attachment_urls    JSONB,
            is_company_closure BOOLEAN DEFAULT FALSE,
            balance_reserved   BOOLEAN DEFAULT FALSE,
            version            INTEGER NOT NULL DEFAULT 1,
            submitted_at       TIMESTAMPTZ,
            cancelled_at       TIMESTAMPTZ,
            created_at         TIMESTAMPTZ DEFAULT NOW(),
            updated_at         TIMESTAMPTZ DEFAULT NOW(),
            CHECK (end_date >= start_date)
        )
    """)
    op.execute(
        "CREATE INDEX idx_leave_requests_employee_dates "
        "ON leave_requests(employee_id, start_date, end_date)"
    )
    op.execute("CREATE INDEX idx_leave_requests_status ON leave_requests(status)")

    # ── 9. approval_steps ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE approval_steps (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            leave_request_id  UUID NOT NULL
                REFERENCES leave_requests(id) ON DELETE CASCADE,
            step_type         step_type NOT NULL,
            step_order        INTEGER NOT NULL,
            approver_id       UUID NOT NULL REFERENCES employees(id),
            delegated_from_id UUID REFERENCES employees(id),
            action            step_action,
            comment           TEXT,
            decided_at        TIMESTAMPTZ
        )
    """)
    op.execute(
        "CREATE INDEX idx_approval_steps_request ON approval_steps(leave_request_id)"
    )
    op.execute(
        "CREATE INDEX idx_approval_steps_open "
        "ON approval_steps(approver_id) WHERE action IS NULL"
    )

    # ── 10. delegations ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE delegations (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            from_user_id UUID NOT NULL REFERENCES employees(id),
            to_user_id   UUID NOT NULL REFERENCES employees(id),
            start_date   DATE NOT NULL,
            end_date     DATE NOT NULL,
            is_active    BOOLEAN DEFAULT TRUE,
            created_by   UUID REFERENCES employees(id),
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX idx_delegations_to_user "
        "ON delegations(to_user_id, start_date, end_date)"
    )

    # ── 11. workflow_configs / workflow_steps ─────────────────────────────
    op.execute("""
        CREATE TABLE workflow_configs (
            id        UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            office_id UUID NOT NULL REFERENCES offices(id),
            team_id   UUID REFERENCES teams(id),
            mode      workflow_mode NOT NULL DEFAULT 'sequential',
            is_active BOOLEAN DEFAULT TRUE
        )
    """)
    op.execute("""
        CREATE TABLE workflow_steps (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            config_id   UUID NOT NULL
                REFERENCES workflow_configs(id) ON DELETE CASCADE,
            step_order  INTEGER NOT NULL,
            step_type   step_type NOT NULL,
            is_required BOOLEAN DEFAULT TRUE
        )
    """)

    # ── 12. notifications ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            recipient_id UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            type         notification_type NOT NULL,
            title        VARCHAR(200) NOT NULL,
            message      TEXT NOT NULL,
            action_url   VARCHAR(500),
            entity_type  VARCHAR(50),
            entity_id    UUID,
            is_read      BOOLEAN DEFAULT FALSE,
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX idx_notifications_recipient "
        "ON notifications(recipient_id, is_read)"
    )

    # ── 13. audit_trail ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id        UUID REFERENCES employees(id),
            on_behalf_of_id UUID REFERENCES employees(id),
            action          VARCHAR(50) NOT NULL,
            entity_type     VARCHAR(50) NOT NULL,
            entity_id       UUID NOT NULL,
            old_values      JSONB,
            new_values      JSONB,
            ip_address      INET,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail(actor_id)")
    op.execute(
        "CREATE INDEX ix_audit_trail_entity ON audit_trail(entity_type, entity_id)"
    )
    op.execute("CREATE INDEX ix_audit_trail_action ON audit_trail(action)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "notifications",
        "workflow_steps",
        "workflow_configs",
        "delegations",
        "approval_steps",
        "leave_requests",
        "leave_balances",
        "leave_types",
        "role_assignments",
        "public_holidays",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    # Drop deferred FK before dropping employees / teams
    op.execute("ALTER TABLE teams DROP CONSTRAINT IF EXISTS fk_team_manager")
    op.execute("DROP TABLE IF EXISTS employees CASCADE")
    op.execute("DROP TABLE IF EXISTS teams CASCADE")
    op.execute("DROP TABLE IF EXISTS offices CASCADE")

    # Drop enum types
    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
