"""adherence_summary_schema

Revision ID: 001_adherence_summary
Revises:
Create Date: 2026-10-18

Creates agent_adherence_summaries, the only table owned by the adherence
engine, and guarantees the (employee_id, schedule_date) unique constraint
that the summary upsert targets.

All DDL checks the catalog first so the migration is idempotent — safe to
run even when Base.metadata.create_all() already created the table, or
when an older deployment created it without the constraint.
"""
import logging
from alembic import op
import sqlalchemy as sa
from sqlalchemy import text
from sqlalchemy.dialects import postgresql

revision = '001_adherence_summary'
down_revision = None
branch_labels = None
depends_on = None

logger = logging.getLogger("alembic.001")

TABLE = 'agent_adherence_summaries'
UNIQUE_NAME = 'uq_summaries_employee_date'


def _table_exists(conn, table_name: str) -> bool:
    result = conn.execute(
        text(
            "SELECT EXISTS("
            "  SELECT 1 FROM information_schema.tables"
            "  WHERE table_name = :tname"
            ")"
        ),
        {"tname": table_name},
    )
    return bool(result.scalar())


def _constraint_exists(conn, table_name: str, constraint_name: str) -> bool:
    result = conn.execute(
        text(
            "SELECT EXISTS("
            "  SELECT 1 FROM information_schema.table_constraints"
            "  WHERE table_name = :tname AND constraint_name = :cname"
            ")"
        ),
        {"tname": table_name, "cname": constraint_name},
    )
    return bool(result.scalar())


def upgrade() -> None:
    conn = op.get_bind()

    if not _table_exists(conn, TABLE):
        op.create_table(
            TABLE,
            sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True,
                      server_default=sa.text('gen_random_uuid()')),
            sa.Column('employee_id', postgresql.UUID(as_uuid=False), nullable=False, index=True),
            sa.Column('schedule_date', sa.Date, nullable=False),
            sa.Column('scheduled_start_time', sa.Time, nullable=True),
            sa.Column('scheduled_end_time', sa.Time, nullable=True),
            sa.Column('scheduled_duration_minutes', sa.Integer, nullable=False, server_default='0'),
            sa.Column('actual_start_time', sa.DateTime(timezone=True), nullable=True),
            sa.Column('actual_end_time', sa.DateTime(timezone=True), nullable=True),
            sa.Column('actual_duration_minutes', sa.Integer, nullable=False, server_default='0'),
            sa.Column('start_variance_minutes', sa.Integer, nullable=False, server_default='0'),
            sa.Column('end_variance_minutes', sa.Integer, nullable=False, server_default='0'),
            sa.Column('break_compliance_percentage', sa.Numeric(5, 2), nullable=True),
            sa.Column('missed_breaks_count', sa.Integer, nullable=False, server_default='0'),
            sa.Column('extended_breaks_count', sa.Integer, nullable=False, server_default='0'),
            sa.Column('productive_time_minutes', sa.Integer, nullable=False, server_default='0'),
            sa.Column('idle_time_minutes', sa.Integer, nullable=False, server_default='0'),
            sa.Column('away_time_minutes', sa.Integer, nullable=False, server_default='0'),
            sa.Column('non_work_app_time_minutes', sa.Integer, nullable=False, server_default='0'),
            sa.Column('adherence_percentage', sa.Numeric(7, 2), nullable=True),
            sa.Column('scheduled_breaks', postgresql.JSONB, nullable=True),
            sa.Column('actual_breaks', postgresql.JSONB, nullable=True),
            sa.Column('exception_adjustments', postgresql.JSONB, nullable=True),
            sa.Column('calculated_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index('idx_summaries_date', TABLE, ['schedule_date'])
        logger.info(f"Created table: {TABLE}")
    else:
        logger.info(f"Table {TABLE} already exists — skipping create")

    if not _constraint_exists(conn, TABLE, UNIQUE_NAME):
        op.create_unique_constraint(UNIQUE_NAME, TABLE, ['employee_id', 'schedule_date'])
        logger.info(f"Added unique constraint {UNIQUE_NAME}")


def downgrade() -> None:
    conn = op.get_bind()

    if _table_exists(conn, TABLE):
        op.drop_table(TABLE)
