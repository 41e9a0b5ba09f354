"""Weekly timesheet headers, grid entries and audit log

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates weekly_timesheets (one live header per user and week, rejected
headers kept as history), timesheet_entries (one row per project/task/
description with seven day-slots) and timesheet_audit_log.
"""

from alembic import op

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def _day_columns() -> str:
    cols = []
    for day in WEEKDAYS:
        cols.append(
            f"  {day}_hours NUMERIC(4,2) CHECK ({day}_hours IS NULL OR ({day}_hours >= 0 AND {day}_hours <= 24)),\n"
            f"  {day}_start_time VARCHAR(5) NOT NULL DEFAULT '09:00',\n"
            f"  {day}_end_time VARCHAR(5) NOT NULL DEFAULT '09:00',"
        )
    return "\n".join(cols)


def upgrade():
    # ── Headers ──
    op.execute("""
        CREATE TABLE IF NOT EXISTS weekly_timesheets (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          org_id UUID,
          user_id UUID NOT NULL,
          week_start_date DATE NOT NULL,
          status VARCHAR(20) NOT NULL DEFAULT 'draft'
            CONSTRAINT ck_weekly_timesheets_status
            CHECK (status IN ('draft', 'submitted', 'approved', 'rejected')),
          submitted_at TIMESTAMPTZ,
          reviewed_by UUID,
          reviewed_at TIMESTAMPTZ,
          review_comment TEXT DEFAULT '',
          recycled_from_id UUID REFERENCES weekly_timesheets(id),
          created_at TIMESTAMPTZ DEFAULT now(),
          updated_at TIMESTAMPTZ DEFAULT now()
        );
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_weekly_timesheets_live_week
          ON weekly_timesheets(user_id, week_start_date)
          WHERE status <> 'rejected';
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_weekly_timesheets_user_id ON weekly_timesheets(user_id);")
    op.execute("CREATE INDEX IF NOT EXISTS ix_weekly_timesheets_org_id ON weekly_timesheets(org_id);")

    # ── Entries ──
    op.execute(f"""
        CREATE TABLE IF NOT EXISTS timesheet_entries (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          timesheet_id UUID NOT NULL REFERENCES weekly_timesheets(id) ON DELETE CASCADE,
          row_order INTEGER NOT NULL DEFAULT 0,
          project_id UUID NOT NULL,
          task_id UUID,
          description TEXT NOT NULL DEFAULT '',
{_day_columns()}
          created_at TIMESTAMPTZ DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_timesheet_entries_timesheet_id ON timesheet_entries(timesheet_id);")

    # ── Audit ──
    op.execute("""
        CREATE TABLE IF NOT EXISTS timesheet_audit_log (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          org_id UUID,
          user_id UUID NOT NULL,
          action VARCHAR(100) NOT NULL,
          resource_type VARCHAR(100) NOT NULL,
          resource_id VARCHAR(255),
          details JSONB DEFAULT '{}'::jsonb,
          created_at TIMESTAMPTZ DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_timesheet_audit_log_org_id ON timesheet_audit_log(org_id);")
    op.execute("CREATE INDEX IF NOT EXISTS ix_timesheet_audit_log_resource_id ON timesheet_audit_log(resource_id);")


def downgrade():
    op.execute("DROP TABLE IF EXISTS timesheet_audit_log;")
    op.execute("DROP TABLE IF EXISTS timesheet_entries;")
    op.execute("DROP TABLE IF EXISTS weekly_timesheets;")
