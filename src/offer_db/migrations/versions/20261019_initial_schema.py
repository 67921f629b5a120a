"""Initial schema: offer steps, sessions, response log and leads.

Creates:
  - ``offer_steps``      step definitions, unique per (offer_id, step_id)
  - ``offer_sessions``   one row per visitor traversal (JSONB answers/history)
  - ``offer_responses``  append-only answer log, cascades with its session
  - ``leads``            submitted form data with quality score

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None

_EMPTY_OBJECT = sa.text("'{}'::jsonb")
_EMPTY_ARRAY = sa.text("'[]'::jsonb")


def upgrade() -> None:
    # --- offer_steps ---
    op.create_table(
        "offer_steps",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("offer_id", sa.Text(), nullable=False),
        sa.Column("step_id", sa.Text(), nullable=False),
        sa.Column("step_order", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("options", JSONB(), nullable=False, server_default=_EMPTY_ARRAY),
        sa.Column("conditional_logic", JSONB(), nullable=False, server_default=_EMPTY_OBJECT),
        sa.Column("validation", JSONB(), nullable=False, server_default=_EMPTY_OBJECT),
        sa.Column("field_mapping", sa.Text(), nullable=True),
        sa.Column("placeholder", sa.Text(), nullable=True),
        sa.Column("help_text", sa.Text(), nullable=True),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint("offer_id", "step_id", name="uq_offer_step"),
        sa.CheckConstraint("step_order >= 0", name="ck_step_order_non_negative"),
    )
    op.create_index("ix_offer_steps_offer_id", "offer_steps", ["offer_id"])
    op.create_index("ix_offer_step_order", "offer_steps", ["offer_id", "step_order"])

    # --- offer_sessions ---
    op.create_table(
        "offer_sessions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", sa.Text(), nullable=False, unique=True),
        sa.Column("offer_id", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("current_step_order", sa.Integer(), nullable=False),
        sa.Column("completion", sa.String(10), nullable=True),
        sa.Column("redirect_url", sa.Text(), nullable=True),
        sa.Column("lead_id", sa.Text(), nullable=True),
        sa.Column("answers", JSONB(), nullable=False, server_default=_EMPTY_OBJECT),
        sa.Column("history", JSONB(), nullable=False, server_default=_EMPTY_ARRAY),
        sa.Column("step_timings", JSONB(), nullable=False, server_default=_EMPTY_OBJECT),
        sa.Column("tracking", JSONB(), nullable=False, server_default=_EMPTY_OBJECT),
        sa.Column("started_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("step_started_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("last_activity_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("completed_at", TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint("current_step_order >= 0", name="ck_session_order_non_negative"),
        sa.CheckConstraint(
            "status != 'completed' OR completion IS NOT NULL",
            name="ck_completed_has_completion",
        ),
        sa.CheckConstraint(
            "completion IS DISTINCT FROM 'submit' OR lead_id IS NOT NULL",
            name="ck_submit_has_lead",
        ),
        sa.CheckConstraint(
            "status != 'disqualified' OR redirect_url IS NOT NULL",
            name="ck_disqualified_has_redirect",
        ),
    )
    op.create_index("ix_offer_sessions_offer_id", "offer_sessions", ["offer_id"])
    op.create_index("ix_offer_sessions_status", "offer_sessions", ["status"])
    # Partial index for the idle-session reaper
    op.create_index(
        "ix_active_last_activity",
        "offer_sessions",
        ["last_activity_at"],
        postgresql_where=sa.text("status IN ('started', 'in_progress')"),
    )

    # --- offer_responses ---
    op.create_table(
        "offer_responses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id",
            sa.Text(),
            sa.ForeignKey("offer_sessions.session_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("step_id", sa.Text(), nullable=False),
        sa.Column("value", JSONB(), nullable=False),
        sa.Column("time_spent_seconds", sa.Integer(), nullable=False),
        sa.Column("answered_at", TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint("time_spent_seconds >= 0", name="ck_time_spent_non_negative"),
    )
    op.create_index("ix_offer_responses_session_id", "offer_responses", ["session_id"])

    # --- leads ---
    op.create_table(
        "leads",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("offer_id", sa.Text(), nullable=False),
        sa.Column("session_id", sa.Text(), nullable=False, unique=True),
        sa.Column("form_data", JSONB(), nullable=False, server_default=_EMPTY_OBJECT),
        sa.Column("quality_score", sa.Float(), nullable=False),
        sa.Column("tracking", JSONB(), nullable=False, server_default=_EMPTY_OBJECT),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint("quality_score BETWEEN 0 AND 1", name="ck_quality_score_range"),
    )
    op.create_index("ix_leads_offer_id", "leads", ["offer_id"])
    op.create_index("ix_lead_offer_created", "leads", ["offer_id", "created_at"])


def downgrade() -> None:
    op.drop_table("leads")
    op.drop_table("offer_responses")
    op.drop_table("offer_sessions")
    op.drop_table("offer_steps")
