"""OfferSession and OfferResponse ORM models.

``offer_sessions`` holds one row per visitor traversal.  Answers, the
visited-step stack and per-step timings live in JSONB columns so the engine
can load a whole session with a single row fetch.

``offer_responses`` is an append-only log: every accepted answer becomes a
row, including answers given again after a "Back".
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from offer_db.models.base import Base
from offer_db.models.enums import SessionStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OfferSession(Base):
    """One row per visitor session on an offer."""

    __tablename__ = "offer_sessions"

    # --- Primary key ---
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # --- Identity ---
    # Public identifier handed to the browser
    session_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    offer_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    # --- Lifecycle ---
    status: Mapped[str] = mapped_column(
        # Store as the lowercase string value, not the Python name
        String(20),
        nullable=False,
        default=SessionStatus.STARTED.value,
        index=True,
    )
    current_step_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # "submit" or "end" once completed
    completion: Mapped[str | None] = mapped_column(String(10), nullable=True)
    redirect_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    lead_id: Mapped[str | None] = mapped_column(Text, nullable=True)

    # --- Traversal state ---
    # {step_id: answer}
    answers: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )
    # Visited step orders, oldest first
    history: Mapped[list[int]] = mapped_column(
        JSONB, nullable=False, server_default=text("'[]'::jsonb")
    )
    # {step_id: seconds}
    step_timings: Mapped[dict[str, int]] = mapped_column(
        JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )
    # utm_* / referrer / click ids captured at session start
    tracking: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )

    # --- Timestamps ---
    started_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )
    step_started_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )
    last_activity_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint("current_step_order >= 0", name="ck_session_order_non_negative"),
        # Completed sessions record how they ended
        CheckConstraint(
            "status != 'completed' OR completion IS NOT NULL",
            name="ck_completed_has_completion",
        ),
        # A submitted session must point at its lead
        CheckConstraint(
            "completion IS DISTINCT FROM 'submit' OR lead_id IS NOT NULL",
            name="ck_submit_has_lead",
        ),
        CheckConstraint(
            "status != 'disqualified' OR redirect_url IS NOT NULL",
            name="ck_disqualified_has_redirect",
        ),
        # Partial index for the idle-session reaper
        Index(
            "ix_active_last_activity",
            "last_activity_at",
            postgresql_where=text("status IN ('started', 'in_progress')"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<OfferSession(session={self.session_id!r}, offer={self.offer_id!r}, "
            f"status={self.status!r}, order={self.current_step_order})>"
        )


class OfferResponse(Base):
    """One accepted answer to one step."""

    __tablename__ = "offer_responses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    session_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("offer_sessions.session_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    step_id: Mapped[str] = mapped_column(Text, nullable=False)
    # Wrapped as {"value": ...} so scalars and lists share one JSONB shape
    value: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    answered_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        CheckConstraint("time_spent_seconds >= 0", name="ck_time_spent_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<OfferResponse(session={self.session_id!r}, step={self.step_id!r})>"
