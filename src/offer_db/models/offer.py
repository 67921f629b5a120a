"""OfferStep ORM model — one row per step of an offer.

Step definitions are edited in the offer builder (or imported with
``offer-seed``) and read by the engine on every transition.  Options,
conditional logic and validation rules are stored as JSONB in the same
camelCase shape the builder produces.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Index, Integer, String, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from offer_db.models.base import Base


class OfferStep(Base):
    """One question of an offer, identified by (offer_id, step_id)."""

    __tablename__ = "offer_steps"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    offer_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    step_id: Mapped[str] = mapped_column(Text, nullable=False)
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # [{"value": ..., "label": ..., "nextStep": 3 | "submit" | "end"}]
    options: Mapped[list] = mapped_column(
        JSONB, nullable=False, server_default=text("'[]'::jsonb")
    )
    # {"showIf": [...], "hideIf": [...], "disqualifyIf": [...], "operator": "AND", ...}
    conditional_logic: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )
    validation: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )

    # Lead form field this step's answer is exported to
    field_mapping: Mapped[str | None] = mapped_column(Text, nullable=True)
    placeholder: Mapped[str | None] = mapped_column(Text, nullable=True)
    help_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("offer_id", "step_id", name="uq_offer_step"),
        CheckConstraint("step_order >= 0", name="ck_step_order_non_negative"),
        Index("ix_offer_step_order", "offer_id", "step_order"),
    )

    def __repr__(self) -> str:
        return (
            f"<OfferStep(offer={self.offer_id!r}, step={self.step_id!r}, "
            f"order={self.step_order}, type={self.type!r})>"
        )
