"""Lead ORM model — the record handed to the advertiser on submit."""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import CheckConstraint, Float, Index, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from offer_db.models.base import Base
from offer_db.models.enums import LeadStatus


class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    offer_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    session_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    # {field_mapping: answer}
    form_data: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )
    quality_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tracking: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LeadStatus.NEW.value
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint(
            "quality_score BETWEEN 0 AND 1",
            name="ck_quality_score_range",
        ),
        Index("ix_lead_offer_created", "offer_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Lead(id={self.id!s}, offer={self.offer_id!r}, "
            f"score={self.quality_score:.2f}, status={self.status!r})>"
        )
