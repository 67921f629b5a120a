"""SqlFunnelStorage — ``FunnelStorage`` backed by PostgreSQL.

This is the only module that translates between ORM rows and the SDK's
pydantic models; the repository itself knows nothing about the SDK.

One instance wraps one ``AsyncSession`` (one request / one transaction).
Sessions are loaded with ``SELECT ... FOR UPDATE`` so concurrent
transitions on the same session from different workers are serialized by
the database until the request's transaction commits.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from offer_db.models.enums import SessionStatus
from offer_db.models.offer import OfferStep
from offer_db.models.session import OfferSession
from offer_db.repository import FunnelRepository
from offer_funnel.interfaces import FunnelStorage
from offer_funnel.models.session import FunnelSession
from offer_funnel.models.step import Step

logger = logging.getLogger(__name__)


def step_to_row(step: Step) -> dict[str, Any]:
    """Column values for an ``offer_steps`` row (builder camelCase in JSONB)."""
    return {
        "step_id": step.id,
        "step_order": step.order,
        "type": step.type,
        "question": step.question,
        "options": [o.model_dump(by_alias=True, exclude_none=True) for o in step.options],
        "conditional_logic": step.conditional_logic.model_dump(by_alias=True, exclude_none=True),
        "validation": step.validation.model_dump(by_alias=True, exclude_none=True),
        "field_mapping": step.field_mapping,
        "placeholder": step.placeholder,
        "help_text": step.help_text,
    }


def row_to_step(row: OfferStep) -> Step:
    return Step.model_validate({
        "id": row.step_id,
        "order": row.step_order,
        "type": row.type,
        "question": row.question,
        "options": row.options or [],
        "conditionalLogic": row.conditional_logic or {},
        "validation": row.validation or {},
        "fieldMapping": row.field_mapping,
        "placeholder": row.placeholder,
        "helpText": row.help_text,
    })


def row_to_session(row: OfferSession) -> FunnelSession:
    return FunnelSession(
        session_id=row.session_id,
        offer_id=row.offer_id,
        status=SessionStatus(row.status),
        current_step_order=row.current_step_order,
        answers=dict(row.answers or {}),
        history=list(row.history or []),
        step_timings=dict(row.step_timings or {}),
        tracking=dict(row.tracking or {}),
        completion=row.completion,
        redirect_url=row.redirect_url,
        lead_id=row.lead_id,
        started_at=row.started_at,
        step_started_at=row.step_started_at,
        last_activity_at=row.last_activity_at,
        completed_at=row.completed_at,
    )


def session_to_values(session: FunnelSession) -> dict[str, Any]:
    """Column values for an ``offer_sessions`` row (everything but session_id)."""
    return {
        "offer_id": session.offer_id,
        "status": session.status.value,
        "current_step_order": session.current_step_order,
        # Fresh containers so SQLAlchemy detects JSONB mutations
        "answers": dict(session.answers),
        "history": list(session.history),
        "step_timings": dict(session.step_timings),
        "tracking": dict(session.tracking),
        "completion": session.completion,
        "redirect_url": session.redirect_url,
        "lead_id": session.lead_id,
        "started_at": session.started_at,
        "step_started_at": session.step_started_at,
        "last_activity_at": session.last_activity_at,
        "completed_at": session.completed_at,
    }


class SqlFunnelStorage(FunnelStorage):
    """FunnelStorage over a caller-owned ``AsyncSession``.

    Args:
        db: session whose transaction the caller commits or rolls back
        repo: repository instance (a fresh ``FunnelRepository`` by default)
    """

    def __init__(self, db: AsyncSession, repo: FunnelRepository | None = None) -> None:
        self._db = db
        self._repo = repo or FunnelRepository()

    async def load_steps(self, offer_id: str) -> list[Step]:
        rows = await self._repo.list_steps(self._db, offer_id)
        return [row_to_step(row) for row in rows]

    async def load_session(self, session_id: str) -> FunnelSession | None:
        row = await self._repo.get_session(self._db, session_id, for_update=True)
        if row is None:
            return None
        return row_to_session(row)

    async def save_session(self, session: FunnelSession) -> None:
        await self._repo.upsert_session(
            self._db, session.session_id, session_to_values(session)
        )

    async def append_response(
        self,
        session_id: str,
        step_id: str,
        value: Any,
        time_spent_seconds: int,
    ) -> None:
        await self._repo.add_response(
            self._db,
            session_id=session_id,
            step_id=step_id,
            value=value,
            time_spent_seconds=time_spent_seconds,
        )

    async def create_lead(self, form_data: dict[str, Any], metadata: dict[str, Any]) -> str:
        lead = await self._repo.create_lead(
            self._db,
            offer_id=metadata["offer_id"],
            session_id=metadata["session_id"],
            form_data=form_data,
            quality_score=metadata.get("quality_score", 0.0),
            tracking=metadata.get("tracking"),
        )
        logger.debug("Lead %s stored for session %s", lead.id, metadata["session_id"])
        return str(lead.id)
