"""Async CRUD repository for offer steps, sessions, responses and leads.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries (the API commits once per request, the CLIs once
per run).  Methods ``flush()`` but never ``commit()``.

The repository deliberately avoids business-logic validation — that belongs
in the SDK layer.  It *does* enforce structural invariants (e.g. a submitted
session must point at its lead) via DB constraints.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from offer_db.models.enums import SessionStatus
from offer_db.models.lead import Lead
from offer_db.models.offer import OfferStep
from offer_db.models.session import OfferResponse, OfferSession

_ACTIVE = [s.value for s in SessionStatus.active()]


class FunnelRepository:
    """Async read/write operations on the offer funnel tables."""

    # ------------------------------------------------------------------
    # Offer steps
    # ------------------------------------------------------------------

    async def list_steps(self, db: AsyncSession, offer_id: str) -> list[OfferStep]:
        """Return an offer's steps ordered by ``step_order``."""
        stmt = (
            select(OfferStep)
            .where(OfferStep.offer_id == offer_id)
            .order_by(OfferStep.step_order, OfferStep.step_id)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def replace_steps(
        self,
        db: AsyncSession,
        offer_id: str,
        rows: Iterable[dict[str, Any]],
    ) -> list[OfferStep]:
        """Replace every step of ``offer_id`` with ``rows``.

        Each row is a dict of OfferStep column values (without ``offer_id``).
        Existing sessions keep working: steps are matched by order at
        runtime, not by primary key.
        """
        await db.execute(delete(OfferStep).where(OfferStep.offer_id == offer_id))
        steps = [OfferStep(offer_id=offer_id, **row) for row in rows]
        db.add_all(steps)
        await db.flush()
        return steps

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def get_session(
        self,
        db: AsyncSession,
        session_id: str,
        *,
        for_update: bool = False,
    ) -> OfferSession | None:
        """Fetch a session by its public ``session_id``.

        With ``for_update=True`` the row is locked until the transaction
        ends, serializing concurrent transitions across workers.
        """
        stmt = select(OfferSession).where(OfferSession.session_id == session_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_session(
        self, db: AsyncSession, session_id: str, values: dict[str, Any]
    ) -> OfferSession:
        """Insert the session if new, otherwise overwrite the given columns.

        The caller must ``await db.commit()`` to persist.
        """
        row = await self.get_session(db, session_id)
        if row is None:
            row = OfferSession(session_id=session_id, **values)
            db.add(row)
        else:
            for key, value in values.items():
                setattr(row, key, value)
        await db.flush()  # Populate server-side defaults (id, timestamps)
        return row

    async def abandon_idle_sessions(
        self,
        db: AsyncSession,
        idle_minutes: int,
        *,
        now: datetime | None = None,
    ) -> int:
        """Mark active sessions idle for longer than ``idle_minutes`` as abandoned.

        Returns the number of sessions updated.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(minutes=idle_minutes)
        stmt = (
            update(OfferSession)
            .where(
                OfferSession.status.in_(_ACTIVE),
                OfferSession.last_activity_at < cutoff,
            )
            .values(status=SessionStatus.ABANDONED.value)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    async def add_response(
        self,
        db: AsyncSession,
        *,
        session_id: str,
        step_id: str,
        value: Any,
        time_spent_seconds: int,
    ) -> OfferResponse:
        """Append one answer to the response log."""
        response = OfferResponse(
            session_id=session_id,
            step_id=step_id,
            value={"value": value},
            time_spent_seconds=time_spent_seconds,
        )
        db.add(response)
        await db.flush()
        return response

    # ------------------------------------------------------------------
    # Leads
    # ------------------------------------------------------------------

    async def create_lead(
        self,
        db: AsyncSession,
        *,
        offer_id: str,
        session_id: str,
        form_data: dict[str, Any],
        quality_score: float,
        tracking: dict[str, Any] | None = None,
    ) -> Lead:
        """Insert a lead row and return it (``id`` populated by flush)."""
        lead = Lead(
            offer_id=offer_id,
            session_id=session_id,
            form_data=form_data,
            quality_score=quality_score,
            tracking=tracking or {},
        )
        db.add(lead)
        await db.flush()
        return lead
