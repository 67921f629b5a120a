"""Abstract storage interface consumed by the funnel engine.

The engine never talks to a database directly.  It is handed a
``FunnelStorage`` implementation and calls it only at transition
boundaries (session creation, advance, retreat, abandon).

Typical integration flow::

    engine = FunnelEngine()                         # one per process
    storage: FunnelStorage = SqlFunnelStorage(db)   # one per request

    info = await engine.create_session(
        storage, offer_id="solar-quote", tracking={"utm_source": "fb"},
    )
    result = await engine.advance(storage, session_id=info.session_id, answer="yes")
    # result.decision.kind in {"step", "submit", "end", "disqualified"}

Errors raised by implementations propagate to the engine's caller
unchanged; retry policy belongs to the implementation or its caller.
"""

from abc import ABC, abstractmethod
from typing import Any

from offer_funnel.models.session import FunnelSession
from offer_funnel.models.step import Step


class FunnelStorage(ABC):
    """Persistence contract for offers, sessions, responses and leads."""

    @abstractmethod
    async def load_steps(self, offer_id: str) -> list[Step]:
        """Return every step of ``offer_id`` (any order; empty if unknown)."""
        ...

    @abstractmethod
    async def load_session(self, session_id: str) -> FunnelSession | None:
        """Return the session, or None if it does not exist."""
        ...

    @abstractmethod
    async def save_session(self, session: FunnelSession) -> None:
        """Insert or update ``session``."""
        ...

    @abstractmethod
    async def append_response(
        self,
        session_id: str,
        step_id: str,
        value: Any,
        time_spent_seconds: int,
    ) -> None:
        """Record one answer as an immutable response row.

        Answers given again after a "Back" are appended, not overwritten,
        so the response log keeps the visitor's full history.
        """
        ...

    @abstractmethod
    async def create_lead(self, form_data: dict[str, Any], metadata: dict[str, Any]) -> str:
        """Create a lead from exported form data and return its id.

        Parameters
        ----------
        form_data:
            ``{field_mapping: answer}`` built by
            :func:`offer_funnel.export.build_form_data`.
        metadata:
            ``offer_id``, ``session_id``, ``quality_score`` and
            ``tracking`` (utm parameters, referrer, click ids).
        """
        ...
