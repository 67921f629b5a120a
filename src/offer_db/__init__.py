"""offer_db — PostgreSQL persistence layer for offer funnels.

This package provides the ORM models, async engine factory, and repository
for offer steps, visitor sessions, the response log and leads.  It is
consumed by the FastAPI server and the maintenance CLIs.

``offer_db.storage.SqlFunnelStorage`` (the SDK's storage adapter) is not
re-exported here because it imports the SDK, which itself depends on
``offer_db.models.enums``.
"""

from offer_db.engine import dispose_engine, get_engine, get_session_factory, session_scope
from offer_db.models.enums import LeadStatus, SessionStatus
from offer_db.models.lead import Lead
from offer_db.models.offer import OfferStep
from offer_db.models.session import OfferResponse, OfferSession
from offer_db.repository import FunnelRepository

__all__ = [
    "FunnelRepository",
    "Lead",
    "LeadStatus",
    "OfferResponse",
    "OfferSession",
    "OfferStep",
    "SessionStatus",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "session_scope",
]
