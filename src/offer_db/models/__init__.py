"""ORM models for offer_db."""

from offer_db.models.base import Base
from offer_db.models.enums import LeadStatus, SessionStatus
from offer_db.models.lead import Lead
from offer_db.models.offer import OfferStep
from offer_db.models.session import OfferResponse, OfferSession

__all__ = [
    "Base",
    "LeadStatus",
    "SessionStatus",
    "Lead",
    "OfferResponse",
    "OfferSession",
    "OfferStep",
]
