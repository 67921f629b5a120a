"""Database-level enumerations for offer sessions."""

import enum


class SessionStatus(str, enum.Enum):
    """Lifecycle states for a visitor's funnel session.

    Transitions:
        started -> in_progress   (first successful advance)
        started | in_progress -> completed     (submit or end reached)
        started | in_progress -> disqualified  (disqualify rule fired)
        started | in_progress -> abandoned     (idle reaper or explicit abandon)

    Terminal states have no transitions out.
    """

    STARTED = "started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    DISQUALIFIED = "disqualified"

    @classmethod
    def active(cls) -> tuple["SessionStatus", ...]:
        return (cls.STARTED, cls.IN_PROGRESS)

    @classmethod
    def terminal(cls) -> tuple["SessionStatus", ...]:
        return (cls.COMPLETED, cls.ABANDONED, cls.DISQUALIFIED)


class LeadStatus(str, enum.Enum):
    """Review state of a captured lead."""

    NEW = "new"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
