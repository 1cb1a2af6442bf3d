from sponsordesk.models.conflict import Conflict, ConflictSeverity, ConflictType
from sponsordesk.models.deal import Brand, Deal, Deliverable
from sponsordesk.models.exclusivity import ExclusivityRule, ExclusivityScope, Platform, Region
from sponsordesk.models.idempotency import IdempotencyKey

__all__ = [
    "Brand",
    "Conflict",
    "ConflictSeverity",
    "ConflictType",
    "Deal",
    "Deliverable",
    "ExclusivityRule",
    "ExclusivityScope",
    "IdempotencyKey",
    "Platform",
    "Region",
]
