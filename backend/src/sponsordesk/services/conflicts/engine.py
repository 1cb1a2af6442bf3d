"""ConflictEngine: runs one candidate against a set of exclusivity rules."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from datetime import UTC, datetime

from sponsordesk.models.conflict import Conflict
from sponsordesk.models.exclusivity import ExclusivityRule
from sponsordesk.schemas.conflicts import CandidateAsset
from sponsordesk.services.conflicts.classifier import classify
from sponsordesk.services.conflicts.dimensions import overlaps

logger = logging.getLogger(__name__)


class ConflictEngine:
    """Pure detection pass: no session access, no persistence.

    Every rule is scanned in memory. Rule counts per account are small; a
    larger deployment would push category prefix, date range and platform
    filters into an indexed query instead.
    """

    def __init__(self, grace_days: int = 0) -> None:
        self.grace_days = grace_days

    def detect(
        self,
        candidate: CandidateAsset,
        rules: Sequence[ExclusivityRule],
        *,
        correlation_id: str | None = None,
    ) -> list[Conflict]:
        if candidate.scheduled_at is None:
            logger.debug("Candidate %s has no schedule, skipping detection", candidate.id)
            return []

        start = time.perf_counter()
        detected_at = datetime.now(UTC)
        facts = [
            overlaps(
                rule,
                candidate,
                correlation_id=correlation_id,
                detected_at=detected_at,
                grace_days=self.grace_days,
            )
            for rule in rules
        ]
        conflicts = classify(candidate, facts)

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "Exclusivity scan for %s: %d rules, %d conflicts in %dms",
            candidate.id,
            len(rules),
            len(conflicts),
            elapsed_ms,
        )
        return conflicts
