"""Turns overlap facts into exclusivity ``Conflict`` rows.

Severity is a pure function of the rule scope, the category relationship and
where the scheduled day sits in the rule window, so it can be tested without
a session.
"""

from __future__ import annotations

from collections.abc import Iterable

from sponsordesk.models.conflict import Conflict, ConflictSeverity, ConflictType
from sponsordesk.models.exclusivity import ExclusivityScope, Platform
from sponsordesk.schemas.conflicts import (
    CandidateAsset,
    CategoryRelationship,
    OverlapFacts,
    WindowContainment,
)


def severity_for(
    scope: ExclusivityScope,
    relationship: CategoryRelationship,
    containment: WindowContainment,
) -> ConflictSeverity:
    """BLOCK only for an EXACT_CATEGORY rule hit strictly inside its window.

    PARENT_CATEGORY matches are WARN even on the rule's own path.
    """
    if (
        scope == ExclusivityScope.EXACT_CATEGORY
        and relationship == CategoryRelationship.EXACT
        and containment == WindowContainment.INTERIOR
    ):
        return ConflictSeverity.BLOCK
    return ConflictSeverity.WARN


def suggested_resolutions(facts: OverlapFacts) -> list[str]:
    """Build ordered remediation hints from the match facts."""
    window = facts.window
    suggestions = [
        f"Move scheduled date outside {window.start_date.isoformat()}–{window.end_date.isoformat()}."
    ]

    uncovered = [p.value for p in Platform if p.value not in facts.platforms.rule]
    if uncovered:
        suggestions.append(
            "Choose a platform not covered by the existing rule "
            f"({', '.join(uncovered)})."
        )

    if facts.category.relationship == CategoryRelationship.DESCENDANT:
        suggestions.append(
            f"Recategorize the deliverable outside the protected category '{facts.category.rule}'."
        )

    suggestions.append(f"Contact brand to request an exclusivity waiver for rule {facts.rule_id}.")
    return suggestions


def classify(candidate: CandidateAsset, overlaps: Iterable[OverlapFacts | None]) -> list[Conflict]:
    """One EXCLUSIVITY conflict per overlap; rules are never merged."""
    conflicts: list[Conflict] = []
    for facts in overlaps:
        if facts is None:
            continue
        conflicts.append(
            Conflict(
                type=ConflictType.EXCLUSIVITY,
                severity=severity_for(
                    facts.category.scope,
                    facts.category.relationship,
                    facts.window.containment,
                ),
                new_deal_or_deliverable_id=candidate.id,
                conflicting_rule_id=facts.rule_id,
                overlap=facts.model_dump_json(),
                suggested_resolutions=suggested_resolutions(facts),
                auto_resolved=False,
                correlation_id=facts.correlation_id,
                detected_at=facts.detected_at,
            )
        )
    return conflicts
