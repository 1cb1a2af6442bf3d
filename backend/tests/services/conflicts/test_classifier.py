"""Unit tests for severity policy and conflict classification."""

import json
import uuid
from datetime import UTC, date, datetime

import pytest

from sponsordesk.models.conflict import ConflictSeverity, ConflictType
from sponsordesk.models.exclusivity import ExclusivityScope
from sponsordesk.schemas.conflicts import (
    CandidateAsset,
    CategoryFacts,
    CategoryRelationship,
    OverlapFacts,
    PlatformFacts,
    RegionFacts,
    WindowContainment,
    WindowFacts,
)
from sponsordesk.services.conflicts.classifier import classify, severity_for, suggested_resolutions


def _facts(
    *,
    relationship=CategoryRelationship.EXACT,
    containment=WindowContainment.INTERIOR,
    rule_platforms=("INSTAGRAM",),
) -> OverlapFacts:
    return OverlapFacts(
        rule_id=uuid.uuid4(),
        category=CategoryFacts(
            candidate="Tech/Smartphones",
            rule="Tech/Smartphones" if relationship == CategoryRelationship.EXACT else "Tech",
            scope=(
                ExclusivityScope.EXACT_CATEGORY
                if relationship == CategoryRelationship.EXACT
                else ExclusivityScope.PARENT_CATEGORY
            ),
            relationship=relationship,
        ),
        window=WindowFacts(
            scheduled_on=date(2025, 1, 15),
            start_date=date(2025, 1, 1),
            end_date=date(2025, 1, 31),
            containment=containment,
        ),
        platforms=PlatformFacts(
            candidate="INSTAGRAM", rule=list(rule_platforms), matched=["INSTAGRAM"]
        ),
        regions=RegionFacts(candidate=None, rule=["GLOBAL"], restricted=False),
        correlation_id="session-1",
        detected_at=datetime(2025, 1, 10, tzinfo=UTC),
    )


EXACT = ExclusivityScope.EXACT_CATEGORY
PARENT = ExclusivityScope.PARENT_CATEGORY


def _candidate() -> CandidateAsset:
    return CandidateAsset(
        id=uuid.uuid4(),
        deal_id=uuid.uuid4(),
        category="Tech/Smartphones",
        platform="INSTAGRAM",
        scheduled_at=datetime(2025, 1, 15),
    )


class TestSeverityFor:
    @pytest.mark.parametrize(
        ("scope", "relationship", "containment", "expected"),
        [
            (EXACT, CategoryRelationship.EXACT, WindowContainment.INTERIOR, ConflictSeverity.BLOCK),
            (EXACT, CategoryRelationship.EXACT, WindowContainment.BOUNDARY, ConflictSeverity.WARN),
            (PARENT, CategoryRelationship.EXACT, WindowContainment.INTERIOR, ConflictSeverity.WARN),
            (PARENT, CategoryRelationship.EXACT, WindowContainment.BOUNDARY, ConflictSeverity.WARN),
            (PARENT, CategoryRelationship.DESCENDANT, WindowContainment.INTERIOR, ConflictSeverity.WARN),
            (PARENT, CategoryRelationship.DESCENDANT, WindowContainment.BOUNDARY, ConflictSeverity.WARN),
        ],
    )
    def test_policy_table(self, scope, relationship, containment, expected):
        assert severity_for(scope, relationship, containment) == expected


class TestSuggestedResolutions:
    def test_mentions_window_and_waiver(self):
        facts = _facts()
        suggestions = suggested_resolutions(facts)
        assert suggestions[0] == "Move scheduled date outside 2025-01-01–2025-01-31."
        assert suggestions[-1].endswith(f"waiver for rule {facts.rule_id}.")

    def test_lists_uncovered_platforms(self):
        suggestions = suggested_resolutions(_facts())
        assert any("YOUTUBE, TIKTOK" in s for s in suggestions)

    def test_skips_platform_hint_when_rule_covers_all(self):
        facts = _facts(rule_platforms=("INSTAGRAM", "YOUTUBE", "TIKTOK"))
        assert not any("platform" in s for s in suggested_resolutions(facts))

    def test_descendant_adds_recategorize_hint(self):
        facts = _facts(relationship=CategoryRelationship.DESCENDANT)
        assert any("Recategorize" in s and "'Tech'" in s for s in suggested_resolutions(facts))


class TestClassify:
    def test_one_conflict_per_overlap(self):
        candidate = _candidate()
        first, second = _facts(), _facts()
        conflicts = classify(candidate, [first, None, second])

        assert len(conflicts) == 2
        assert [c.conflicting_rule_id for c in conflicts] == [first.rule_id, second.rule_id]
        for conflict in conflicts:
            assert conflict.type == ConflictType.EXCLUSIVITY
            assert conflict.new_deal_or_deliverable_id == candidate.id
            assert conflict.auto_resolved is False
            assert conflict.correlation_id == "session-1"

    def test_overlap_payload_is_versioned_json(self):
        facts = _facts()
        (conflict,) = classify(_candidate(), [facts])
        payload = json.loads(conflict.overlap)
        assert payload["version"] == 1
        assert payload["rule_id"] == str(facts.rule_id)
        assert payload["window"]["start_date"] == "2025-01-01"

    def test_no_overlaps_no_conflicts(self):
        assert classify(_candidate(), []) == []
