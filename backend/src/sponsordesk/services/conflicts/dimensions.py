"""Platform, time-window, category and region intersection checks.

``overlaps()`` evaluates one rule against one candidate and returns the
structured facts describing the match, or None as soon as any dimension
fails to intersect.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, timedelta

from sponsordesk.models.exclusivity import ExclusivityRule, Region
from sponsordesk.schemas.conflicts import (
    CandidateAsset,
    CategoryFacts,
    OverlapFacts,
    PlatformFacts,
    RegionFacts,
    WindowContainment,
    WindowFacts,
)
from sponsordesk.services.conflicts.category import matches, normalize_category, relationship

logger = logging.getLogger(__name__)


def to_optional_datetime(value: datetime | date | str | None) -> datetime | None:
    """Coerce a scheduled value to an aware datetime, returning None when unusable.

    Values without an offset are read as UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Ignoring unparseable scheduled_at %r", value)
        return None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def scheduled_on(value: datetime) -> date:
    """Calendar day of a scheduled timestamp; aware values are read in UTC."""
    if value.tzinfo is not None:
        return value.astimezone(UTC).date()
    return value.date()


def containment_for(day: date, start: date, end: date, grace_days: int = 0) -> WindowContainment:
    """Classify a day already inside ``[start, end]`` as interior or on the edge."""
    margin = timedelta(days=grace_days)
    if day <= start + margin or day >= end - margin:
        return WindowContainment.BOUNDARY
    return WindowContainment.INTERIOR


def _region_covered(rule_regions: list[str], candidate_region: Region | None) -> bool:
    # No region on the candidate never disqualifies a match
    if candidate_region is None:
        return True
    if candidate_region == Region.GLOBAL or Region.GLOBAL in rule_regions:
        return True
    return candidate_region in rule_regions


def overlaps(
    rule: ExclusivityRule,
    candidate: CandidateAsset,
    *,
    correlation_id: str | None = None,
    detected_at: datetime | None = None,
    grace_days: int = 0,
) -> OverlapFacts | None:
    """Return the overlap facts between *rule* and *candidate*, or None."""
    if candidate.scheduled_at is None:
        return None

    rule_platforms = list(dict.fromkeys(str(p) for p in rule.platforms))
    if candidate.platform not in rule_platforms:
        return None

    day = scheduled_on(candidate.scheduled_at)
    if day < rule.start_date or day > rule.end_date:
        return None

    if not matches(rule.scope, rule.category_path, candidate.category):
        return None
    rel = relationship(rule.category_path, candidate.category)

    rule_regions = [str(r) for r in rule.regions]
    if not _region_covered(rule_regions, candidate.region):
        return None

    return OverlapFacts(
        rule_id=rule.id,
        category=CategoryFacts(
            candidate=normalize_category(candidate.category) or "",
            rule=normalize_category(rule.category_path) or "",
            scope=rule.scope,
            relationship=rel,  # type: ignore[arg-type]
        ),
        window=WindowFacts(
            scheduled_on=day,
            start_date=rule.start_date,
            end_date=rule.end_date,
            containment=containment_for(day, rule.start_date, rule.end_date, grace_days),
        ),
        platforms=PlatformFacts(
            candidate=candidate.platform,
            rule=rule_platforms,
            matched=[candidate.platform],
        ),
        regions=RegionFacts(
            candidate=candidate.region,
            rule=rule_regions,
            restricted=candidate.region is not None,
        ),
        correlation_id=correlation_id,
        detected_at=detected_at or datetime.now(UTC),
    )
