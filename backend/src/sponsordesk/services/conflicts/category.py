"""Category hierarchy matching for exclusivity rules.

Categories are slash-delimited paths such as ``Tech/Smartphones``. A rule
with ``EXACT_CATEGORY`` scope protects only its own path; ``PARENT_CATEGORY``
also protects every descendant. Comparison is case-sensitive.
"""

from __future__ import annotations

import re

from sponsordesk.models.exclusivity import ExclusivityScope
from sponsordesk.schemas.conflicts import CategoryRelationship

SEPARATOR = "/"

_REPEATED_SEP_RE = re.compile(r"/{2,}")


def normalize_category(path: str | None) -> str | None:
    """Trim whitespace and redundant separators, returning None for empty paths."""
    if path is None:
        return None
    normalized = _REPEATED_SEP_RE.sub(SEPARATOR, path.strip()).strip(SEPARATOR)
    return normalized or None


def relationship(rule_path: str | None, candidate_path: str | None) -> CategoryRelationship | None:
    """Return how *candidate_path* relates to *rule_path*, or None if unrelated.

    Only descendants are considered; an ancestor of the rule path is unrelated.
    """
    rule = normalize_category(rule_path)
    candidate = normalize_category(candidate_path)
    if rule is None or candidate is None:
        return None
    if candidate == rule:
        return CategoryRelationship.EXACT
    if candidate.startswith(rule + SEPARATOR):
        return CategoryRelationship.DESCENDANT
    return None


def matches(rule_scope: ExclusivityScope, rule_path: str | None, candidate_path: str | None) -> bool:
    """Decide whether a candidate category falls inside a rule's protected scope."""
    rel = relationship(rule_path, candidate_path)
    if rel is None:
        return False
    if rule_scope == ExclusivityScope.EXACT_CATEGORY:
        return rel == CategoryRelationship.EXACT
    return True
