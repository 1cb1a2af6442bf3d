"""Exclusivity conflict engine: matching, classification and the write workflow."""

from sponsordesk.services.conflicts.engine import ConflictEngine
from sponsordesk.services.conflicts.workflow import DetectionOutcome, detect_and_resolve

__all__ = ["ConflictEngine", "DetectionOutcome", "detect_and_resolve"]
