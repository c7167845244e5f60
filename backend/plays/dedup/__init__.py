"""Play deduplication engine: candidate discovery, grouping, leading selection, exclusion state."""

from plays.dedup.exclusions import ExclusionWriter, exclusion_reason
from plays.dedup.grouping import group_duplicates, is_duplicate_pair
from plays.dedup.leading import detail_score, select_leading
from plays.dedup.service import DeduplicationService
from plays.dedup.types import BucketKey, DuplicateGroup, LeadingDecision, SyncReport

__all__ = [
    "BucketKey",
    "DeduplicationService",
    "DuplicateGroup",
    "ExclusionWriter",
    "LeadingDecision",
    "SyncReport",
    "detail_score",
    "exclusion_reason",
    "group_duplicates",
    "is_duplicate_pair",
    "select_leading",
]
