"""Filtering, ordering and summarising of review records.

Everything here is a pure function of its inputs, except :class:`ReviewRecordSet`,
which is the caller-held collection the workflow reconciles decisions into.
"""

import math
from typing import Dict, Iterable, List, Optional, Tuple

from invite_console.config import get_config_value
from invite_console.models import (
    STATUS_FILTER_ALL,
    ReviewFilter,
    ReviewPage,
    ReviewRecord,
    ReviewStatistics,
    ReviewStatus,
)


def _matches_search(record: ReviewRecord, needle: str) -> bool:
    invite = record.invite
    haystacks = (invite.inviter.email, invite.invitee_address, invite.invite_code)
    return any(needle in value.casefold() for value in haystacks if value)


def matches(record: ReviewRecord, review_filter: ReviewFilter) -> bool:
    """True when the record satisfies every predicate the filter sets."""
    if review_filter.status != STATUS_FILTER_ALL:
        if record.review_status.value != review_filter.status:
            return False

    score = record.invite.fraud_score
    if review_filter.fraud_score_min is not None and score < review_filter.fraud_score_min:
        return False
    if review_filter.fraud_score_max is not None and score > review_filter.fraud_score_max:
        return False

    if review_filter.date_from is not None and record.created_at < review_filter.date_from:
        return False
    if review_filter.date_to is not None and record.created_at > review_filter.date_to:
        return False

    if review_filter.search and review_filter.search.strip():
        if not _matches_search(record, review_filter.search.strip().casefold()):
            return False
    return True


def _id_key(review_id: str) -> Tuple[int, int, str]:
    # Numeric ids compare as numbers ("9" before "10") and sort ahead of other ids
    if review_id.isascii() and review_id.isdigit():
        return (0, int(review_id), review_id)
    return (1, 0, review_id)


def order_records(records: Iterable[ReviewRecord]) -> List[ReviewRecord]:
    """Newest first; equal creation times fall back to ascending id."""
    by_id = sorted(records, key=lambda record: _id_key(record.id))
    # sorted() is stable, so id order survives among equal timestamps
    return sorted(by_id, key=lambda record: record.created_at, reverse=True)


def select_reviews(
    records: Iterable[ReviewRecord], review_filter: Optional[ReviewFilter] = None
) -> List[ReviewRecord]:
    review_filter = review_filter or ReviewFilter()
    return order_records(r for r in records if matches(r, review_filter))


def page_count(total: int, limit: int) -> int:
    # An empty result still has one (empty) page
    return max(1, math.ceil(total / limit))


def paginate(records: List[ReviewRecord], page: int = 1, limit: int = 20) -> ReviewPage:
    if page < 1 or limit < 1:
        raise ValueError(f"page and limit must be positive (got page={page}, limit={limit})")
    total = len(records)
    start = (page - 1) * limit
    return ReviewPage(
        items=records[start : start + limit],
        total=total,
        page=page,
        limit=limit,
        total_pages=page_count(total, limit),
    )


def fraud_risk_level(
    score: float,
    high_threshold: Optional[float] = None,
    medium_threshold: Optional[float] = None,
) -> str:
    if high_threshold is None:
        high_threshold = get_config_value("reviews.high_risk_threshold", 0.7)
    if medium_threshold is None:
        medium_threshold = get_config_value("reviews.medium_risk_threshold", 0.4)
    if score >= high_threshold:
        return "high"
    if score >= medium_threshold:
        return "medium"
    return "low"


def summarize(records: Iterable[ReviewRecord]) -> ReviewStatistics:
    counts = {status: 0 for status in ReviewStatus}
    high_risk = 0
    for record in records:
        counts[record.review_status] += 1
        if fraud_risk_level(record.invite.fraud_score) == "high":
            high_risk += 1
    decided = counts[ReviewStatus.APPROVED] + counts[ReviewStatus.REJECTED]
    return ReviewStatistics(
        total_pending=counts[ReviewStatus.PENDING],
        total_approved=counts[ReviewStatus.APPROVED],
        total_rejected=counts[ReviewStatus.REJECTED],
        high_risk_count=high_risk,
        approval_rate=counts[ReviewStatus.APPROVED] / decided if decided else 0.0,
    )


class ReviewRecordSet:
    """Review records held by the caller, keyed by id."""

    def __init__(self, records: Optional[Iterable[ReviewRecord]] = None):
        self._records: Dict[str, ReviewRecord] = {}
        if records is not None:
            self.load(records)

    def load(self, records: Iterable[ReviewRecord]) -> None:
        self._records = {record.id: record for record in records}

    def replace(self, record: ReviewRecord) -> None:
        """Swap in the backend's copy of a record (adds it if unseen)."""
        self._records[record.id] = record

    def get(self, review_id: str) -> Optional[ReviewRecord]:
        return self._records.get(review_id)

    def records(self) -> List[ReviewRecord]:
        return list(self._records.values())

    def select(self, review_filter: Optional[ReviewFilter] = None) -> List[ReviewRecord]:
        return select_reviews(self._records.values(), review_filter)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, review_id: object) -> bool:
        return review_id in self._records
