"""Credential-gated access to the review endpoints."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from invite_console.api_client import AdminApiClient
from invite_console.config import get_config_value
from invite_console.errors import ServerError
from invite_console.models import (
    DashboardStats,
    ReviewAction,
    ReviewFilter,
    ReviewPage,
    ReviewRecord,
)
from invite_console.review_query import page_count, paginate, select_reviews
from invite_console.session import SessionManager


class ReviewService:
    """Every call first asks the session for a valid credential."""

    def __init__(self, session: SessionManager, client: AdminApiClient):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.session = session
        self.client = client

    def _record(self, payload: Any) -> ReviewRecord:
        if not isinstance(payload, dict):
            self.logger.error(
                f"Malformed review record from backend: expected an object, got {type(payload).__name__}"
            )
            raise ServerError(
                None, f"Malformed review record: expected an object, got {type(payload).__name__}"
            )
        try:
            record = ReviewRecord.from_dict(payload)
        except (ValueError, TypeError, KeyError) as e:
            self.logger.error(f"Malformed review record from backend: {str(e)}")
            raise ServerError(None, f"Malformed review record: {str(e)}") from e

        # Decided records carry their reviewer and decision time; pending ones carry neither
        decided_fields = (record.reviewed_at, record.reviewer_id)
        if not record.is_pending and None in decided_fields:
            self.logger.warning(
                f"Review {record.id} is {record.review_status.value} but has no reviewer or reviewed_at."
            )
        elif record.is_pending and any(value is not None for value in decided_fields):
            self.logger.warning(
                f"Review {record.id} is pending but already carries reviewer or reviewed_at."
            )
        return record

    async def list_reviews(
        self,
        review_filter: Optional[ReviewFilter] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> ReviewPage:
        """Fetch one page, filtered by the backend and re-checked locally."""
        review_filter = review_filter or ReviewFilter()
        limit = limit or get_config_value("reviews.page_size", 20)
        params: Dict[str, Any] = {
            "page": page,
            "limit": limit,
            "sort_by": "created_at",
            "sort_order": "desc",
        }
        params.update(review_filter.to_query_params())

        credential = await self.session.ensure_valid()
        payload = await asyncio.to_thread(self.client.list_reviews, credential, params)
        if isinstance(payload, list):
            # Unpaginated backends answer with the full matching list
            self.logger.debug(f"Backend returned {len(payload)} reviews unpaginated; paging locally.")
            items = select_reviews([self._record(item) for item in payload], review_filter)
            return paginate(items, page=page, limit=limit)
        if not isinstance(payload, dict):
            raise ServerError(None, "Review list response is not an object")

        raw_items = payload.get("data", payload.get("items")) or []
        items = select_reviews([self._record(item) for item in raw_items], review_filter)
        if len(items) != len(raw_items):
            self.logger.warning(
                f"Backend returned {len(raw_items) - len(items)} reviews outside filter {review_filter}; dropped them."
            )
        total = int(payload.get("total", len(items)))
        page_limit = int(payload.get("limit", limit))
        total_pages = payload.get("total_pages")
        if total_pages is None:
            total_pages = page_count(total, page_limit)
        return ReviewPage(
            items=items,
            total=total,
            page=int(payload.get("page", page)),
            limit=page_limit,
            total_pages=int(total_pages),
        )

    async def get_review(self, review_id: str) -> ReviewRecord:
        credential = await self.session.ensure_valid()
        payload = await asyncio.to_thread(self.client.get_review, credential, review_id)
        return self._record(payload)

    async def submit_decision(
        self,
        review_id: str,
        action: ReviewAction,
        notes: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> ReviewRecord:
        credential = await self.session.ensure_valid()
        payload = await asyncio.to_thread(
            self.client.decide_review,
            credential,
            review_id,
            ReviewAction(action).value,
            notes,
            reason,
        )
        return self._record(payload)

    async def batch_decide(
        self,
        review_ids: List[str],
        action: ReviewAction,
        notes: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Dict[str, int]:
        """Decide several reviews in one call; returns success/failed counts."""
        if not review_ids:
            return {"success": 0, "failed": 0}
        credential = await self.session.ensure_valid()
        payload = await asyncio.to_thread(
            self.client.batch_decide,
            credential,
            review_ids,
            ReviewAction(action).value,
            notes,
            reason,
        )
        payload = payload or {}
        return {
            "success": int(payload.get("success", 0)),
            "failed": int(payload.get("failed", 0)),
        }

    async def dashboard_stats(self) -> DashboardStats:
        credential = await self.session.ensure_valid()
        payload = await asyncio.to_thread(self.client.get_dashboard_stats, credential)
        return DashboardStats.from_dict(payload or {})
