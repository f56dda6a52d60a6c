"""Review state machine for the record currently on screen."""

import logging
from enum import Enum
from typing import Optional

from invite_console.config import get_config_value
from invite_console.errors import (
    ApiError,
    ConflictError,
    ConsoleError,
    InvalidTransitionError,
    NetworkError,
)
from invite_console.models import ReviewAction, ReviewRecord
from invite_console.review_query import ReviewRecordSet
from invite_console.review_service import ReviewService


class WorkflowState(str, Enum):
    LISTING = "listing"
    VIEWING = "viewing"
    SUBMITTING = "submitting"


class ReviewWorkflowController:
    """Selects one review at a time and applies approve/reject decisions to it.

    The backend is the authority on a decision's outcome: the controller adopts
    the record it returns and never edits a record locally. ``record_set`` is the
    caller's list state; successful decisions are written back into it.
    """

    def __init__(
        self,
        reviews: ReviewService,
        record_set: Optional[ReviewRecordSet] = None,
        require_reject_reason: Optional[bool] = None,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.reviews = reviews
        self.record_set = record_set
        if require_reject_reason is None:
            require_reject_reason = get_config_value("reviews.require_reject_reason", True)
        self.require_reject_reason = require_reject_reason
        self._state = WorkflowState.LISTING
        self._selected: Optional[ReviewRecord] = None
        self._pending_action: Optional[ReviewAction] = None
        # Incremented on every selection change so late responses can tell
        self._selection_token = 0

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def selected(self) -> Optional[ReviewRecord]:
        return self._selected

    @property
    def pending_action(self) -> Optional[ReviewAction]:
        return self._pending_action

    def select(self, record: ReviewRecord) -> None:
        if self._state == WorkflowState.SUBMITTING:
            raise InvalidTransitionError(
                f"Cannot open review {record.id} while a decision on {self._selected.id} is being submitted"
            )
        self._selection_token += 1
        self._selected = record
        self._state = WorkflowState.VIEWING
        self.logger.debug(f"Viewing review {record.id}")

    def back(self) -> None:
        """Return to the list. An in-flight decision keeps running."""
        if self._state == WorkflowState.SUBMITTING:
            self.logger.debug(
                f"Left review {self._selected.id} while its decision is still in flight"
            )
        self._selection_token += 1
        self._selected = None
        self._pending_action = None
        self._state = WorkflowState.LISTING

    def _still_selected(self, token: int) -> bool:
        return token == self._selection_token

    def _check_decision(
        self, record: ReviewRecord, action: ReviewAction, reason: Optional[str]
    ) -> None:
        if not record.is_pending:
            self.logger.error(
                f"Refusing to {action.value} review {record.id}: already {record.review_status.value}"
            )
            raise InvalidTransitionError(
                f"Review {record.id} is already {record.review_status.value}"
            )
        if self._state != WorkflowState.VIEWING or self._selected is None:
            self.logger.error(
                f"Refusing to {action.value} review {record.id}: controller is {self._state.value}"
            )
            raise InvalidTransitionError(
                f"Review {record.id} must be open before it can be decided"
            )
        if self._selected.id != record.id:
            self.logger.error(
                f"Refusing to {action.value} review {record.id}: review {self._selected.id} is open"
            )
            raise InvalidTransitionError(f"Review {record.id} is not the open review")
        if (
            action == ReviewAction.REJECT
            and self.require_reject_reason
            and not (reason and reason.strip())
        ):
            raise InvalidTransitionError("A reason is required to reject a review")

    async def decide(
        self,
        record: ReviewRecord,
        action: ReviewAction,
        notes: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> ReviewRecord:
        """Submit a decision for the open review and adopt the backend's result."""
        action = ReviewAction(action)
        self._check_decision(record, action, reason)

        token = self._selection_token
        self._state = WorkflowState.SUBMITTING
        self._pending_action = action
        try:
            updated = await self.reviews.submit_decision(record.id, action, notes, reason)
        except ConflictError as e:
            self.logger.warning(
                f"Review {record.id} was decided elsewhere before our '{action.value}' landed"
            )
            latest = await self._fetch_latest(record.id)
            e.latest = latest
            self._restore(token, latest or record)
            raise
        except NetworkError:
            self._restore(token, record)
            raise
        except ApiError as e:
            self._restore(token, record)
            raise NetworkError(str(e)) from e
        except BaseException:
            # Session failures and cancellation leave the record as it was
            self._restore(token, record)
            raise

        if self.record_set is not None:
            self.record_set.replace(updated)
        self.logger.info(
            f"Review {updated.id} is now {updated.review_status.value} (requested '{action.value}')"
        )
        self._restore(token, updated)
        return updated

    def _restore(self, token: int, record: ReviewRecord) -> None:
        """Go back to viewing ``record`` unless the user has moved on."""
        if not self._still_selected(token):
            self.logger.debug(
                f"Decision response for review {record.id} arrived after the selection changed"
            )
            return
        self._selected = record
        self._pending_action = None
        self._state = WorkflowState.VIEWING

    async def _fetch_latest(self, review_id: str) -> Optional[ReviewRecord]:
        try:
            return await self.reviews.get_review(review_id)
        except ConsoleError as e:
            self.logger.warning(
                f"Could not reload review {review_id} after conflict: {str(e)}"
            )
            return None
