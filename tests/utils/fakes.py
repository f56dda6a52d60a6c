"""
In-process stand-in for the admin backend client.
"""
import threading
from collections import Counter
from typing import Any, Dict, Optional

from invite_console.errors import ApiError, ConflictError

from tests.utils.factories import AdminFactory, LoginResponseFactory


class FakeAdminBackend:
    """Mimics AdminApiClient's blocking methods and counts every call.

    Put an exception in ``errors[name]`` to make a method raise, and use
    :meth:`hold` to keep a call in flight until the test releases it.
    """

    def __init__(self):
        self.calls: Counter = Counter()
        self.last_args: Dict[str, Any] = {}
        self.login_result = LoginResponseFactory.create()
        self.refresh_result = LoginResponseFactory.create(token="t2")
        self.me_result = AdminFactory.create(username="mod-renamed")
        self.reviews: Dict[str, dict] = {}
        self.decision_results: Dict[str, Optional[dict]] = {}
        self.errors: Dict[str, Exception] = {}
        self.gates: Dict[str, threading.Event] = {}
        self.started: Dict[str, threading.Event] = {}

    def hold(self, name: str) -> threading.Event:
        """Block ``name`` until the returned event is set."""
        self.gates[name] = threading.Event()
        self.started[name] = threading.Event()
        return self.gates[name]

    def _enter(self, name: str, *args) -> None:
        self.calls[name] += 1
        self.last_args[name] = args
        if name in self.started:
            self.started[name].set()
        if name in self.gates:
            self.gates[name].wait(timeout=5)
        if name in self.errors:
            raise self.errors[name]

    def login(self, email, password):
        self._enter("login", email, password)
        return self.login_result

    def refresh(self, credential):
        self._enter("refresh", credential)
        return self.refresh_result

    def logout(self, credential):
        self._enter("logout", credential)

    def get_current_admin(self, credential):
        self._enter("get_current_admin", credential)
        return self.me_result

    def list_reviews(self, credential, params):
        self._enter("list_reviews", credential, params)
        items = list(self.reviews.values())
        return {"data": items, "total": len(items), "page": params.get("page", 1), "limit": params.get("limit", 20)}

    def get_review(self, credential, review_id):
        self._enter("get_review", credential, review_id)
        if review_id not in self.reviews:
            raise ApiError(404, "Review not found")
        return self.reviews[review_id]

    def decide_review(self, credential, review_id, action, notes=None, reason=None):
        self._enter("decide_review", credential, review_id, action, notes, reason)
        if review_id not in self.decision_results:
            raise ConflictError(409, "no scripted decision")
        return self.decision_results[review_id]

    def batch_decide(self, credential, review_ids, action, notes=None, reason=None):
        self._enter("batch_decide", credential, review_ids, action, notes, reason)
        return {"success": len(review_ids) - 1, "failed": 1}

    def get_dashboard_stats(self, credential):
        self._enter("get_dashboard_stats", credential)
        return {"pending_reviews": 4, "approved_today": 2, "rejected_today": 1, "fraud_rate": 0.12, "approval_rate": 0.66}
