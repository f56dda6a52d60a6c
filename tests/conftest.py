"""
Shared pytest fixtures.
"""
import datetime

import pytest

from invite_console.credential_store import CredentialStore
from invite_console.review_query import ReviewRecordSet
from invite_console.review_service import ReviewService
from invite_console.session import SessionManager
from invite_console.workflow import ReviewWorkflowController

from tests.utils.factories import NOW, CredentialFactory
from tests.utils.fakes import FakeAdminBackend


class FakeClock:
    """Settable clock handed to the session manager."""

    def __init__(self, now: datetime.datetime = NOW):
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += datetime.timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "console.db")


@pytest.fixture
def store(db_path) -> CredentialStore:
    return CredentialStore(db_path, slot="test_session")


@pytest.fixture
def backend() -> FakeAdminBackend:
    return FakeAdminBackend()


@pytest.fixture
def session(store, backend, clock) -> SessionManager:
    return SessionManager(store, backend, clock=clock)


@pytest.fixture
def logged_in(store, session) -> SessionManager:
    """Session holding a credential valid for an hour from NOW."""
    store.set(CredentialFactory.create())
    return session


@pytest.fixture
def review_service(logged_in, backend) -> ReviewService:
    return ReviewService(logged_in, backend)


@pytest.fixture
def record_set() -> ReviewRecordSet:
    return ReviewRecordSet()


@pytest.fixture
def workflow(review_service, record_set) -> ReviewWorkflowController:
    return ReviewWorkflowController(
        review_service, record_set=record_set, require_reject_reason=True
    )
