"""
Factories for backend payloads and model objects used in tests.
"""
import datetime
from typing import Optional

from invite_console.models import Credential, ReviewRecord

NOW = datetime.datetime(2025, 3, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)


class AdminFactory:
    """Admin profile payloads as the auth endpoints return them."""

    @classmethod
    def create(cls, role: str = "moderator", **kwargs) -> dict:
        return {
            "id": kwargs.get("id", "1"),
            "email": kwargs.get("email", "mod@x.com"),
            "username": kwargs.get("username", "mod"),
            "role": role,
            "last_login_at": kwargs.get("last_login_at", "2025-02-28T09:00:00Z"),
            "created_at": "2024-01-01T00:00:00Z",
            "updated_at": "2024-01-01T00:00:00Z",
        }


class LoginResponseFactory:
    @classmethod
    def create(cls, token: str = "t1", expires_in: int = 3600, **admin_kwargs) -> dict:
        return {
            "access_token": token,
            "token_type": "bearer",
            "expires_in": expires_in,
            "admin": AdminFactory.create(**admin_kwargs),
        }


class CredentialFactory:
    @classmethod
    def create(
        cls,
        token: str = "t1",
        issued_at: Optional[datetime.datetime] = None,
        expires_in: int = 3600,
    ) -> Credential:
        return Credential.from_login_response(
            LoginResponseFactory.create(token=token, expires_in=expires_in),
            issued_at=issued_at or NOW,
        )


class ReviewFactory:
    """Review record payloads in the backend's wire shape."""

    _counter = 0

    @classmethod
    def payload(
        cls,
        id: Optional[str] = None,
        status: str = "pending",
        created_at: Optional[datetime.datetime] = None,
        fraud_score: float = 0.5,
        inviter_email: Optional[str] = None,
        invitee_email: Optional[str] = None,
        invite_code: Optional[str] = None,
        **kwargs,
    ) -> dict:
        cls._counter += 1
        n = cls._counter
        created = created_at or NOW - datetime.timedelta(hours=n)
        payload = {
            "id": id or f"review-{n}",
            "invite_id": f"invite-{n}",
            "invite": {
                "id": f"invite-{n}",
                "inviter_id": f"user-{n}",
                "inviter": {"id": f"user-{n}", "email": inviter_email or f"inviter{n}@test.com"},
                "invitee_email": invitee_email or f"invitee{n}@test.com",
                "invite_code": invite_code or f"CODE{n:04d}",
                "status": "pending",
                "fraud_score": fraud_score,
                "created_at": created.isoformat(),
            },
            "status": status,
            "created_at": created.isoformat(),
            "fraud_indicators": {
                "same_device": kwargs.get("same_device", False),
                "suspicious_timing": kwargs.get("suspicious_timing", False),
                "email_similarity": False,
                "ip_similarity": False,
            },
        }
        if status != "pending":
            payload["reviewer_id"] = "1"
            payload["reviewer"] = {"id": "1", "email": "mod@x.com"}
            payload["reviewed_at"] = NOW.isoformat()
        return payload

    @classmethod
    def create(cls, **kwargs) -> ReviewRecord:
        return ReviewRecord.from_dict(cls.payload(**kwargs))

    @classmethod
    def decided(cls, record_payload: dict, status: str, notes: Optional[str] = None) -> dict:
        """The backend's answer after a decision on ``record_payload``."""
        decided = dict(record_payload)
        decided["status"] = status
        decided["reviewer_id"] = "1"
        decided["reviewer"] = {"id": "1", "email": "mod@x.com"}
        decided["reviewed_at"] = (NOW + datetime.timedelta(minutes=5)).isoformat()
        decided["review_notes"] = notes
        return decided
