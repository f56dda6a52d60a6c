"""Data models for the console."""

import datetime
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class AdminRole(str, Enum):
    MODERATOR = "moderator"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class InviteStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ReviewAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


STATUS_FILTER_ALL = "all"
STATUS_FILTER_VALUES = {STATUS_FILTER_ALL} | {s.value for s in ReviewStatus}


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime.datetime]:
    """Parse an ISO-8601 string, epoch seconds or datetime into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, datetime.date):
        parsed = datetime.datetime.combine(value, datetime.time())
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.datetime.fromisoformat(text)
    else:
        raise ValueError(f"Unsupported timestamp value: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed.astimezone(datetime.timezone.utc)


def _is_date_only(value: Any) -> bool:
    """True for a calendar day given without any time of day."""
    if isinstance(value, datetime.datetime):
        return False
    if isinstance(value, datetime.date):
        return True
    if isinstance(value, str):
        try:
            datetime.date.fromisoformat(value.strip())
        except ValueError:
            return False
        return True
    return False


def _format_timestamp(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _require(payload: Dict[str, Any], key: str, context: str) -> Any:
    if not isinstance(payload, dict) or payload.get(key) in (None, ""):
        raise ValueError(f"{context} is missing required field '{key}'")
    return payload[key]


@dataclass
class AdminProfile:
    """The authenticated moderator."""

    id: str
    email: str
    username: str
    role: AdminRole
    last_login_at: Optional[datetime.datetime] = None
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AdminProfile":
        email = _require(payload, "email", "Admin profile")
        return cls(
            id=str(_require(payload, "id", "Admin profile")),
            email=email,
            # Older backends omit username; the mailbox name stands in
            username=payload.get("username") or email.split("@")[0],
            role=AdminRole(_require(payload, "role", "Admin profile")),
            last_login_at=parse_timestamp(payload.get("last_login_at")),
            created_at=parse_timestamp(payload.get("created_at")),
            updated_at=parse_timestamp(payload.get("updated_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "role": self.role.value,
            "last_login_at": _format_timestamp(self.last_login_at),
            "created_at": _format_timestamp(self.created_at),
            "updated_at": _format_timestamp(self.updated_at),
        }


@dataclass
class Credential:
    """Access token, its absolute expiry and the admin it belongs to."""

    access_token: str
    token_type: str
    issued_at: datetime.datetime
    expires_at: datetime.datetime
    admin: AdminProfile

    @classmethod
    def from_login_response(
        cls, payload: Dict[str, Any], issued_at: datetime.datetime
    ) -> "Credential":
        """Build from a login/refresh body, fixing the relative expires_in to an absolute time."""
        expires_in = _require(payload, "expires_in", "Login response")
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
            raise ValueError(f"Login response has non-numeric expires_in: {expires_in!r}")
        return cls(
            access_token=_require(payload, "access_token", "Login response"),
            token_type=payload.get("token_type") or "bearer",
            issued_at=issued_at,
            expires_at=issued_at + datetime.timedelta(seconds=expires_in),
            admin=AdminProfile.from_dict(_require(payload, "admin", "Login response")),
        )

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Credential":
        return cls(
            access_token=_require(payload, "access_token", "Credential"),
            token_type=_require(payload, "token_type", "Credential"),
            issued_at=parse_timestamp(_require(payload, "issued_at", "Credential")),
            expires_at=parse_timestamp(_require(payload, "expires_at", "Credential")),
            admin=AdminProfile.from_dict(_require(payload, "admin", "Credential")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "admin": self.admin.to_dict(),
        }

    def is_valid(self, now: datetime.datetime) -> bool:
        # Expiry instant itself is already invalid
        return now < self.expires_at

    @property
    def authorization_header(self) -> str:
        scheme = "Bearer" if self.token_type.lower() == "bearer" else self.token_type
        return f"{scheme} {self.access_token}"


@dataclass
class UserSummary:
    """An end user appearing on an invite (inviter, invitee or reviewer)."""

    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Optional[Dict[str, Any]]) -> Optional["UserSummary"]:
        if not payload:
            return None
        return cls(
            id=str(payload.get("id", "")),
            email=payload.get("email"),
            display_name=payload.get("display_name") or payload.get("username"),
        )


@dataclass
class FraudIndicators:
    same_device: bool = False
    suspicious_timing: bool = False
    email_similarity: bool = False
    ip_similarity: bool = False

    @classmethod
    def from_dict(cls, payload: Optional[Dict[str, Any]]) -> "FraudIndicators":
        payload = payload or {}
        return cls(
            same_device=bool(payload.get("same_device", False)),
            suspicious_timing=bool(payload.get("suspicious_timing", False)),
            email_similarity=bool(payload.get("email_similarity", False)),
            ip_similarity=bool(payload.get("ip_similarity", False)),
        )

    def flagged(self) -> List[str]:
        return [name for name, value in vars(self).items() if value]


@dataclass
class Invite:
    id: str
    inviter: UserSummary
    invite_code: str
    status: InviteStatus
    fraud_score: float
    created_at: datetime.datetime
    invitee_email: Optional[str] = None
    invitee: Optional[UserSummary] = None
    used_at: Optional[datetime.datetime] = None
    rejected_at: Optional[datetime.datetime] = None
    rejection_reason: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Invite":
        if not isinstance(payload, dict):
            raise ValueError(f"Invite must be an object, got {type(payload).__name__}")
        fraud_score = float(payload.get("fraud_score", 0.0))
        if math.isnan(fraud_score) or not 0.0 <= fraud_score <= 1.0:
            raise ValueError(f"Invite fraud_score out of range: {fraud_score}")
        inviter = UserSummary.from_dict(payload.get("inviter")) or UserSummary(
            id=str(payload.get("inviter_id", ""))
        )
        return cls(
            id=str(_require(payload, "id", "Invite")),
            inviter=inviter,
            invite_code=_require(payload, "invite_code", "Invite"),
            status=InviteStatus(payload.get("status", InviteStatus.PENDING.value)),
            fraud_score=fraud_score,
            created_at=parse_timestamp(_require(payload, "created_at", "Invite")),
            invitee_email=payload.get("invitee_email"),
            invitee=UserSummary.from_dict(payload.get("invitee")),
            used_at=parse_timestamp(payload.get("used_at")),
            rejected_at=parse_timestamp(payload.get("rejected_at")),
            rejection_reason=payload.get("rejection_reason"),
        )

    @property
    def invitee_address(self) -> Optional[str]:
        if self.invitee and self.invitee.email:
            return self.invitee.email
        return self.invitee_email


@dataclass
class ReviewRecord:
    """A flagged invitation and its review state."""

    id: str
    invite: Invite
    review_status: ReviewStatus
    created_at: datetime.datetime
    fraud_indicators: FraudIndicators = field(default_factory=FraudIndicators)
    reviewer_id: Optional[str] = None
    reviewer: Optional[UserSummary] = None
    review_notes: Optional[str] = None
    reviewed_at: Optional[datetime.datetime] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ReviewRecord":
        if not isinstance(payload, dict):
            raise ValueError(f"Review must be an object, got {type(payload).__name__}")
        # The review endpoints call this field "status"; newer ones say "review_status"
        status = payload.get("review_status") or _require(payload, "status", "Review")
        invite = Invite.from_dict(_require(payload, "invite", "Review"))
        reviewer = UserSummary.from_dict(payload.get("reviewer"))
        return cls(
            id=str(_require(payload, "id", "Review")),
            invite=invite,
            review_status=ReviewStatus(status),
            created_at=parse_timestamp(payload.get("created_at")) or invite.created_at,
            fraud_indicators=FraudIndicators.from_dict(payload.get("fraud_indicators")),
            reviewer_id=payload.get("reviewer_id") or (reviewer.id if reviewer else None),
            reviewer=reviewer,
            review_notes=payload.get("review_notes"),
            reviewed_at=parse_timestamp(payload.get("reviewed_at")),
        )

    @property
    def is_pending(self) -> bool:
        return self.review_status == ReviewStatus.PENDING


@dataclass(frozen=True)
class ReviewFilter:
    """Criteria narrowing the displayed review records."""

    status: str = ReviewStatus.PENDING.value
    fraud_score_min: Optional[float] = None
    fraud_score_max: Optional[float] = None
    date_from: Optional[datetime.datetime] = None
    date_to: Optional[datetime.datetime] = None
    search: Optional[str] = None

    def __post_init__(self):
        if self.status not in STATUS_FILTER_VALUES:
            raise ValueError(
                f"Unknown review status filter '{self.status}', expected one of {sorted(STATUS_FILTER_VALUES)}"
            )
        for name in ("date_from", "date_to"):
            value = getattr(self, name)
            if value is None:
                continue
            parsed = parse_timestamp(value)
            if name == "date_to" and _is_date_only(value):
                # A bare day as the upper bound includes all of that day
                parsed += datetime.timedelta(days=1, microseconds=-1)
            object.__setattr__(self, name, parsed)

    @classmethod
    def from_query(
        cls,
        params: Dict[str, Any],
        high_risk_threshold: float = 0.7,
        medium_risk_threshold: float = 0.4,
    ) -> "ReviewFilter":
        """Build a filter from query-string style parameters.

        Besides the plain fields, ``fraud_score=high|medium|low`` selects a risk band.
        """
        score_min = params.get("fraud_score_min")
        score_max = params.get("fraud_score_max")
        band = params.get("fraud_score")
        if band == "high":
            score_min = high_risk_threshold
        elif band == "medium":
            score_min = medium_risk_threshold
            score_max = math.nextafter(high_risk_threshold, 0.0)
        elif band == "low":
            score_max = math.nextafter(medium_risk_threshold, 0.0)
        elif band not in (None, "", "all"):
            raise ValueError(f"Unknown fraud_score band '{band}'")
        return cls(
            status=params.get("status") or ReviewStatus.PENDING.value,
            fraud_score_min=float(score_min) if score_min not in (None, "") else None,
            fraud_score_max=float(score_max) if score_max not in (None, "") else None,
            date_from=params.get("date_from") or None,
            date_to=params.get("date_to") or None,
            search=params.get("search") or None,
        )

    def to_query_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"status": self.status}
        if self.fraud_score_min is not None:
            params["fraud_score_min"] = self.fraud_score_min
        if self.fraud_score_max is not None:
            params["fraud_score_max"] = self.fraud_score_max
        if self.date_from is not None:
            params["date_from"] = self.date_from.isoformat()
        if self.date_to is not None:
            params["date_to"] = self.date_to.isoformat()
        if self.search and self.search.strip():
            params["search"] = self.search.strip()
        return params


@dataclass
class ReviewPage:
    items: List[ReviewRecord]
    total: int
    page: int
    limit: int
    total_pages: int


@dataclass
class ReviewStatistics:
    total_pending: int
    total_approved: int
    total_rejected: int
    high_risk_count: int
    approval_rate: float


@dataclass
class DashboardStats:
    pending_reviews: int = 0
    approved_today: int = 0
    rejected_today: int = 0
    total_users: int = 0
    total_invites: int = 0
    fraud_rate: float = 0.0
    approval_rate: float = 0.0

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "DashboardStats":
        return cls(
            pending_reviews=int(payload.get("pending_reviews", 0)),
            approved_today=int(payload.get("approved_today", 0)),
            rejected_today=int(payload.get("rejected_today", 0)),
            total_users=int(payload.get("total_users", 0)),
            total_invites=int(payload.get("total_invites", 0)),
            fraud_rate=float(payload.get("fraud_rate", 0.0)),
            approval_rate=float(payload.get("approval_rate", 0.0)),
        )
