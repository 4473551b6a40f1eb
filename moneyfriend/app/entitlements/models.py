"""Domain models for subscription profiles and resolved verdicts."""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

logger = logging.getLogger(__name__)


class SubscriptionType(str, Enum):
    """Known values of ``profiles.subscription_type``."""

    FREE = "free"
    TRIAL = "trial"
    PRO_6M = "pro_6m"
    PRO_12M = "pro_12m"


PAID_SUBSCRIPTION_TYPES = frozenset({SubscriptionType.PRO_6M.value, SubscriptionType.PRO_12M.value})


class SubscriptionStatus(str, Enum):
    """Resolved access tier for a user at a point in time."""

    ADMIN = "admin"
    PRO = "pro"
    TRIAL = "trial"
    FREE = "free"


PRO_ACCESS_STATUSES = frozenset({SubscriptionStatus.ADMIN, SubscriptionStatus.PRO, SubscriptionStatus.TRIAL})


Moment = Union[datetime, date]


def _coerce_moment(value: object) -> Optional[Moment]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    raise TypeError(f"Unsupported date value: {value!r}")


class UserSubscriptionProfile(BaseModel):
    """Read-only snapshot of the subscription columns of a user profile.

    ``subscription_type`` is kept as a plain string so that values outside of
    :class:`SubscriptionType` (older rows, manual edits) still load and fall
    through to the legacy ``trial_end`` check.
    """

    subscription_type: Optional[str] = None
    trial_start: Optional[Moment] = None
    trial_end: Optional[Moment] = None
    is_admin: bool = False

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("subscription_type", mode="before")
    @classmethod
    def _normalize_type(cls, value: object) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, SubscriptionType):
            return value.value
        text = str(value).strip().lower()
        return text or None

    @field_validator("trial_start", "trial_end", mode="before")
    @classmethod
    def _parse_moment(cls, value: object, info: ValidationInfo) -> Optional[Moment]:
        # An unreadable date only disables the trial rules; admin and paid
        # checks never look at it.
        try:
            return _coerce_moment(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring unparseable %s value %r", info.field_name, value)
            return None

    @field_validator("is_admin", mode="before")
    @classmethod
    def _null_admin(cls, value: object) -> object:
        return False if value is None else value

    @property
    def is_paid(self) -> bool:
        return self.subscription_type in PAID_SUBSCRIPTION_TYPES


class SubscriptionVerdict(BaseModel):
    """Resolved subscription state for a single instant."""

    status: SubscriptionStatus
    is_pro: bool = False
    is_active: bool = False
    days_remaining: Optional[int] = Field(default=None, ge=0)
    resolved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    is_loading: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def has_pro_access(self) -> bool:
        return self.status in PRO_ACCESS_STATUSES

    @classmethod
    def loading(cls, resolved_at: Optional[datetime] = None) -> "SubscriptionVerdict":
        """Placeholder returned while no profile has been resolved yet."""

        return cls(
            status=SubscriptionStatus.FREE,
            resolved_at=resolved_at or datetime.now(timezone.utc),
            is_loading=True,
        )


class SubscriptionLabel(BaseModel):
    """Display label for a subscription status."""

    text: str
    style: str
    icon: Optional[str] = None

    model_config = ConfigDict(frozen=True)
