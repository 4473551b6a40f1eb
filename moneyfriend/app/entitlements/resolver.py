"""Pure subscription status resolution.

Every premium check in the application must go through :func:`has_pro_access`
(or :func:`resolve`) so the precedence rules live in exactly one place.
Nothing in this module performs I/O or reads global state other than the
clock, and the clock can always be supplied explicitly.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Mapping, Optional, Union

from pydantic import ValidationError

from .models import (
    Moment,
    SubscriptionLabel,
    SubscriptionStatus,
    SubscriptionType,
    SubscriptionVerdict,
    UserSubscriptionProfile,
)

logger = logging.getLogger(__name__)

ProfileInput = Union[UserSubscriptionProfile, Mapping[str, object], None]

_LABELS = {
    SubscriptionStatus.ADMIN: SubscriptionLabel(text="Admin", style="badge-admin", icon="crown"),
    SubscriptionStatus.PRO: SubscriptionLabel(text="Pro", style="badge-pro", icon="crown"),
    SubscriptionStatus.TRIAL: SubscriptionLabel(text="Trial Pro", style="badge-trial", icon="sparkles"),
    SubscriptionStatus.FREE: SubscriptionLabel(text="Free", style="badge-free"),
}


def coerce_profile(profile: ProfileInput) -> Optional[UserSubscriptionProfile]:
    """Accept a model, a raw row mapping or ``None``.

    Rows that fail validation are treated like a missing profile.
    """

    if profile is None or isinstance(profile, UserSubscriptionProfile):
        return profile
    try:
        return UserSubscriptionProfile.model_validate(dict(profile))
    except ValidationError as exc:
        logger.warning("Ignoring malformed subscription profile: %s", exc.errors()[:1])
        return None


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def local_date(value: Moment, tz: Optional[tzinfo] = None) -> date:
    """Return the calendar day of ``value`` in the local zone.

    Naive datetimes are already local wall-clock times. Aware datetimes are
    converted to ``tz`` or, when omitted, to the system zone.
    """

    if not isinstance(value, datetime):
        return value
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(tz).date()


def local_date_key(now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> str:
    """``YYYY-MM-DD`` for the local day of ``now``."""

    return local_date(_now(now), tz).isoformat()


def add_local_days(value: Moment, days: int) -> Moment:
    """Shift by whole calendar days, keeping the wall-clock time."""

    return value + timedelta(days=days)


def days_remaining(
    end: Optional[Moment],
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> Optional[int]:
    """Whole local calendar days from today until ``end``, never negative."""

    if end is None:
        return None
    delta = local_date(end, tz) - local_date(_now(now), tz)
    return max(0, delta.days)


def is_pro_user(profile: ProfileInput) -> bool:
    """``True`` only for paid tiers; trials and admins are not counted."""

    resolved = coerce_profile(profile)
    return bool(resolved and resolved.is_paid)


def resolve(
    profile: ProfileInput,
    now: Optional[datetime] = None,
    *,
    tz: Optional[tzinfo] = None,
) -> SubscriptionVerdict:
    """Map a profile snapshot and an instant to a :class:`SubscriptionVerdict`.

    Rules, first match wins:

    1. ``is_admin`` -> admin
    2. ``pro_6m``/``pro_12m`` -> pro (not day limited)
    3. ``trial`` with days left -> trial
    4. ``trial`` without days left -> free
    5. any other type with a future ``trial_end`` -> trial (older rows never
       had ``subscription_type = "trial"``)
    6. free
    """

    current = _now(now)
    resolved = coerce_profile(profile)

    if resolved is None:
        return SubscriptionVerdict(status=SubscriptionStatus.FREE, resolved_at=current)

    if resolved.is_admin:
        return SubscriptionVerdict(status=SubscriptionStatus.ADMIN, is_active=True, resolved_at=current)

    if resolved.is_paid:
        return SubscriptionVerdict(
            status=SubscriptionStatus.PRO,
            is_pro=True,
            is_active=True,
            days_remaining=None,
            resolved_at=current,
        )

    remaining = days_remaining(resolved.trial_end, current, tz)
    trial_running = remaining is not None and remaining > 0

    # An explicit "trial" row is authoritative even when trial_end lingers.
    if resolved.subscription_type == SubscriptionType.TRIAL.value:
        status = SubscriptionStatus.TRIAL if trial_running else SubscriptionStatus.FREE
    elif trial_running:
        status = SubscriptionStatus.TRIAL
    else:
        status = SubscriptionStatus.FREE

    return SubscriptionVerdict(
        status=status,
        is_active=status == SubscriptionStatus.TRIAL,
        days_remaining=remaining,
        resolved_at=current,
    )


def has_pro_access(
    profile: ProfileInput,
    now: Optional[datetime] = None,
    *,
    tz: Optional[tzinfo] = None,
) -> bool:
    """Single predicate for premium gating: admin, pro or running trial."""

    return resolve(profile, now, tz=tz).has_pro_access


def subscription_label(
    subject: Union[ProfileInput, SubscriptionVerdict],
    now: Optional[datetime] = None,
) -> SubscriptionLabel:
    """Display label for a profile or an already resolved verdict."""

    verdict = subject if isinstance(subject, SubscriptionVerdict) else resolve(subject, now)
    return _LABELS[verdict.status]
