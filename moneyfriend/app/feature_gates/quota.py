"""Per-day usage quotas for free users.

The counter read-modify-write is not atomic; two callers racing on the same
key can both be granted the last slot. The quota is a soft limiter for one
device, not a security boundary.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Callable, Optional, Union

from fastapi import status

from ..cache import CacheStorageError, TTLCache
from ..entitlements import FeatureKey, get_feature_display_name, local_date_key, resolve
from ..entitlements.resolver import ProfileInput
from .exceptions import FeatureGateError

logger = logging.getLogger("entitlements.quota")

DEFAULT_COUNTER_TTL_HOURS = 36

FeatureName = Union[FeatureKey, str]


class GateReason(str, Enum):
    """Why a gate decision came out the way it did."""

    PROFILE_PENDING = "profile_pending"
    PRO_ACCESS = "pro_access"
    WITHIN_QUOTA = "within_quota"
    QUOTA_REACHED = "quota_reached"
    STORAGE_FAILURE = "storage_failure"


@dataclass(frozen=True)
class GateDecision:
    """Outcome of a daily quota check.

    ``metered`` is ``False`` when no counter was consulted (profile still
    loading, pro access, storage fault); ``remaining`` then echoes the
    configured maximum.
    """

    feature: str
    granted: bool
    remaining: int
    reason: GateReason
    metered: bool = True

    @property
    def quota_reached(self) -> bool:
        return self.reason == GateReason.QUOTA_REACHED

    def to_dict(self) -> dict[str, object]:
        return {
            "feature": self.feature,
            "granted": self.granted,
            "remaining": self.remaining,
            "reason": self.reason.value,
            "metered": self.metered,
        }

    def to_error(self) -> FeatureGateError:
        feature_name = _display_name(self.feature)
        return FeatureGateError(
            code="daily_quota_reached",
            message=f"Daily limit reached. Upgrade to Pro for unlimited {feature_name}.",
            feature=self.feature,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={"remaining": self.remaining},
        )

    def raise_for_quota(self) -> None:
        """Raise :class:`FeatureGateError` when the decision denied access."""

        if not self.granted:
            raise self.to_error()


def _feature_value(feature: FeatureName) -> str:
    return feature.value if isinstance(feature, FeatureKey) else str(feature)


def _display_name(feature: str) -> str:
    try:
        return get_feature_display_name(FeatureKey(feature))
    except ValueError:
        return feature


def counter_key(feature: FeatureName, scope_id: Optional[str], day: str) -> str:
    """Counter key ``{feature}:{scope_id}:{YYYY-MM-DD}``; the scope is optional."""

    parts = [_feature_value(feature)]
    if scope_id:
        parts.append(str(scope_id))
    parts.append(day)
    return ":".join(parts)


class DailyFeatureGate:
    """Grants metered features to free users a limited number of times per day."""

    def __init__(
        self,
        cache: TTLCache,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        counter_ttl_hours: float = DEFAULT_COUNTER_TTL_HOURS,
        tz: Optional[tzinfo] = None,
    ) -> None:
        self._cache = cache
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        # The counter must outlive the rest of the local day even with clock skew.
        self._counter_ttl = timedelta(hours=max(counter_ttl_hours, 25))
        self._tz = tz

    def check_and_consume(
        self,
        feature: FeatureName,
        scope_id: Optional[str],
        profile: ProfileInput,
        max_daily_count: int,
        now: Optional[datetime] = None,
    ) -> GateDecision:
        """Decide access and, for free users within quota, consume one use."""

        return self._evaluate(feature, scope_id, profile, max_daily_count, now, consume=True)

    def peek(
        self,
        feature: FeatureName,
        scope_id: Optional[str],
        profile: ProfileInput,
        max_daily_count: int,
        now: Optional[datetime] = None,
    ) -> GateDecision:
        """Same decision as :meth:`check_and_consume` without using a slot."""

        return self._evaluate(feature, scope_id, profile, max_daily_count, now, consume=False)

    def _evaluate(
        self,
        feature: FeatureName,
        scope_id: Optional[str],
        profile: ProfileInput,
        max_daily_count: int,
        now: Optional[datetime],
        *,
        consume: bool,
    ) -> GateDecision:
        feature_name = _feature_value(feature)
        limit = max(0, int(max_daily_count))

        def unmetered(reason: GateReason) -> GateDecision:
            return GateDecision(feature=feature_name, granted=True, remaining=limit, reason=reason, metered=False)

        # Not loaded yet: let the caller re-check once the profile arrives.
        if profile is None:
            return unmetered(GateReason.PROFILE_PENDING)

        current = now or self._clock()
        try:
            verdict = resolve(profile, current, tz=self._tz)
            if verdict.has_pro_access:
                return unmetered(GateReason.PRO_ACCESS)

            key = counter_key(feature_name, scope_id, local_date_key(current, self._tz))
            count = self._read_count(key)

            if count >= limit:
                logger.info(
                    "Daily quota reached for %s",
                    feature_name,
                    extra={"counter_key": key, "count": count, "limit": limit},
                )
                return GateDecision(
                    feature=feature_name,
                    granted=False,
                    remaining=0,
                    reason=GateReason.QUOTA_REACHED,
                )

            if not consume:
                return GateDecision(
                    feature=feature_name,
                    granted=True,
                    remaining=limit - count,
                    reason=GateReason.WITHIN_QUOTA,
                )

            ttl_minutes = self._counter_ttl.total_seconds() / 60
            self._cache.set(key, {"count": count + 1}, ttl_minutes, strict=True)
            logger.debug("Usage counter %s now %s/%s", key, count + 1, limit)
            return GateDecision(
                feature=feature_name,
                granted=True,
                remaining=limit - count - 1,
                reason=GateReason.WITHIN_QUOTA,
            )
        except CacheStorageError:
            logger.warning("Usage counter storage unavailable for %s; granting access", feature_name, exc_info=True)
            return unmetered(GateReason.STORAGE_FAILURE)
        except Exception:
            logger.exception("Daily quota check failed for %s; granting access", feature_name)
            return unmetered(GateReason.STORAGE_FAILURE)

    def _read_count(self, key: str) -> int:
        stored = self._cache.get(key, strict=True)
        if not isinstance(stored, dict):
            return 0
        try:
            return max(0, int(stored.get("count", 0)))
        except (TypeError, ValueError):
            return 0
