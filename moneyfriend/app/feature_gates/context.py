"""Convenience wrapper around a resolved verdict for feature gating."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..entitlements import (
    AccessLimits,
    FeatureKey,
    SubscriptionStatus,
    SubscriptionVerdict,
    limits_for,
    resolve,
)
from ..entitlements.resolver import ProfileInput
from .enforcement import require_pro_access
from .quota import DailyFeatureGate, GateDecision


@dataclass(frozen=True)
class EntitlementContext:
    """Facade exposing gating-centric helpers for one user's profile."""

    profile: ProfileInput
    verdict: SubscriptionVerdict
    limits: AccessLimits

    @classmethod
    def for_profile(cls, profile: ProfileInput, now: Optional[datetime] = None) -> "EntitlementContext":
        verdict = resolve(profile, now)
        return cls(profile=profile, verdict=verdict, limits=limits_for(profile, now))

    @property
    def status(self) -> SubscriptionStatus:
        return self.verdict.status

    @property
    def has_pro_access(self) -> bool:
        return self.verdict.has_pro_access

    def can_access(self, feature: FeatureKey) -> bool:
        """Whether the feature is unlocked at all; daily quotas are checked separately."""

        return not self.limits.is_locked(feature)

    def require(self, feature: FeatureKey) -> None:
        """Raise :class:`FeatureGateError` when the feature is locked for this tier."""

        if self.limits.is_locked(feature):
            require_pro_access(self.profile, feature, now=self.verdict.resolved_at)

    def can_create_wallet(self, current_wallet_count: int) -> bool:
        limit = self.limits.max_active_wallets
        return limit is None or current_wallet_count < limit

    def remaining_wallets(self, current_wallet_count: int) -> Optional[int]:
        """Wallets that may still be created, ``None`` meaning unlimited."""

        limit = self.limits.max_active_wallets
        if limit is None:
            return None
        return max(0, limit - current_wallet_count)

    def remaining_savings(self, current_savings_count: int) -> Optional[int]:
        limit = self.limits.max_savings_targets
        if limit is None:
            return None
        return max(0, limit - current_savings_count)

    def consume_daily(
        self,
        gate: DailyFeatureGate,
        feature: FeatureKey,
        scope_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> GateDecision:
        """Run the daily gate with this tier's quota for ``feature``.

        Features without a quota for the tier are passed through with a zero
        limit, so pro access still grants and free access is denied.
        """

        quota = self.limits.daily_quota(feature) or 0
        return gate.check_and_consume(feature, scope_id, self.profile, quota, now)
