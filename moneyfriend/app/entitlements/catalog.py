"""Static catalog of gated features and per-tier access limits."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Mapping, Optional

from .resolver import ProfileInput, has_pro_access


class FeatureKey(str, Enum):
    """Features whose availability depends on the subscription tier."""

    ANALYSIS = "analysis"
    WALLET_DETAIL = "wallet_detail"
    BUDGET = "budget"
    SAVINGS = "savings"
    LOANS = "loans"
    ASSETS = "assets"


FEATURE_DISPLAY_NAMES: Dict[FeatureKey, str] = {
    FeatureKey.ANALYSIS: "Financial Analysis",
    FeatureKey.WALLET_DETAIL: "Wallet Detail",
    FeatureKey.BUDGET: "Budget Management",
    FeatureKey.SAVINGS: "Savings",
    FeatureKey.LOANS: "Debts & Receivables",
    FeatureKey.ASSETS: "Assets",
}


@dataclass(frozen=True)
class AccessLimits:
    """Describes what an access tier unlocks.

    ``None`` for a count means unlimited. Features listed in ``daily_quotas``
    are open but metered per local day; features in ``locked_features`` are
    not available at all.
    """

    tier: str
    max_active_wallets: Optional[int]
    max_savings_targets: Optional[int]
    locked_features: frozenset = frozenset()
    daily_quotas: Mapping[FeatureKey, int] = field(default_factory=dict)

    def is_locked(self, feature: FeatureKey) -> bool:
        return feature in self.locked_features

    def daily_quota(self, feature: FeatureKey) -> Optional[int]:
        return self.daily_quotas.get(feature)


FREE_LIMITS = AccessLimits(
    tier="free",
    max_active_wallets=3,
    max_savings_targets=0,
    locked_features=frozenset(
        {FeatureKey.BUDGET, FeatureKey.SAVINGS, FeatureKey.LOANS, FeatureKey.ASSETS}
    ),
    daily_quotas={FeatureKey.ANALYSIS: 1, FeatureKey.WALLET_DETAIL: 3},
)

PRO_LIMITS = AccessLimits(
    tier="pro",
    max_active_wallets=None,
    max_savings_targets=None,
)


def get_feature_display_name(feature: FeatureKey) -> str:
    """Return the human readable feature name, falling back to a generic one."""

    return FEATURE_DISPLAY_NAMES.get(feature, "Premium Feature")


def limits_for(profile: ProfileInput, now: Optional[datetime] = None) -> AccessLimits:
    """Pick the limits for a profile; ``None`` gets the free tier."""

    return PRO_LIMITS if has_pro_access(profile, now) else FREE_LIMITS
