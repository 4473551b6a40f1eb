"""Subscription entitlement models, resolution and session state."""

from .catalog import (
    FEATURE_DISPLAY_NAMES,
    FREE_LIMITS,
    PRO_LIMITS,
    AccessLimits,
    FeatureKey,
    get_feature_display_name,
    limits_for,
)
from .models import (
    PAID_SUBSCRIPTION_TYPES,
    PRO_ACCESS_STATUSES,
    SubscriptionLabel,
    SubscriptionStatus,
    SubscriptionType,
    SubscriptionVerdict,
    UserSubscriptionProfile,
)
from .profiles import PostgresProfileFetcher, ProfileFetcher, create_profile_pool
from .resolver import (
    add_local_days,
    coerce_profile,
    days_remaining,
    has_pro_access,
    is_pro_user,
    local_date,
    local_date_key,
    resolve,
    subscription_label,
)
from .session import SessionState, SubscriptionListener, SubscriptionSessionCache

__all__ = [
    "FEATURE_DISPLAY_NAMES",
    "FREE_LIMITS",
    "PAID_SUBSCRIPTION_TYPES",
    "PRO_ACCESS_STATUSES",
    "PRO_LIMITS",
    "AccessLimits",
    "FeatureKey",
    "PostgresProfileFetcher",
    "ProfileFetcher",
    "SessionState",
    "SubscriptionLabel",
    "SubscriptionListener",
    "SubscriptionSessionCache",
    "SubscriptionStatus",
    "SubscriptionType",
    "SubscriptionVerdict",
    "UserSubscriptionProfile",
    "add_local_days",
    "coerce_profile",
    "create_profile_pool",
    "days_remaining",
    "get_feature_display_name",
    "has_pro_access",
    "is_pro_user",
    "limits_for",
    "local_date",
    "local_date_key",
    "resolve",
    "subscription_label",
]
