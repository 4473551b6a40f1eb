"""Helpers for enforcing subscription checks on API and service layers."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..entitlements import FeatureKey, get_feature_display_name, resolve
from ..entitlements.resolver import ProfileInput
from .exceptions import FeatureGateError


def require_pro_access(
    profile: ProfileInput,
    feature: FeatureKey,
    *,
    now: Optional[datetime] = None,
    error_code: str = "pro_required",
    message: str | None = None,
) -> None:
    """Ensure the profile has admin, pro or running-trial access.

    Parameters
    ----------
    profile:
        Subscription profile of the caller; ``None`` is treated as free.
    feature:
        The gated feature, used for the failure message and payload.
    error_code:
        Optional override for the surfaced error code. Defaults to
        ``"pro_required"``.
    message:
        Optional human-friendly message. If omitted, a default message naming
        the feature is used.
    """

    verdict = resolve(profile, now)
    if verdict.has_pro_access:
        return

    feature_name = get_feature_display_name(feature)
    raise FeatureGateError(
        code=error_code,
        message=message or f"{feature_name} is only available on Pro. Upgrade to continue.",
        feature=feature.value,
        detail={"subscription_status": verdict.status.value},
    )
