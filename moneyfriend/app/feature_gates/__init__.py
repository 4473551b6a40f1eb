"""Feature gating utilities coordinating subscription enforcement."""
from .context import EntitlementContext
from .enforcement import require_pro_access
from .exceptions import FeatureGateError
from .quota import DailyFeatureGate, GateDecision, GateReason, counter_key

__all__ = [
    "DailyFeatureGate",
    "EntitlementContext",
    "FeatureGateError",
    "GateDecision",
    "GateReason",
    "counter_key",
    "require_pro_access",
]
