"""Process-lifetime holder of the last resolved subscription verdict."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from .models import SubscriptionVerdict, UserSubscriptionProfile
from .profiles import ProfileFetcher
from .resolver import coerce_profile, resolve

logger = logging.getLogger(__name__)

SubscriptionListener = Callable[[SubscriptionVerdict], None]


class SessionState(str, Enum):
    """Lifecycle of the session cache."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    RESOLVED = "resolved"


class SubscriptionSessionCache:
    """Keeps the current user's verdict and profile for UI collaborators.

    Only one refresh runs at a time: concurrent :meth:`refresh` calls wait on
    the in-flight one. Every refresh and optimistic update takes a sequence
    number and a result is dropped if something newer has already landed, so
    a slow fetch that started before an optimistic upgrade cannot roll it back.
    """

    def __init__(
        self,
        fetcher: ProfileFetcher,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        tz: Optional[tzinfo] = None,
    ) -> None:
        self._fetcher = fetcher
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._tz = tz
        self._state = SessionState.UNINITIALIZED
        self._verdict: Optional[SubscriptionVerdict] = None
        self._profile: Optional[UserSubscriptionProfile] = None
        self._optimistic = False
        self._listeners: List[SubscriptionListener] = []
        self._inflight: Optional[asyncio.Future] = None
        self._inflight_sequence = 0
        self._issued = 0
        self._landed = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def profile(self) -> Optional[UserSubscriptionProfile]:
        """Last loaded profile, ``None`` while loading or when the source failed."""

        return self._profile

    @property
    def is_optimistic(self) -> bool:
        return self._optimistic

    def get_snapshot(self) -> SubscriptionVerdict:
        if self._verdict is None:
            return SubscriptionVerdict.loading(self._clock())
        return self._verdict

    def subscribe(self, listener: SubscriptionListener) -> Callable[[], None]:
        """Register ``listener`` for new verdicts; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def refresh(self) -> None:
        """Fetch the profile again and publish a new verdict."""

        inflight = self._inflight
        if inflight is not None and not inflight.done() and self._inflight_sequence >= self._landed:
            await inflight
            return

        self._issued += 1
        sequence = self._issued
        self._state = SessionState.LOADING
        task = asyncio.ensure_future(self._load(sequence))
        self._inflight = task
        self._inflight_sequence = sequence
        try:
            await task
        finally:
            if self._inflight is task:
                self._inflight = None

    def apply_optimistic_update(self, partial_profile: Mapping[str, Any]) -> SubscriptionVerdict:
        """Publish a locally patched profile right after an upgrade action.

        The result is advisory: the next :meth:`refresh` replaces it with the
        authoritative profile.
        """

        merged: Dict[str, Any] = self._profile.model_dump() if self._profile else {}
        merged.update(partial_profile)
        profile = coerce_profile(merged)

        self._issued += 1
        self._landed = self._issued
        return self._publish(profile, optimistic=True)

    async def _load(self, sequence: int) -> None:
        profile = await self._fetch_profile()
        if sequence < self._landed:
            logger.debug("Dropping superseded subscription refresh #%s", sequence)
            return
        self._landed = sequence
        self._publish(profile, optimistic=False)

    async def _fetch_profile(self) -> Optional[UserSubscriptionProfile]:
        try:
            return await self._fetcher.fetch_current_user_profile()
        except Exception:
            logger.exception("Subscription profile fetch failed")
            return None

    def _publish(self, profile: Optional[UserSubscriptionProfile], *, optimistic: bool) -> SubscriptionVerdict:
        verdict = resolve(profile, self._clock(), tz=self._tz)
        self._profile = profile
        self._verdict = verdict
        self._optimistic = optimistic
        self._state = SessionState.RESOLVED
        logger.debug(
            "Subscription resolved",
            extra={"status": verdict.status.value, "optimistic": optimistic},
        )
        for listener in list(self._listeners):
            try:
                listener(verdict)
            except Exception:
                logger.exception("Subscription listener failed")
        return verdict
