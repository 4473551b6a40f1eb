from __future__ import annotations

import asyncio
from datetime import date
from typing import Any, List, Optional, Tuple

from moneyfriend.app.entitlements import PostgresProfileFetcher, SubscriptionStatus, resolve
from moneyfriend.app.entitlements.profiles import PROFILE_SQL


class FakeConnection:
    def __init__(self, row: Optional[dict] = None, error: Optional[Exception] = None) -> None:
        self.row = row
        self.error = error
        self.queries: List[Tuple[str, Tuple[Any, ...]]] = []

    async def fetchrow(self, query: str, *args: Any) -> Optional[dict]:
        self.queries.append((query, args))
        if self.error is not None:
            raise self.error
        return self.row


class _Acquire:
    def __init__(self, connection: FakeConnection) -> None:
        self._connection = connection

    async def __aenter__(self) -> FakeConnection:
        return self._connection

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None


class FakePool:
    def __init__(self, connection: FakeConnection) -> None:
        self.connection = connection
        self.acquired = 0

    def acquire(self) -> _Acquire:
        self.acquired += 1
        return _Acquire(self.connection)


def test_fetches_profile_for_current_user() -> None:
    connection = FakeConnection(
        row={"subscription_type": "trial", "trial_start": date(2025, 3, 1), "trial_end": date(2025, 3, 8), "is_admin": None}
    )
    fetcher = PostgresProfileFetcher(FakePool(connection), lambda: "user-1")

    profile = asyncio.run(fetcher.fetch_current_user_profile())

    assert profile is not None
    assert profile.subscription_type == "trial"
    assert profile.trial_end == date(2025, 3, 8)
    assert profile.is_admin is False
    assert connection.queries == [(PROFILE_SQL, ("user-1",))]


def test_no_signed_in_user_skips_query() -> None:
    pool = FakePool(FakeConnection())
    fetcher = PostgresProfileFetcher(pool, lambda: None)

    assert asyncio.run(fetcher.fetch_current_user_profile()) is None
    assert pool.acquired == 0


def test_missing_row_yields_none() -> None:
    fetcher = PostgresProfileFetcher(FakePool(FakeConnection(row=None)), lambda: "user-2")

    assert asyncio.run(fetcher.fetch_current_user_profile()) is None


def test_query_failure_yields_none_and_resolves_free() -> None:
    connection = FakeConnection(error=OSError("connection refused"))
    fetcher = PostgresProfileFetcher(FakePool(connection), lambda: "user-3")

    profile = asyncio.run(fetcher.fetch_current_user_profile())

    assert profile is None
    assert resolve(profile).status == SubscriptionStatus.FREE
