"""In-memory stand-ins for the limit engine's stores, shared by the test modules."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from fintrack.services.limit_models import AccountLimit, UserPeriodPreferences
from fintrack.services.limit_stores import LimitStore, PreferenceStore, TransactionStore


class FakeLimitStore(LimitStore):
    def __init__(self, limits: list[AccountLimit] | None = None):
        self.limits = limits or []
        self.calls: list[int] = []

    async def get_limits_for_account(self, account_id):
        self.calls.append(account_id)
        return [limit for limit in self.limits if limit.account_id == account_id]


class FakePreferenceStore(PreferenceStore):
    def __init__(self, preferences: UserPeriodPreferences | None = None):
        self.preferences = preferences
        self.calls: list[int] = []

    async def get_preferences_for_user(self, user_id):
        self.calls.append(user_id)
        if self.preferences is None or self.preferences.user_id != user_id:
            return None
        return self.preferences


class FakeTransactionStore(TransactionStore):
    """Sums in-memory (account_id, amount, occurred_at) rows; records each window queried."""

    def __init__(self, rows: list[tuple[int, Decimal, datetime]] | None = None):
        self.rows = rows or []
        self.calls: list[tuple[int, datetime, datetime]] = []

    async def sum_amount_in_window(self, account_id, period_start, period_end):
        self.calls.append((account_id, period_start, period_end))
        return sum(
            (
                amount
                for row_account, amount, occurred_at in self.rows
                if row_account == account_id and period_start <= occurred_at <= period_end
            ),
            Decimal("0"),
        )
