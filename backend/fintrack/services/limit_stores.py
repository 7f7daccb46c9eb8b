"""Collaborator contracts read by the limit validation engine, plus the
PostgreSQL adapters that back them in the running app.

The engine only ever calls the three abstract methods below. Any store that
answers them (a database, a fake in tests) can be injected.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from .limit_models import AccountLimit, UserPeriodPreferences

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any


class LimitStore(ABC):
    @abstractmethod
    async def get_limits_for_account(self, account_id: int) -> list[AccountLimit]:
        ...


class PreferenceStore(ABC):
    @abstractmethod
    async def get_preferences_for_user(self, user_id: int) -> UserPeriodPreferences | None:
        ...


class TransactionStore(ABC):
    @abstractmethod
    async def sum_amount_in_window(self, account_id: int, period_start: datetime, period_end: datetime) -> Decimal:
        """Sum of amounts with ``period_start <= occurred_at <= period_end``; ``0`` when empty."""
        ...


def _to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class PostgresLimitStore(LimitStore):
    def __init__(self, connection: AsyncConnection) -> None:
        self._connection = connection

    async def get_limits_for_account(self, account_id: int) -> list[AccountLimit]:
        async with self._connection.cursor() as cursor:
            await cursor.execute(
                """
                SELECT id, account_id, period, limit_amount
                FROM account_limits
                WHERE account_id = %s
                ORDER BY created_at ASC, id ASC
                """,
                (account_id,),
            )
            rows = await cursor.fetchall()

        return [
            AccountLimit(
                id=row["id"],
                account_id=row["account_id"],
                period=row["period"],
                limit_amount=_to_decimal(row["limit_amount"]),
            )
            for row in rows
        ]


class PostgresPreferenceStore(PreferenceStore):
    def __init__(self, connection: AsyncConnection) -> None:
        self._connection = connection

    async def get_preferences_for_user(self, user_id: int) -> UserPeriodPreferences | None:
        async with self._connection.cursor() as cursor:
            await cursor.execute(
                """
                SELECT user_id, monthly_start_date, weekly_start_day
                FROM user_preferences
                WHERE user_id = %s
                """,
                (user_id,),
            )
            row = await cursor.fetchone()

        if row is None:
            return None

        return UserPeriodPreferences(
            user_id=row["user_id"],
            monthly_start_date=row["monthly_start_date"],
            weekly_start_day=row["weekly_start_day"],
        )


class PostgresTransactionStore(TransactionStore):
    def __init__(self, connection: AsyncConnection) -> None:
        self._connection = connection

    async def sum_amount_in_window(self, account_id: int, period_start: datetime, period_end: datetime) -> Decimal:
        async with self._connection.cursor() as cursor:
            await cursor.execute(
                """
                SELECT COALESCE(SUM(amount), 0) AS total
                FROM transactions
                WHERE account_id = %s
                  AND deleted_at IS NULL
                  AND occurred_at >= %s
                  AND occurred_at <= %s
                """,
                (account_id, period_start, period_end),
            )
            row = await cursor.fetchone()

        if row is None:
            return Decimal("0")
        return _to_decimal(row["total"])
