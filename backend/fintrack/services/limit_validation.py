"""Spending-limit validation for new and edited transactions.

``LimitValidationService`` pulls an account's limits and the user's period
anchors from injected stores, works out the current window for each limit,
asks the transaction store what was already spent in it, and classifies the
proposed spend. It never writes anything: the caller persists the transaction
after a valid result, so two concurrent validations may both pass and jointly
overshoot a limit.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from .limit_errors import PreferencesNotFoundError
from .limit_evaluation import clamped_remaining, evaluate_limit, utilization_percentage
from .limit_models import (
    ExceededEntry,
    Instant,
    PeriodWindow,
    RemainingBudgetEntry,
    RemainingBudgetReport,
    TransactionPatch,
    TransactionSnapshot,
    UserPeriodPreferences,
    ValidationResult,
    WarningEntry,
)
from .limit_periods import period_boundaries
from .limit_stores import (
    LimitStore,
    PostgresLimitStore,
    PostgresPreferenceStore,
    PostgresTransactionStore,
    PreferenceStore,
    TransactionStore,
)

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LimitValidationService:
    def __init__(
        self,
        limit_store: LimitStore,
        preference_store: PreferenceStore,
        transaction_store: TransactionStore,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._limits = limit_store
        self._preferences = preference_store
        self._transactions = transaction_store
        self._clock = clock

    async def _require_preferences(self, user_id: int) -> UserPeriodPreferences:
        preferences = await self._preferences.get_preferences_for_user(user_id)
        if preferences is None:
            logger.warning(
                "limits exist but user %s has no period preferences", user_id, extra={"user_id": user_id}
            )
            raise PreferencesNotFoundError(user_id)
        return preferences

    async def _spent_in_windows(self, account_id: int, windows: list[PeriodWindow]) -> list[Decimal]:
        """Sum each window concurrently; on the first failure the other queries are cancelled."""
        tasks = [
            asyncio.ensure_future(
                self._transactions.sum_amount_in_window(account_id, window.period_start, window.period_end)
            )
            for window in windows
        ]
        try:
            # gather keeps input order, so totals line up with the windows.
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def validate_new_transaction(
        self,
        account_id: int,
        amount: Decimal,
        occurred_at: Instant,
        user_id: int,
    ) -> ValidationResult:
        limits = await self._limits.get_limits_for_account(account_id)
        if not limits:
            return ValidationResult()

        preferences = await self._require_preferences(user_id)

        # Every window is resolved before the first query, so a bad period fails with no I/O in flight.
        windows = [period_boundaries(limit.period, occurred_at, preferences) for limit in limits]
        totals = await self._spent_in_windows(account_id, windows)

        result = ValidationResult()
        for limit, window, spent in zip(limits, windows, totals):
            evaluation = evaluate_limit(limit, spent, amount)
            logger.debug(
                "limit %s (%s, %s): spent=%s projected=%s -> %s",
                limit.id,
                limit.period,
                limit.limit_amount,
                spent,
                evaluation.projected,
                evaluation.classification,
                extra={"account_id": account_id, "limit_id": limit.id},
            )
            if evaluation.classification == "exceeded":
                result.exceeded_limits.append(
                    ExceededEntry(
                        limit=limit,
                        current_spent=spent,
                        remaining_amount=evaluation.remaining_amount,
                        period_start=window.period_start,
                        period_end=window.period_end,
                    )
                )
            elif evaluation.classification == "warning":
                result.warnings.append(
                    WarningEntry(
                        limit=limit,
                        current_spent=spent,
                        remaining_amount=evaluation.remaining_amount,
                        period_start=window.period_start,
                        period_end=window.period_end,
                        warning_threshold=evaluation.warning_threshold,
                    )
                )

        if not result.is_valid:
            logger.info(
                "transaction of %s on account %s exceeds %d limit(s)",
                amount,
                account_id,
                len(result.exceeded_limits),
                extra={"account_id": account_id, "user_id": user_id},
            )
        return result

    async def validate_transaction_update(
        self,
        existing: TransactionSnapshot,
        patch: TransactionPatch,
        user_id: int,
    ) -> ValidationResult:
        new_account_id = patch.account_id if patch.account_id is not None else existing.account_id
        new_amount = patch.amount if patch.amount is not None else existing.amount
        new_occurred_at = patch.occurred_at if patch.occurred_at is not None else existing.occurred_at

        if new_account_id != existing.account_id:
            # The moved amount is validated in full on the new account. The old
            # account is not credited here; its spend drops once the row is updated.
            return await self.validate_new_transaction(new_account_id, new_amount, new_occurred_at, user_id)

        delta = new_amount - existing.amount
        if delta <= 0:
            return ValidationResult()

        # The persisted amount is already inside the aggregated spend; only the increase is new.
        return await self.validate_new_transaction(existing.account_id, delta, new_occurred_at, user_id)

    async def get_remaining_budgets(
        self,
        account_id: int,
        user_id: int,
        as_of: Instant | None = None,
    ) -> RemainingBudgetReport:
        limits = await self._limits.get_limits_for_account(account_id)
        if not limits:
            return RemainingBudgetReport()

        preferences = await self._require_preferences(user_id)
        reference = as_of if as_of is not None else self._clock()

        windows = [period_boundaries(limit.period, reference, preferences) for limit in limits]
        totals = await self._spent_in_windows(account_id, windows)

        report = RemainingBudgetReport()
        for limit, window, spent in zip(limits, windows, totals):
            report.limits.append(
                RemainingBudgetEntry(
                    limit=limit,
                    current_spent=spent,
                    remaining_amount=clamped_remaining(limit, spent),
                    period_start=window.period_start,
                    period_end=window.period_end,
                    utilization_percentage=utilization_percentage(limit, spent),
                )
            )
        return report


def build_limit_validation_service(connection: AsyncConnection) -> LimitValidationService:
    """Wire the PostgreSQL stores over one connection into a validation service."""
    return LimitValidationService(
        PostgresLimitStore(connection),
        PostgresPreferenceStore(connection),
        PostgresTransactionStore(connection),
    )
