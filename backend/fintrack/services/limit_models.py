from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

Period = Literal["week", "month"]
Classification = Literal["ok", "warning", "exceeded"]

DEFAULT_MONTHLY_START_DATE = 25
DEFAULT_WEEKLY_START_DAY = 1  # Monday

Instant = date | datetime


@dataclass(frozen=True)
class AccountLimit:
    id: int
    account_id: int
    # Kept as plain str: stored rows may carry values the engine rejects.
    period: str
    limit_amount: Decimal


@dataclass(frozen=True)
class UserPeriodPreferences:
    user_id: int
    monthly_start_date: int = DEFAULT_MONTHLY_START_DATE
    weekly_start_day: int = DEFAULT_WEEKLY_START_DAY  # 0 = Sunday

    def __post_init__(self) -> None:
        if not 1 <= self.monthly_start_date <= 31:
            raise ValueError("monthly_start_date must be between 1 and 31")
        if not 0 <= self.weekly_start_day <= 6:
            raise ValueError("weekly_start_day must be between 0 (Sunday) and 6 (Saturday)")


@dataclass(frozen=True)
class PeriodWindow:
    period_start: datetime
    period_end: datetime

    def __contains__(self, moment: datetime) -> bool:
        return self.period_start <= moment <= self.period_end


@dataclass(frozen=True)
class LimitEvaluation:
    classification: Classification
    projected: Decimal
    remaining_amount: Decimal
    warning_threshold: Decimal


@dataclass(frozen=True)
class ExceededEntry:
    limit: AccountLimit
    current_spent: Decimal
    # limit_amount - current_spent, negative once the limit is already overrun.
    remaining_amount: Decimal
    period_start: datetime
    period_end: datetime


@dataclass(frozen=True)
class WarningEntry:
    limit: AccountLimit
    current_spent: Decimal
    remaining_amount: Decimal
    period_start: datetime
    period_end: datetime
    warning_threshold: Decimal


@dataclass(frozen=True)
class ValidationResult:
    exceeded_limits: list[ExceededEntry] = field(default_factory=list)
    warnings: list[WarningEntry] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.exceeded_limits


@dataclass(frozen=True)
class RemainingBudgetEntry:
    limit: AccountLimit
    current_spent: Decimal
    remaining_amount: Decimal  # clamped at zero
    period_start: datetime
    period_end: datetime
    utilization_percentage: Decimal


@dataclass(frozen=True)
class RemainingBudgetReport:
    limits: list[RemainingBudgetEntry] = field(default_factory=list)


@dataclass(frozen=True)
class TransactionSnapshot:
    account_id: int
    amount: Decimal
    occurred_at: Instant


@dataclass(frozen=True)
class TransactionPatch:
    account_id: int | None = None
    amount: Decimal | None = None
    occurred_at: Instant | None = None
