"""Human-readable lines for rejected and warned transactions."""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from .limit_models import ExceededEntry, ValidationResult, WarningEntry

PERIOD_LABELS = {"week": "Weekly", "month": "Monthly"}


def money(value: Decimal) -> str:
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def period_label(period: str) -> str:
    return PERIOD_LABELS.get(period, period.capitalize())


def describe_exceeded(entry: ExceededEntry) -> str:
    return (
        f"{period_label(entry.limit.period)} limit of {money(entry.limit.limit_amount)} exceeded: "
        f"spent {money(entry.current_spent)} between {entry.period_start.date().isoformat()} "
        f"and {entry.period_end.date().isoformat()}, {money(entry.remaining_amount)} remaining"
    )


def describe_warning(entry: WarningEntry) -> str:
    return (
        f"{period_label(entry.limit.period)} limit of {money(entry.limit.limit_amount)} is above the 80% "
        f"warning threshold ({money(entry.warning_threshold)}): spent {money(entry.current_spent)}, "
        f"{money(entry.remaining_amount)} remaining"
    )


def rejection_messages(result: ValidationResult) -> list[str]:
    return [describe_exceeded(entry) for entry in result.exceeded_limits]


def warning_messages(result: ValidationResult) -> list[str]:
    return [describe_warning(entry) for entry in result.warnings]
