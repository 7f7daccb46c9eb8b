from __future__ import annotations

from decimal import Decimal

from .limit_models import AccountLimit, LimitEvaluation

WARNING_RATIO = Decimal("0.8")
HUNDRED = Decimal("100")


def warning_threshold(limit: AccountLimit) -> Decimal:
    return limit.limit_amount * WARNING_RATIO


def evaluate_limit(limit: AccountLimit, current_spent: Decimal, proposed_delta: Decimal) -> LimitEvaluation:
    """Classify spend after ``proposed_delta`` lands against one limit.

    Both comparisons are strict, so landing exactly on the limit is allowed.
    ``remaining_amount`` is reported from the pre-transaction spend and is not
    clamped.
    """
    projected = current_spent + proposed_delta
    threshold = warning_threshold(limit)

    if projected > limit.limit_amount:
        classification = "exceeded"
    elif projected > threshold:
        classification = "warning"
    else:
        classification = "ok"

    return LimitEvaluation(
        classification=classification,
        projected=projected,
        remaining_amount=limit.limit_amount - current_spent,
        warning_threshold=threshold,
    )


def clamped_remaining(limit: AccountLimit, current_spent: Decimal) -> Decimal:
    return max(Decimal("0"), limit.limit_amount - current_spent)


def utilization_percentage(limit: AccountLimit, current_spent: Decimal) -> Decimal:
    if limit.limit_amount == 0:
        # Nothing spent against a zero limit is 0% used; anything else is fully used.
        return Decimal("0") if current_spent <= 0 else HUNDRED
    return current_spent / limit.limit_amount * HUNDRED
