from datetime import datetime
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from psycopg import AsyncConnection
from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .auth import get_current_user_id
from .database import get_db_connection
from .services.limit_messages import money, rejection_messages, warning_messages
from .services.limit_validation import LimitValidationService, build_limit_validation_service

# Read-only views over the spending-limit engine for one account.
router = APIRouter(prefix="/accounts/{account_id}/limits", tags=["limits"])

Amount = Annotated[Decimal, Field(gt=Decimal("0"), max_digits=12, decimal_places=2)]


async def get_limit_validation_service(
    connection: AsyncConnection = Depends(get_db_connection),
) -> LimitValidationService:
    return build_limit_validation_service(connection)


class AccountLimitOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    account_id: int
    period: str
    limit_amount: Decimal

    @field_serializer("limit_amount")
    def serialize_amount(self, value: Decimal) -> str:
        return money(value)


class ExceededLimitOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    limit: AccountLimitOut
    current_spent: Decimal
    remaining_amount: Decimal
    period_start: datetime
    period_end: datetime

    @field_serializer("current_spent", "remaining_amount")
    def serialize_decimal(self, value: Decimal) -> str:
        return money(value)


class WarningLimitOut(ExceededLimitOut):
    warning_threshold: Decimal

    @field_serializer("warning_threshold")
    def serialize_threshold(self, value: Decimal) -> str:
        return money(value)


class LimitCheckRequest(BaseModel):
    amount: Amount
    occurred_at: datetime


class LimitCheckResponse(BaseModel):
    is_valid: bool
    exceeded_limits: list[ExceededLimitOut]
    warnings: list[WarningLimitOut]
    messages: list[str]


class RemainingBudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    limit: AccountLimitOut
    current_spent: Decimal
    remaining_amount: Decimal
    period_start: datetime
    period_end: datetime
    utilization_percentage: Decimal

    @field_serializer("current_spent", "remaining_amount", "utilization_percentage")
    def serialize_decimal(self, value: Decimal) -> str:
        return money(value)


class RemainingBudgetResponse(BaseModel):
    account_id: int
    limits: list[RemainingBudgetOut]


@router.get("/remaining", response_model=RemainingBudgetResponse)
async def get_remaining_budgets(
    account_id: int,
    as_of: datetime | None = Query(default=None),
    user_id: int = Depends(get_current_user_id),
    service: LimitValidationService = Depends(get_limit_validation_service),
) -> RemainingBudgetResponse:
    report = await service.get_remaining_budgets(account_id, user_id, as_of)
    return RemainingBudgetResponse(
        account_id=account_id,
        limits=[RemainingBudgetOut.model_validate(entry) for entry in report.limits],
    )


@router.post("/check", response_model=LimitCheckResponse)
async def check_limits(
    account_id: int,
    payload: LimitCheckRequest,
    user_id: int = Depends(get_current_user_id),
    service: LimitValidationService = Depends(get_limit_validation_service),
) -> LimitCheckResponse:
    # Dry run: nothing is written, so the answer can go stale before a real post.
    result = await service.validate_new_transaction(account_id, payload.amount, payload.occurred_at, user_id)
    return LimitCheckResponse(
        is_valid=result.is_valid,
        exceeded_limits=[ExceededLimitOut.model_validate(entry) for entry in result.exceeded_limits],
        warnings=[WarningLimitOut.model_validate(entry) for entry in result.warnings],
        messages=rejection_messages(result) + warning_messages(result),
    )
