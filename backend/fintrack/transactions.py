import logging
from datetime import datetime
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from psycopg import AsyncConnection
from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

from .auth import get_current_user_id
from .database import get_db_connection
from .limits import get_limit_validation_service
from .services.limit_messages import money, rejection_messages, warning_messages
from .services.limit_models import TransactionPatch, TransactionSnapshot, ValidationResult
from .services.limit_validation import LimitValidationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["transactions"])

Amount = Annotated[Decimal, Field(gt=Decimal("0"), max_digits=12, decimal_places=2)]

TRANSACTION_COLUMNS = "id, user_id, account_id, amount, occurred_at, note, created_at, updated_at"


def _clean_note(value: str | None) -> str | None:
    if isinstance(value, str):
        return value.strip() or None
    return value


class TransactionCreate(BaseModel):
    account_id: int = Field(gt=0)
    amount: Amount
    occurred_at: datetime
    note: str | None = None

    @field_validator("note", mode="before")
    @classmethod
    def clean_note(cls, value: str | None) -> str | None:
        return _clean_note(value)


class TransactionUpdate(BaseModel):
    account_id: int | None = Field(default=None, gt=0)
    amount: Amount | None = None
    occurred_at: datetime | None = None
    note: str | None = None

    @field_validator("note", mode="before")
    @classmethod
    def clean_note(cls, value: str | None) -> str | None:
        return _clean_note(value)

    @model_validator(mode="after")
    def check_not_empty(self) -> "TransactionUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")

        return self


class TransactionResponse(BaseModel):
    id: int
    user_id: int
    account_id: int
    amount: Decimal
    occurred_at: datetime
    note: str | None
    created_at: datetime
    updated_at: datetime
    # Limits crossed past the warning threshold; the write still went through.
    warnings: list[str] = []

    @field_serializer("amount")
    def serialize_amount(self, value: Decimal) -> str:
        return money(value)


def _reject_if_exceeded(result: ValidationResult) -> None:
    if result.is_valid:
        return

    raise HTTPException(
        status_code=400,
        detail={
            "message": "Transaction exceeds account spending limits",
            "errors": rejection_messages(result),
        },
    )


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
async def create_transaction(
    payload: TransactionCreate,
    user_id: int = Depends(get_current_user_id),
    connection: AsyncConnection = Depends(get_db_connection),
    limits: LimitValidationService = Depends(get_limit_validation_service),
) -> TransactionResponse:
    result = await limits.validate_new_transaction(
        payload.account_id, payload.amount, payload.occurred_at, user_id
    )
    _reject_if_exceeded(result)

    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            INSERT INTO transactions (user_id, account_id, amount, occurred_at, note)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING {TRANSACTION_COLUMNS}
            """,
            (user_id, payload.account_id, payload.amount, payload.occurred_at, payload.note),
        )
        row = await cursor.fetchone()

    return TransactionResponse.model_validate({**row, "warnings": warning_messages(result)})


@router.patch("/transactions/{transaction_id}", response_model=TransactionResponse)
async def update_transaction(
    transaction_id: int,
    payload: TransactionUpdate,
    user_id: int = Depends(get_current_user_id),
    connection: AsyncConnection = Depends(get_db_connection),
    limits: LimitValidationService = Depends(get_limit_validation_service),
) -> TransactionResponse:
    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            SELECT {TRANSACTION_COLUMNS}, deleted_at
            FROM transactions
            WHERE id = %s
            """,
            (transaction_id,),
        )
        current = await cursor.fetchone()

    if current is None or current["deleted_at"] is not None:
        raise HTTPException(status_code=404, detail="Transaction not found")

    if current["user_id"] != user_id:
        raise HTTPException(status_code=403, detail="Forbidden transaction access")

    # Only note may be cleared; explicit nulls on the other columns mean "leave as is".
    updates = {
        field: value
        for field, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or field == "note"
    }

    result = await limits.validate_transaction_update(
        TransactionSnapshot(
            account_id=current["account_id"],
            amount=current["amount"],
            occurred_at=current["occurred_at"],
        ),
        TransactionPatch(
            account_id=updates.get("account_id"),
            amount=updates.get("amount"),
            occurred_at=updates.get("occurred_at"),
        ),
        user_id,
    )
    _reject_if_exceeded(result)

    set_parts: list[str] = []
    params: list[object] = []

    for field in ["account_id", "amount", "occurred_at", "note"]:
        if field in updates:
            set_parts.append(f"{field} = %s")
            params.append(updates[field])

    if not set_parts:
        return TransactionResponse.model_validate({**current, "warnings": warning_messages(result)})

    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            UPDATE transactions
            SET {", ".join(set_parts)}, updated_at = NOW()
            WHERE id = %s
              AND user_id = %s
              AND deleted_at IS NULL
            RETURNING {TRANSACTION_COLUMNS}
            """,
            [*params, transaction_id, user_id],
        )
        row = await cursor.fetchone()

    if row is None:
        raise HTTPException(status_code=404, detail="Transaction not found")

    if updates.get("account_id", current["account_id"]) != current["account_id"]:
        logger.info(
            "transaction %s moved from account %s to %s",
            transaction_id,
            current["account_id"],
            updates["account_id"],
        )

    return TransactionResponse.model_validate({**row, "warnings": warning_messages(result)})
