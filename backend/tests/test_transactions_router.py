from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from fastapi import FastAPI
from fastapi.testclient import TestClient

import fintrack.transactions as transactions_router
from fintrack.errors import register_error_handlers
from fintrack.limits import AccountLimitOut
from fintrack.services.limit_models import AccountLimit, UserPeriodPreferences
from fintrack.services.limit_validation import LimitValidationService
from limit_fakes import FakeLimitStore, FakePreferenceStore, FakeTransactionStore

USER_ID = 7
WEEKLY = AccountLimit(id=1, account_id=3, period="week", limit_amount=Decimal("500.00"))
PREFS = UserPeriodPreferences(user_id=USER_ID, monthly_start_date=1, weekly_start_day=1)
CREATED_AT = datetime(2024, 1, 17, 10, 0)


class FakeTransactionsCursor:
    def __init__(self, connection):
        self.connection = connection
        self._rows = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def execute(self, query, params=None):
        normalized = " ".join(query.split())
        self._rows = []

        if normalized.startswith("INSERT INTO transactions"):
            user_id, account_id, amount, occurred_at, note = params
            self.connection.next_id += 1
            row = {
                "id": self.connection.next_id,
                "user_id": user_id,
                "account_id": account_id,
                "amount": amount,
                "occurred_at": occurred_at,
                "note": note,
                "created_at": CREATED_AT,
                "updated_at": CREATED_AT,
                "deleted_at": None,
            }
            self.connection.rows[row["id"]] = row
            self._rows = [row]
            return

        if normalized.startswith("SELECT id, user_id, account_id, amount, occurred_at, note, created_at, updated_at, deleted_at FROM transactions WHERE id = %s"):
            row = self.connection.rows.get(params[0])
            self._rows = [row] if row else []
            return

        if normalized.startswith("UPDATE transactions SET"):
            assignments = normalized.split("SET ", 1)[1].split(" WHERE", 1)[0]
            fields = [part.split(" = ")[0] for part in assignments.split(", ") if part.endswith("%s")]
            *values, transaction_id, user_id = params
            row = self.connection.rows.get(transaction_id)
            if row is None or row["user_id"] != user_id or row["deleted_at"] is not None:
                return
            row.update(dict(zip(fields, values)))
            self._rows = [row]
            return

        raise AssertionError(f"Unhandled query: {normalized}")

    async def fetchone(self):
        if not self._rows:
            return None
        return self._rows[0]


class FakeTransactionsConnection:
    def __init__(self):
        self.rows: dict[int, dict] = {}
        self.next_id = 0

    def cursor(self):
        return FakeTransactionsCursor(self)

    def add(self, **fields) -> int:
        self.next_id += 1
        row = {
            "id": self.next_id,
            "user_id": USER_ID,
            "account_id": 3,
            "note": None,
            "created_at": CREATED_AT,
            "updated_at": CREATED_AT,
            "deleted_at": None,
            **fields,
        }
        self.rows[row["id"]] = row
        return row["id"]


def _app(connection, limits=None, spent_rows=None):
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(transactions_router.router)

    service = LimitValidationService(
        FakeLimitStore(limits if limits is not None else [WEEKLY]),
        FakePreferenceStore(PREFS),
        FakeTransactionStore(spent_rows or []),
    )

    async def override_db():
        yield connection

    app.dependency_overrides[transactions_router.get_db_connection] = override_db
    app.dependency_overrides[transactions_router.get_current_user_id] = lambda: USER_ID
    app.dependency_overrides[transactions_router.get_limit_validation_service] = lambda: service
    return app


def test_create_within_limit_inserts_row() -> None:
    connection = FakeTransactionsConnection()

    with TestClient(_app(connection)) as client:
        response = client.post(
            "/transactions",
            json={"account_id": 3, "amount": "120.00", "occurred_at": "2024-01-17T10:00:00", "note": "  groceries "},
        )

    assert response.status_code == 201
    payload = response.json()
    assert payload["amount"] == "120.00"
    assert payload["note"] == "groceries"
    assert payload["warnings"] == []
    assert len(connection.rows) == 1


def test_create_over_limit_is_rejected_without_insert() -> None:
    connection = FakeTransactionsConnection()
    spent = [(3, Decimal("450.00"), datetime(2024, 1, 16, 9, 0))]

    with TestClient(_app(connection, spent_rows=spent)) as client:
        response = client.post(
            "/transactions",
            json={"account_id": 3, "amount": "100.00", "occurred_at": "2024-01-17T10:00:00"},
        )

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["message"] == "Transaction exceeds account spending limits"
    assert detail["errors"] == [
        "Weekly limit of 500.00 exceeded: spent 450.00 between 2024-01-15 and 2024-01-21, 50.00 remaining"
    ]
    assert connection.rows == {}


def test_create_near_limit_returns_warning() -> None:
    connection = FakeTransactionsConnection()
    spent = [(3, Decimal("350.00"), datetime(2024, 1, 16, 9, 0))]

    with TestClient(_app(connection, spent_rows=spent)) as client:
        response = client.post(
            "/transactions",
            json={"account_id": 3, "amount": "100.00", "occurred_at": "2024-01-17T10:00:00"},
        )

    assert response.status_code == 201
    assert response.json()["warnings"] == [
        "Weekly limit of 500.00 is above the 80% warning threshold (400.00): spent 350.00, 150.00 remaining"
    ]


def test_patch_smaller_amount_succeeds_even_when_over_limit() -> None:
    connection = FakeTransactionsConnection()
    transaction_id = connection.add(amount=Decimal("300.00"), occurred_at=datetime(2024, 1, 16, 9, 0))
    spent = [(3, Decimal("900.00"), datetime(2024, 1, 16, 9, 0))]

    with TestClient(_app(connection, spent_rows=spent)) as client:
        response = client.patch(f"/transactions/{transaction_id}", json={"amount": "250.00"})

    assert response.status_code == 200
    assert response.json()["amount"] == "250.00"
    assert connection.rows[transaction_id]["amount"] == Decimal("250.00")


def test_patch_increase_over_limit_is_rejected() -> None:
    connection = FakeTransactionsConnection()
    transaction_id = connection.add(amount=Decimal("300.00"), occurred_at=datetime(2024, 1, 16, 9, 0))
    spent = [(3, Decimal("300.00"), datetime(2024, 1, 16, 9, 0))]

    with TestClient(_app(connection, spent_rows=spent)) as client:
        response = client.patch(f"/transactions/{transaction_id}", json={"amount": "550.00"})

    assert response.status_code == 400
    assert connection.rows[transaction_id]["amount"] == Decimal("300.00")


def test_patch_note_only_skips_limit_checks() -> None:
    connection = FakeTransactionsConnection()
    transaction_id = connection.add(amount=Decimal("300.00"), occurred_at=datetime(2024, 1, 16, 9, 0))

    with TestClient(_app(connection, limits=[])) as client:
        response = client.patch(f"/transactions/{transaction_id}", json={"note": "rent share"})

    assert response.status_code == 200
    assert response.json()["note"] == "rent share"


def test_patch_missing_and_foreign_transactions() -> None:
    connection = FakeTransactionsConnection()
    foreign_id = connection.add(user_id=99, amount=Decimal("10.00"), occurred_at=datetime(2024, 1, 16))

    with TestClient(_app(connection)) as client:
        missing = client.patch("/transactions/404", json={"amount": "1.00"})
        foreign = client.patch(f"/transactions/{foreign_id}", json={"amount": "1.00"})

    assert missing.status_code == 404
    assert foreign.status_code == 403


def test_patch_requires_a_field() -> None:
    connection = FakeTransactionsConnection()
    transaction_id = connection.add(amount=Decimal("10.00"), occurred_at=datetime(2024, 1, 16))

    with TestClient(_app(connection)) as client:
        response = client.patch(f"/transactions/{transaction_id}", json={})

    assert response.status_code == 422


def test_money_fields_serialize_with_two_decimals() -> None:
    stamp = datetime(2024, 1, 16, 9, 0)
    response = transactions_router.TransactionResponse(
        id=1,
        user_id=USER_ID,
        account_id=3,
        amount=Decimal("12.345"),
        occurred_at=stamp,
        note=None,
        created_at=stamp,
        updated_at=stamp,
    )
    limit = AccountLimitOut.model_validate(WEEKLY)

    assert response.model_dump()["amount"] == "12.35"
    assert limit.model_dump()["limit_amount"] == "500.00"
