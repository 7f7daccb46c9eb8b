import json
import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from fintrack.errors import register_error_handlers
from fintrack.logging_config import JsonFormatter, RequestIdFilter, request_context_middleware, request_id_ctx
from fintrack.main import app
from fintrack.services.limit_errors import UnsupportedPeriodError


def test_health_and_request_id_header() -> None:
    with TestClient(app) as client:
        response = client.get("/health", headers={"x-request-id": "req-123"})

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["x-request-id"] == "req-123"


def test_routes_are_mounted() -> None:
    assert app.url_path_for("create_transaction") == "/transactions"
    assert app.url_path_for("update_transaction", transaction_id=5) == "/transactions/5"
    assert app.url_path_for("get_remaining_budgets", account_id=3) == "/accounts/3/limits/remaining"
    assert app.url_path_for("check_limits", account_id=3) == "/accounts/3/limits/check"


def test_engine_error_body_carries_request_id() -> None:
    error_app = FastAPI()
    error_app.middleware("http")(request_context_middleware)
    register_error_handlers(error_app)

    @error_app.get("/broken")
    async def broken() -> None:
        raise UnsupportedPeriodError("year")

    with TestClient(error_app) as client:
        response = client.get("/broken", headers={"x-request-id": "req-9"})

    assert response.status_code == 400
    assert response.json()["error"] == "unsupported_period"
    assert response.json()["request_id"] == "req-9"


def test_json_formatter_includes_request_id() -> None:
    record = logging.LogRecord("fintrack.test", logging.INFO, __file__, 1, "limit %s", ("ok",), None)
    token = request_id_ctx.set("abc")
    try:
        RequestIdFilter().filter(record)
    finally:
        request_id_ctx.reset(token)

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "limit ok"
    assert payload["logger"] == "fintrack.test"
    assert payload["request_id"] == "abc"
    assert "account_id" not in payload


def test_json_formatter_emits_engine_context_fields() -> None:
    logger = logging.getLogger("fintrack.test.context")
    record = logger.makeRecord(
        logger.name,
        logging.INFO,
        __file__,
        1,
        "transaction exceeds limits",
        (),
        None,
        extra={"account_id": 3, "user_id": 7, "limit_id": 11},
    )
    RequestIdFilter().filter(record)

    payload = json.loads(JsonFormatter().format(record))

    assert payload["account_id"] == 3
    assert payload["user_id"] == 7
    assert payload["limit_id"] == 11
    assert payload["request_id"] == "-"
