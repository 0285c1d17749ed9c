import json
import logging
from decimal import Decimal

from storefront.core.logging_config import JsonFormatter, RequestIdFilter, request_id_ctx_var


def _record(**extra) -> logging.LogRecord:
    record = logging.makeLogRecord(
        {"name": "storefront.services.wallet", "levelno": logging.INFO, "levelname": "INFO", "msg": "wallet_debited"}
    )
    record.__dict__.update(extra)
    return record


def test_json_formatter_includes_extras_and_request_id() -> None:
    token = request_id_ctx_var.set("req-123")
    try:
        record = _record(user_id="u-1", amount=Decimal("150.00"))
        RequestIdFilter().filter(record)
        payload = json.loads(JsonFormatter().format(record))
    finally:
        request_id_ctx_var.reset(token)

    assert payload["message"] == "wallet_debited"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "storefront.services.wallet"
    assert payload["request_id"] == "req-123"
    assert payload["user_id"] == "u-1"
    assert payload["amount"] == "150.00"


def test_request_id_defaults_to_dash() -> None:
    record = _record()
    RequestIdFilter().filter(record)
    assert record.request_id == "-"
