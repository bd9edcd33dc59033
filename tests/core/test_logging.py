from __future__ import annotations

import logging

from picks_api.common.logging import (
    ConsoleLogFormatter,
    bind_request_context,
    clear_request_context,
    log_context,
)


def _record(message: str, **extra: object) -> logging.LogRecord:
    record = logging.makeLogRecord({"name": "picks_api.test", "levelname": "INFO", "msg": message})
    record.__dict__.update(extra)
    return record


def test_log_context_stringifies_ids_and_drops_missing_ones():
    assert log_context(user_id=None, pick_id=7, amount=1000) == {"pick_id": "7", "amount": 1000}


def test_formatter_renders_correlation_id_and_extras():
    bind_request_context("req-42")
    try:
        line = ConsoleLogFormatter().format(
            _record("purchase.completed", purchase_id="p1", note="two words")
        )
    finally:
        clear_request_context()

    assert "[cid=req-42] purchase.completed" in line
    assert "purchase_id=p1" in line
    assert 'note="two words"' in line


def test_formatter_masks_sensitive_fields():
    line = ConsoleLogFormatter().format(
        _record("user.payout.updated", bank_account_number="000123456789", password="hunter22")
    )

    assert "000123456789" not in line
    assert "hunter22" not in line
    assert "bank_account_number=***" in line


def test_formatter_without_request_uses_placeholder():
    line = ConsoleLogFormatter().format(_record("app.startup"))

    assert "[cid=-]" in line
