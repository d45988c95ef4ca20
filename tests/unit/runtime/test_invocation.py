"""Tests for per-invocation logging scopes."""

import pytest
from loguru import logger

from src.user_service.runtime.invocation import invocation_scope


@pytest.fixture
def captured_extras():
    records: list[dict] = []
    sink_id = logger.add(lambda message: records.append(dict(message.record["extra"])))
    yield records
    logger.remove(sink_id)


def test_fields_attached_inside_scope(captured_extras):
    with invocation_scope("corr-1", user_id="u1", trigger="test") as ctx:
        logger.info("inside")

    assert ctx.correlation_id == "corr-1"
    assert captured_extras[-1]["correlation_id"] == "corr-1"
    assert captured_extras[-1]["user_id"] == "u1"
    assert captured_extras[-1]["trigger"] == "test"


def test_fields_cleared_after_exception(captured_extras):
    with pytest.raises(RuntimeError):
        with invocation_scope("corr-2", user_id="u2"):
            raise RuntimeError("boom")

    logger.info("after")

    assert captured_extras[-1].get("correlation_id", "-") != "corr-2"
    assert "user_id" not in captured_extras[-1]


def test_generates_correlation_id():
    with invocation_scope() as first, invocation_scope() as second:
        assert first.correlation_id
        assert first.correlation_id != second.correlation_id


def test_bound_logger_carries_fields(captured_extras):
    with invocation_scope("corr-3") as ctx:
        pass

    ctx.log.info("later")

    assert captured_extras[-1]["correlation_id"] == "corr-3"
    assert ctx.log_fields() == {"correlation_id": "corr-3"}
