"""Tests for the structured logging system (licenseiq_kernel/logging_config.py)."""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest

from licenseiq_kernel.exceptions import InvalidJobTransitionError
from licenseiq_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite configuration."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_all_logs(stream)[0]
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "licenseiq.test"
        assert "ts" in record

    def test_extra_fields_and_uuid_serialization(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        job_id = uuid4()
        get_logger("test").info("import_job_staged", extra={"staged": 9, "job_ref": job_id})

        record = _parse_all_logs(stream)[0]
        assert record["staged"] == 9
        assert record["job_ref"] == str(job_id)

    def test_exception_fields_flattened(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        job_id = uuid4()
        try:
            raise InvalidJobTransitionError(job_id, "cancelled", "commit")
        except InvalidJobTransitionError:
            get_logger("test").exception("commit_rejected")

        record = _parse_all_logs(stream)[0]
        assert record["exc_type"] == "InvalidJobTransitionError"
        assert record["exc_code"] == InvalidJobTransitionError.code
        assert record["exc_job_id"] == str(job_id)
        assert "traceback" in record


class TestLogContext:
    def test_bind_adds_fields_and_restores(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        actor = uuid4()

        with LogContext.bind(actor_id=actor, producer="import_staging"):
            logger.info("inside")
            with LogContext.bind(producer="import_commit"):
                logger.info("nested")
            logger.info("after_nested")
        logger.info("outside")

        inside, nested, after_nested, outside = _parse_all_logs(stream)
        assert inside["actor_id"] == str(actor)
        assert nested["producer"] == "import_commit"
        assert after_nested["producer"] == "import_staging"
        assert "actor_id" not in outside

    def test_none_values_are_ignored(self):
        with LogContext.bind(job_id=None, company_id="c1"):
            assert LogContext.get_all() == {"company_id": "c1"}

    def test_clear(self):
        LogContext.set(correlation_id="req-1")
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestConfigureLogging:
    def test_idempotent(self):
        handler, _ = _make_handler()
        other, _ = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        configure_logging(handler=other)
        handlers = logging.getLogger("licenseiq").handlers
        assert handlers.count(handler) == 1
        assert other not in handlers

    def test_does_not_propagate_to_root(self):
        configure_logging()
        assert logging.getLogger("licenseiq").propagate is False
