"""
Tests for ServiceResult and BaseService.
"""

import logging

import pytest
from django.db import connection

from core.exceptions import NotFoundError
from core.services import BaseService, ServiceResult


class SampleService(BaseService):
    pass


class TestServiceResult:
    """Tests for the result wrapper."""

    def test_success(self):
        result = ServiceResult.success({"id": 1})

        assert result.success is True
        assert result.data == {"id": 1}
        assert result.error is None
        assert bool(result) is True

    def test_ok_is_alias(self):
        assert ServiceResult.ok(5) == ServiceResult.success(5)

    def test_failure(self):
        result = ServiceResult.failure("Nope", error_code="NOPE", details={"a": 1})

        assert result.success is False
        assert result.data is None
        assert result.error_code == "NOPE"
        assert result.details == {"a": 1}
        assert bool(result) is False

    def test_from_domain_exception_keeps_code_and_details(self):
        exc = NotFoundError("Missing", details={"id": "x"})

        result = ServiceResult.from_exception(exc)

        assert result.error == "Missing"
        assert result.error_code == "NOT_FOUND"
        assert result.details == {"id": "x"}

    def test_from_plain_exception(self):
        result = ServiceResult.from_exception(RuntimeError("boom"))

        assert result.error == "boom"
        assert result.error_code == "RUNTIMEERROR"
        assert result.details is None

    def test_explicit_code_wins(self):
        result = ServiceResult.from_exception(
            NotFoundError("Missing"), error_code="COMPENSATION_FAILED"
        )

        assert result.error_code == "COMPENSATION_FAILED"

    def test_to_response(self):
        assert ServiceResult.success(3).to_response() == {"success": True, "data": 3}
        assert ServiceResult.failure("bad", error_code="BAD").to_response() == {
            "success": False,
            "error": "bad",
            "error_code": "BAD",
        }


class TestBaseService:
    """Tests for the service base class helpers."""

    def test_logger_named_after_class(self):
        logger = SampleService.get_logger()

        assert isinstance(logger, logging.Logger)
        assert logger.name == f"{__name__}.SampleService"

    @pytest.mark.django_db(transaction=True)
    def test_atomic_opens_transaction(self):
        assert connection.in_atomic_block is False

        with SampleService.atomic():
            assert connection.in_atomic_block is True

        assert connection.in_atomic_block is False
