"""
Tests for ServiceResult and BaseService.
"""

import pytest

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from core.services import BaseService, ServiceResult


class ExampleService(BaseService):
    pass


class TestServiceResult:
    def test_success(self):
        result = ServiceResult.success({"id": 1})

        assert result.success is True
        assert result.data == {"id": 1}
        assert bool(result) is True

    def test_failure(self):
        result = ServiceResult.failure("Payment not due", error_code="PAYMENT_NOT_DUE")

        assert bool(result) is False
        assert result.data is None
        assert result.error == "Payment not due"
        assert result.error_code == "PAYMENT_NOT_DUE"

    def test_from_application_error_keeps_code(self):
        exc = ConflictError("Payment changed", error_code="STALE_RECORD")

        result = ServiceResult.from_exception(exc)

        assert result.error == "Payment changed"
        assert result.error_code == "STALE_RECORD"

    def test_from_plain_exception(self):
        result = ServiceResult.from_exception(KeyError("missing"))

        assert result.error_code == "KEYERROR"
        assert "missing" in result.error

    def test_explicit_code_wins(self):
        result = ServiceResult.from_exception(BaseApplicationError("x"), error_code="OVERRIDE")

        assert result.error_code == "OVERRIDE"


class TestBaseService:
    def test_logger_named_after_class(self):
        assert ExampleService.get_logger().name == f"{__name__}.ExampleService"


class TestBaseApplicationError:
    def test_to_dict_omits_empty_details(self):
        assert BaseApplicationError("Boom").to_dict() == {"error": "Boom", "error_code": "APPLICATION_ERROR"}

    def test_to_dict_with_details(self):
        exc = ConflictError("Busy", details={"key": "lock:sweep"})

        assert exc.to_dict() == {"error": "Busy", "error_code": "CONFLICT", "details": {"key": "lock:sweep"}}

    def test_str(self):
        assert str(ConflictError("Busy")) == "[CONFLICT] Busy"

    @pytest.mark.parametrize(
        "exc_class,code",
        [
            (ValidationError, "VALIDATION_ERROR"),
            (NotFoundError, "NOT_FOUND"),
            (ConflictError, "CONFLICT"),
            (ExternalServiceError, "EXTERNAL_SERVICE_ERROR"),
        ],
    )
    def test_default_codes(self, exc_class, code):
        exc = exc_class("message")

        assert isinstance(exc, BaseApplicationError)
        assert exc.error_code == code
