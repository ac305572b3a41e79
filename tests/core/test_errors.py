"""Tests for error types and codes."""

import pytest

from diffcov.core.errors import (
    ConfigError,
    DiffCovError,
    ErrorCode,
    InternalError,
    ReconciliationConflictError,
)
from diffcov.diff.errors import DiffCancelledError, DuplicateClassError


class TestErrorCode:
    """Error code value tests."""

    @pytest.mark.parametrize(
        ("code", "expected_range"),
        [
            (ErrorCode.CONFIG_PARSE_ERROR, 2000),
            (ErrorCode.CONFIG_INVALID_VALUE, 2000),
            (ErrorCode.DIFF_DUPLICATE_CLASS, 3000),
            (ErrorCode.DIFF_CANCELLED, 3000),
            (ErrorCode.COVERAGE_CONFLICTING_CLASS, 4000),
            (ErrorCode.INTERNAL_ERROR, 9000),
            (ErrorCode.INTERNAL_TIMEOUT, 9000),
        ],
    )
    def test_given_error_code_when_checked_then_in_correct_range(
        self, code: ErrorCode, expected_range: int
    ) -> None:
        """Error codes fall within their designated numeric range."""
        # Given
        error_code = code

        # When
        value = error_code.value

        # Then
        assert expected_range <= value < expected_range + 1000


class TestDiffCovError:
    """Base error behavior tests."""

    def test_given_error_when_to_dict_then_serializes_all_fields(self) -> None:
        """Error serializes to dict with all required fields."""
        # Given
        error = DiffCovError(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message="Test message",
            retryable=True,
            details={"key": "value"},
        )

        # When
        result = error.to_dict()

        # Then
        assert result == {
            "code": 2001,
            "error": "CONFIG_PARSE_ERROR",
            "message": "Test message",
            "retryable": True,
            "details": {"key": "value"},
        }

    def test_given_error_when_str_then_human_readable(self) -> None:
        """Error string representation is human readable."""
        # Given
        error = DiffCovError(code=ErrorCode.INTERNAL_ERROR, message="Something broke")

        # When
        result = str(error)

        # Then
        assert result == "[9001] INTERNAL_ERROR: Something broke"

    def test_given_error_when_raised_then_catchable_as_exception(self) -> None:
        """Errors are ordinary exceptions."""
        with pytest.raises(DiffCovError):
            raise InternalError.unexpected("boom")


class TestConfigError:
    """ConfigError factory method tests."""

    @pytest.mark.parametrize(
        ("factory", "kwargs", "expected_code"),
        [
            (
                "parse_error",
                {"path": "/foo", "reason": "bad yaml"},
                ErrorCode.CONFIG_PARSE_ERROR,
            ),
            (
                "invalid_value",
                {"field": "old_tag", "value": "", "reason": "empty"},
                ErrorCode.CONFIG_INVALID_VALUE,
            ),
            ("missing_required", {"field": "new_branch"}, ErrorCode.CONFIG_MISSING_REQUIRED),
        ],
    )
    def test_given_factory_when_called_then_correct_code(
        self, factory: str, kwargs: dict[str, object], expected_code: ErrorCode
    ) -> None:
        """Factory methods produce errors with correct error codes."""
        # Given
        factory_method = getattr(ConfigError, factory)

        # When
        error = factory_method(**kwargs)

        # Then
        assert error.code == expected_code

    def test_given_parse_error_when_created_then_path_in_details(self) -> None:
        """Parse error includes file path in details."""
        # Given
        path = "/config.yaml"
        reason = "invalid syntax"

        # When
        error = ConfigError.parse_error(path, reason)

        # Then
        assert error.details["path"] == path
        assert reason in error.message


class TestDomainErrors:
    """Diff and coverage error factories."""

    def test_given_duplicate_class_when_created_then_paths_in_details(self) -> None:
        """Duplicate class error names every claiming file."""
        # Given
        paths = ["a/Dup.java", "b/Dup.java"]

        # When
        error = DuplicateClassError.for_paths("pkg.Dup", paths)

        # Then
        assert error.code == ErrorCode.DIFF_DUPLICATE_CLASS
        assert error.details == {"qualified_name": "pkg.Dup", "paths": paths}
        assert "a/Dup.java, b/Dup.java" in error.message
        assert not error.retryable

    def test_given_cancel_and_timeout_when_created_then_retryable(self) -> None:
        """Cancelled and timed-out diffs can be retried."""
        cancelled = DiffCancelledError.cancelled(3)
        timed_out = DiffCancelledError.timed_out(1.5, 2)

        assert cancelled.code == ErrorCode.DIFF_CANCELLED
        assert cancelled.details["pending_files"] == 3
        assert timed_out.code == ErrorCode.INTERNAL_TIMEOUT
        assert timed_out.retryable

    def test_given_conflicting_ids_when_created_then_name_in_message(self) -> None:
        """Conflict error names the class."""
        error = ReconciliationConflictError.conflicting_ids("pkg.Foo", ["x", "y"])

        assert "pkg.Foo" in error.message
        assert error.details["class_ids"] == ["x", "y"]


class TestInternalError:
    """InternalError tests."""

    def test_given_unexpected_error_when_created_then_includes_extras(self) -> None:
        """Unexpected error captures arbitrary extra details."""
        # Given
        message = "boom"
        extras = {"foo": "bar", "count": 42}

        # When
        error = InternalError.unexpected(message, **extras)

        # Then
        assert error.details == extras
        assert error.code == ErrorCode.INTERNAL_ERROR
