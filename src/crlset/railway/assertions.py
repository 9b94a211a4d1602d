"""
Test assertions for Result values.

    value = ResultAssertions.assert_success(result)
    error = ResultAssertions.assert_failure(result, ErrorCode.TRUNCATED)
    ResultAssertions.assert_failure_exception(result, TruncatedError)
"""

from __future__ import annotations

from typing import TypeVar

from crlset.railway.failure import ErrorCode, FailureDescription
from crlset.railway.result import Result

T = TypeVar("T")
E = TypeVar("E", bound=BaseException)


class ResultAssertions:
    """Assertions with readable messages for Success/Failure checks."""

    @staticmethod
    def assert_success(result: Result[T], message: str = "") -> T:
        context = f" — {message}" if message else ""
        assert result.is_success(), (
            f"Expected Success but got Failure("
            f"{result.error().code.value}: {result.error().message!r}){context}"
        )
        return result.value()

    @staticmethod
    def assert_failure(
        result: Result[T],
        expected_code: ErrorCode | None = None,
        message: str = "",
    ) -> FailureDescription:
        context = f" — {message}" if message else ""
        assert result.is_failure(), f"Expected Failure but got Success({result.value()!r}){context}"
        error = result.error()
        if expected_code is not None:
            assert error.code == expected_code, (
                f"Expected error code {expected_code.value} "
                f"but got {error.code.value}: {error.message!r}{context}"
            )
        return error

    @staticmethod
    def assert_failure_exception(result: Result[T], expected_type: type[E]) -> E:
        """Assert the failure carries an exception of the given type and return it."""
        error = ResultAssertions.assert_failure(result)
        assert isinstance(error.exception, expected_type), (
            f"Expected {expected_type.__name__} on the failure track "
            f"but got {type(error.exception).__name__}: {error.message!r}"
        )
        return error.exception

    @staticmethod
    def assert_failure_message_contains(result: Result[T], substring: str) -> None:
        error = ResultAssertions.assert_failure(result)
        assert substring.lower() in error.message.lower(), (
            f"Expected failure message to contain {substring!r} but message was: {error.message!r}"
        )
