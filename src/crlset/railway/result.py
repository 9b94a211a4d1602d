"""
Result monad for the CRLSet pipeline.

A Result[T] is either Success(value) or Failure(FailureDescription). Port
adapters and the composed pipeline return Results so a stage failure
short-circuits every later stage:

    fetch ──Success──▶ parse_container ──Success──▶ verify ──Success──▶ ... ──▶ Result[CRLSet]
      │ Failure              │ Failure                 │ Failure
      └──────────────────────┴─────────────────────────┴───────────────────────▶ Result[CRLSet]

The pure domain functions raise; Result.attempt() is the single place where
a raised CrlSetError is turned into a Failure carrying that same exception.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from crlset.railway.failure import ErrorCode, FailureDescription, code_for

T = TypeVar("T")
U = TypeVar("U")


class Result(Generic[T]):
    """
    Either a Success(value) or a Failure(FailureDescription).

        >>> Result.success(3).map(lambda n: n + 1).value()
        4
        >>> Result.failure(ErrorCode.TRUNCATED, "short").map(lambda n: n + 1).is_failure()
        True
    """

    # ──────────────────────── Introspection ────────────────────────

    def is_success(self) -> bool:
        return isinstance(self, Success)

    def is_failure(self) -> bool:
        return isinstance(self, Failure)

    def value(self) -> T:
        """Success value; raises ValueError on a Failure."""
        match self:
            case Success(v):
                return v
            case Failure(err):
                raise ValueError(f"Cannot get value from a Failure: {err.message}")
        raise TypeError("unreachable")  # pragma: no cover

    def error(self) -> FailureDescription:
        """Failure description; raises ValueError on a Success."""
        match self:
            case Failure(err):
                return err
            case Success(v):
                raise ValueError(f"Cannot get error from a Success: {v!r}")
        raise TypeError("unreachable")  # pragma: no cover

    # ──────────────────────── Transformations ────────────────────────

    def map(self, mapper: Callable[[T], U]) -> Result[U]:
        match self:
            case Success(v):
                return Success(mapper(v))
            case Failure(err):
                return Failure(err)
        raise TypeError("unreachable")  # pragma: no cover

    def flat_map(self, mapper: Callable[[T], Result[U]]) -> Result[U]:
        """Chain a Result-returning stage; a Failure skips it."""
        match self:
            case Success(v):
                return mapper(v)
            case Failure(err):
                return Failure(err)
        raise TypeError("unreachable")  # pragma: no cover

    def ensure(
        self,
        predicate: Callable[[T], bool],
        error: Callable[[T], BaseException],
    ) -> Result[T]:
        """
        Keep the success value only if predicate holds.

        `error` builds the exception recorded in the Failure, so the failure
        track still carries a typed CrlSetError:

            result.ensure(lambda ok: ok, lambda _: SignatureMismatchError("CRX signature verification failed."))
        """

        def _check(v: T) -> Result[T]:
            if predicate(v):
                return Success(v)
            return Result.from_exception(error(v))

        return self.flat_map(_check)

    # ──────────────────────── Side Effects ────────────────────────

    def peek(self, action: Callable[[T], Any]) -> Result[T]:
        """Run a side effect on the success value; the Result is unchanged."""
        match self:
            case Success(v):
                action(v)
        return self

    def peek_failure(self, action: Callable[[FailureDescription], Any]) -> Result[T]:
        match self:
            case Failure(err):
                action(err)
        return self

    # ──────────────────────── Factories ────────────────────────

    @staticmethod
    def success(value: T) -> Result[T]:
        return Success(value)

    @staticmethod
    def failure(
        code: ErrorCode,
        message: str,
        exception: BaseException | None = None,
    ) -> Result[T]:
        return Failure(FailureDescription(code=code, message=message, exception=exception))

    @staticmethod
    def from_exception(exception: BaseException) -> Result[T]:
        """Failure whose code is derived from the exception type."""
        return Failure(FailureDescription(code=code_for(exception), message=str(exception), exception=exception))

    @staticmethod
    def attempt(computation: Callable[[], T]) -> Result[T]:
        """
        Run a raising computation on the railway.

        The exception is kept as-is; its class picks the ErrorCode.
        """
        try:
            return Result.success(computation())
        except Exception as e:
            return Result.from_exception(e)

    @staticmethod
    def from_computation(
        computation: Callable[[], T],
        error_code: ErrorCode,
        error_message: str,
    ) -> Result[T]:
        """
        Run a raising computation with a fixed failure code and message.

        For calls whose exceptions are outside the CRLSet taxonomy, such as
        settings loading.
        """
        try:
            return Result.success(computation())
        except Exception as e:
            return Result.failure(error_code, error_message, e)

    # ──────────────────────── Dunder methods ────────────────────────

    def __bool__(self) -> bool:
        return self.is_success()


@dataclass(frozen=True, slots=True)
class Success(Result[T]):
    """The success track."""

    _value: T

    def __init__(self, value: T) -> None:
        if value is None:
            raise TypeError("Success value must not be None")
        object.__setattr__(self, "_value", value)

    def __repr__(self) -> str:
        return f"Success({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Success):
            return self._value == other._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(("Success", self._value))


Success.__match_args__ = ("_value",)


@dataclass(frozen=True, slots=True)
class Failure(Result[T]):
    """The failure track."""

    _error: FailureDescription

    def __init__(self, error: FailureDescription) -> None:
        if error is None:
            raise TypeError("Failure error must not be None")
        object.__setattr__(self, "_error", error)

    def __repr__(self) -> str:
        return f"Failure({self._error.code.value}: {self._error.message!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Failure):
            return self._error.code == other._error.code and self._error.message == other._error.message
        return NotImplemented

    def __hash__(self) -> int:
        return hash(("Failure", self._error.code, self._error.message))


Failure.__match_args__ = ("_error",)
