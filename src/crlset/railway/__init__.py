"""
Railway-oriented error handling for the CRLSet pipeline.

    from crlset.railway import ErrorCode, Result

    Result.attempt(lambda: parse_container(raw)).flat_map(...)
"""

from crlset.railway.failure import ErrorCode, FailureDescription, code_for
from crlset.railway.result import Failure, Result, Success
from crlset.railway.execution import (
    ExecutionContext,
    LoggingExecutionContext,
    NoOpExecutionContext,
)
from crlset.railway.assertions import ResultAssertions

__all__ = [
    "ErrorCode",
    "ExecutionContext",
    "Failure",
    "FailureDescription",
    "LoggingExecutionContext",
    "NoOpExecutionContext",
    "Result",
    "ResultAssertions",
    "Success",
    "code_for",
]
