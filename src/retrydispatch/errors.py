"""Error hierarchy for retrydispatch.

Every error raised by the package itself inherits from
:class:`DispatchError`.  Each carries a machine-readable ``code`` (from
:class:`ErrorCode`), a human-readable ``message``, an optional structured
``context`` dict, and an optional ``cause`` (chained exception).

Transport failures coming from :mod:`httpx` are **not** wrapped: the retry
loops propagate the last one unchanged so callers can keep their existing
``except httpx.RequestError`` handlers.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable error codes for every error the package raises."""

    CONFIG_ERROR = "CONFIG_ERROR"
    RETRY_INTERRUPTED = "RETRY_INTERRUPTED"


class DispatchError(Exception):
    """Base exception for all retrydispatch errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A developer-friendly description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: BaseException | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


class DispatchConfigError(DispatchError, ValueError):
    """Invalid transport configuration.

    Context keys: ``key``, ``value``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.CONFIG_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class RetryInterruptedError(DispatchError):
    """The wait between two attempts was interrupted.

    No further attempts are made once this is raised.  When the interrupted
    wait followed a transport failure, that failure is chained as the cause.

    Context keys: ``attempt``, ``delay_ms``, ``method``, ``url``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.RETRY_INTERRUPTED,
            message=message,
            context=context,
            cause=cause,
        )
