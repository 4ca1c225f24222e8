"""Error definitions for pipejoin."""

from typing import Any, Dict, Optional


class PipejoinError(Exception):
    """Base exception for all pipejoin errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context


class OperationFailure(PipejoinError):
    """A single join element or pipeline stage failed.

    ``cause`` is the exception the underlying operation raised and
    ``index`` is its position (join element or stage index).
    """

    def __init__(
        self, message: str, *, cause: BaseException, index: Optional[int] = None, **context: Any
    ) -> None:
        super().__init__(message, **context)
        self.cause = cause
        self.index = index


class JoinFailure(PipejoinError):
    """A join failed; carries the failure of the lowest-indexed failed element."""

    def __init__(self, message: str, *, failure: OperationFailure, **context: Any) -> None:
        super().__init__(message, **context)
        self.failure = failure
        self.index = failure.index

    @property
    def cause(self) -> BaseException:
        return self.failure.cause


class PipelineFailure(PipejoinError):
    """A pipeline stopped at a failing stage."""

    def __init__(
        self,
        message: str,
        *,
        failure: OperationFailure,
        stage_index: int,
        stage_name: str,
        **context: Any,
    ) -> None:
        super().__init__(message, **context)
        self.failure = failure
        self.stage_index = stage_index
        self.stage_name = stage_name

    @property
    def cause(self) -> BaseException:
        return self.failure.cause


class ConfigurationError(PipejoinError):
    """Configuration is invalid or missing."""
    pass
