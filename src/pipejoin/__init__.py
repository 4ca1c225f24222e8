"""Async composition primitives: join, spread and pipeline.

Usage:
    from pipejoin import fan_out, join, pipeline, spread

    enrich = pipeline(
        fetch,
        fan_out(store),                      # -> (record, ack)
        spread(lambda record, ack: transform(record)),
    )
    result = await enrich(key)
"""

from .chain import Pipeline, PipelineRun, RunState, pipeline
from .errors import (
    ConfigurationError,
    JoinFailure,
    OperationFailure,
    PipejoinError,
    PipelineFailure,
)
from .join import fan_out, join
from .logging_config import get_logger, setup_logging, setup_logging_from_config
from .spread import ABSENT, Absent, spread
from .types import AsyncValue, Stage

__version__ = "0.1.0"
__all__ = [
    # Combinators
    "join",
    "fan_out",
    "spread",
    "pipeline",
    "Pipeline",
    "PipelineRun",
    "RunState",
    "ABSENT",
    "Absent",
    "AsyncValue",
    "Stage",
    # Errors
    "PipejoinError",
    "OperationFailure",
    "JoinFailure",
    "PipelineFailure",
    "ConfigurationError",
    # Logging
    "get_logger",
    "setup_logging",
    "setup_logging_from_config",
]
