"""Sequential pipeline of stages with short-circuiting failure."""

import inspect
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from .errors import OperationFailure, PipelineFailure
from .logging_config import get_logger, short_repr, trace_limit
from .types import Stage, callable_name


class RunState(str, Enum):
    """Lifecycle of a single pipeline invocation."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class PipelineRun:
    """State of one pipeline invocation.

    A fresh record is created for every call; nothing carries over between
    invocations of the same pipeline.
    """

    pipeline: str
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: RunState = RunState.IDLE
    stage: Optional[int] = None
    completed_stages: int = 0
    result: Any = None
    failure: Optional[PipelineFailure] = None

    @property
    def settled(self) -> bool:
        return self.state in (RunState.SUCCEEDED, RunState.FAILED)

    @property
    def succeeded(self) -> bool:
        return self.state is RunState.SUCCEEDED

    def unwrap(self) -> Any:
        """Return the result, or raise the failure that stopped the run."""
        if self.failure is not None:
            raise self.failure.with_traceback(None)
        if not self.succeeded:
            raise RuntimeError(f"Pipeline run {self.run_id} has not settled (state={self.state.value})")
        return self.result

    def log_extra(self, **fields: Any) -> Dict[str, Any]:
        return {"extra_fields": {"run_id": self.run_id, "pipeline": self.pipeline, **fields}}


class Pipeline:
    """Chain of stages executed one after another.

    Each stage receives the resolved output of the previous one; stages may be
    plain or ``async`` callables. The first failing stage stops the run and
    later stages are never called. Pipelines are immutable: ``with_stage``
    returns a new pipeline.
    """

    def __init__(self, stages: Iterable[Stage], name: Optional[str] = None) -> None:
        stages = tuple(stages)
        if not stages:
            raise ValueError("Pipeline requires at least one stage.")
        for stage in stages:
            if not callable(stage):
                raise TypeError(f"Pipeline stage is not callable: {stage!r}")

        self.stages: Tuple[Stage, ...] = stages
        self.stage_names: Tuple[str, ...] = tuple(callable_name(s) for s in stages)
        self.name = name or " | ".join(self.stage_names)
        # Lets a pipeline be named when nested as a stage of another one
        self.__name__ = self.name
        self.logger = get_logger(f"{__name__}.Pipeline")

    def with_stage(self, stage: Stage, name: Optional[str] = None) -> "Pipeline":
        """Return a new pipeline with ``stage`` appended."""
        return Pipeline(self.stages + (stage,), name=name)

    async def run(self, value: Any) -> PipelineRun:
        """Run the pipeline and return the settled run record instead of raising."""
        run = PipelineRun(pipeline=self.name)
        total = len(self.stages)
        limit = trace_limit(self.logger)

        self.logger.info(
            f"Starting pipeline: {self.name}",
            extra=run.log_extra(stage_count=total),
        )
        run.state = RunState.RUNNING
        current = value

        for index, stage in enumerate(self.stages):
            stage_name = self.stage_names[index]
            run.stage = index
            self.logger.debug(
                f"Running stage {index + 1}/{total}: {stage_name}",
                extra=run.log_extra(stage=index, stage_name=stage_name),
            )

            try:
                output = stage(current)
                if inspect.isawaitable(output):
                    output = await output
            except Exception as e:
                run.failure = self._failure(run, index, e)
                run.state = RunState.FAILED
                self.logger.error(
                    f"Pipeline failed: {self.name} at stage {index + 1}/{total} ({stage_name})",
                    exc_info=True,
                    extra=run.log_extra(
                        stage=index,
                        stage_name=stage_name,
                        error_type=type(e).__name__,
                    ),
                )
                return run

            current = output
            run.completed_stages = index + 1
            if limit is not None:
                self.logger.debug(
                    f"Stage {stage_name} produced {short_repr(current, limit)}",
                    extra=run.log_extra(stage=index, stage_name=stage_name),
                )

        run.result = current
        run.state = RunState.SUCCEEDED
        self.logger.info(
            f"Pipeline completed: {self.name}",
            extra=run.log_extra(stage_count=total),
        )
        return run

    async def __call__(self, value: Any) -> Any:
        run = await self.run(value)
        return run.unwrap()

    def _failure(self, run: PipelineRun, index: int, error: Exception) -> PipelineFailure:
        stage_name = self.stage_names[index]
        operation = OperationFailure(
            f"Stage {index + 1} ({stage_name}) failed: {error!r}",
            cause=error,
            index=index,
        )
        failure = PipelineFailure(
            f"Pipeline '{self.name}' failed at stage {index + 1}/{len(self.stages)} "
            f"({stage_name}): {error!r}",
            failure=operation,
            stage_index=index,
            stage_name=stage_name,
            run_id=run.run_id,
        )
        failure.__cause__ = error
        return failure

    def __len__(self) -> int:
        return len(self.stages)

    def __repr__(self) -> str:
        return f"Pipeline(name={self.name!r}, stages={list(self.stage_names)})"


def pipeline(*stages: Stage, name: Optional[str] = None) -> Pipeline:
    """Compose ``stages`` into one awaitable callable.

    ``await pipeline(s1, s2, s3)(value)`` is ``s3(s2(s1(value)))`` with every
    intermediate result awaited before the next stage starts.
    """
    return Pipeline(stages, name=name)
