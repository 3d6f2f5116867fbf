"""
Explicit success/degraded results for pipeline stages.

Every recoverable stage returns a StageResult: either the value it produced, or
its documented default together with the StageError that forced the fallback.
Callers never see the underlying exception.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class StageError:
    stage: str
    error_type: str
    message: str
    timed_out: bool = False


@dataclass(frozen=True)
class StageResult(Generic[T]):
    stage: str
    value: T
    error: Optional[StageError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, stage: str, value: T) -> "StageResult[T]":
        return cls(stage=stage, value=value)

    @classmethod
    def degraded(cls, stage: str, default: T, error: StageError) -> "StageResult[T]":
        return cls(stage=stage, value=default, error=error)


async def run_stage(
    stage: str,
    operation: Callable[[], Awaitable[T]],
    default_factory: Callable[[], T],
    timeout: Optional[float] = None,
) -> StageResult[T]:
    """
    Run one stage operation, converting any failure into its default.

    Args:
        stage: Stage name used in logs and in the StageError
        operation: Zero-argument coroutine factory doing the stage's work
        default_factory: Builds the stage-local default on failure
        timeout: Seconds before the operation is abandoned (None = no limit)

    Returns:
        StageResult holding either the produced value or the default
    """
    try:
        value = await asyncio.wait_for(operation(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Stage %s timed out after %ss, using default", stage, timeout)
        return StageResult.degraded(
            stage,
            default_factory(),
            StageError(stage, "TimeoutError", f"timed out after {timeout}s", timed_out=True),
        )
    except Exception as e:
        logger.warning("Stage %s failed (%s: %s), using default", stage, type(e).__name__, e)
        return StageResult.degraded(
            stage, default_factory(), StageError(stage, type(e).__name__, str(e))
        )

    return StageResult.success(stage, value)
