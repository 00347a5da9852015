"""Lightweight async fan-out with per-task error absorption."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, Sequence, TypeVar

from upnext_tracker.backend.common.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


@dataclass
class TaskSpec(Generic[T]):
    fn: Callable[..., Awaitable[T]]
    args: tuple[Any, ...] = ()
    kwargs: Optional[dict[str, Any]] = None
    name: str = "task"

    def __post_init__(self):
        if self.kwargs is None:
            self.kwargs = {}


async def join_all(
    specs: Sequence[TaskSpec[T]],
    *,
    context: str = "fan_out",
) -> list[Optional[T]]:
    """Run every task concurrently and wait for all of them.

    Results come back in the order of ``specs``. A task that raises contributes
    ``None``; the failure is logged and never retried. Cancelling the caller
    cancels every in-flight task and discards whatever was collected.
    """

    if not specs:
        return []

    async def _wrapped(spec: TaskSpec[T]) -> T:
        log.debug("task_start", extra={"task": spec.name, "context": context})
        result = await spec.fn(*spec.args, **spec.kwargs)
        log.debug("task_done", extra={"task": spec.name, "context": context})
        return result

    outcomes = await asyncio.gather(
        *(_wrapped(spec) for spec in specs),
        return_exceptions=True,
    )

    results: list[Optional[T]] = []
    failures = 0
    for spec, outcome in zip(specs, outcomes):
        if isinstance(outcome, BaseException):
            failures += 1
            log.warning(
                "task_fail",
                extra={
                    "task": spec.name,
                    "context": context,
                    "error": repr(outcome),
                },
            )
            results.append(None)
            continue
        results.append(outcome)

    log.debug(
        "fan_out_done",
        extra={"context": context, "tasks": len(specs), "failures": failures},
    )

    return results
