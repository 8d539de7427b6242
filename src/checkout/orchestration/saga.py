"""A small saga runner: ordered steps with compensations, plus finalizers.

Steps run in order. When a step raises, the steps that already completed are
compensated in reverse order and the original exception is re-raised.
Finalizers run on every exit path, after compensation.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class CouponLockState(Enum):
    NONE = "none"
    LOCKED = "locked"
    REDEEMED = "redeemed"
    UNLOCKED = "unlocked"


@dataclass(frozen=True)
class SagaStep:
    name: str
    action: Callable[[Any], None]
    compensate: Callable[[Any], None] | None = None


class Saga:
    def __init__(self, name: str, steps, finalizers=()) -> None:
        self.name = name
        self.steps: list[SagaStep] = list(steps)
        self.finalizers: list[Callable[[Any], None]] = list(finalizers)

    def run(self, state):
        completed: list[SagaStep] = []
        try:
            for step in self.steps:
                logger.debug("Saga step started", saga=self.name, step=step.name)
                step.action(state)
                completed.append(step)
            return state
        except Exception as exc:
            logger.warning(
                "Saga step failed",
                saga=self.name,
                step=self.steps[len(completed)].name,
                error=str(exc),
            )
            self._compensate(completed, state)
            raise
        finally:
            self._finalize(state)

    def _compensate(self, completed: list[SagaStep], state) -> None:
        for step in reversed(completed):
            if step.compensate is None:
                continue
            try:
                step.compensate(state)
                logger.info("Saga step compensated", saga=self.name, step=step.name)
            except Exception as exc:
                # Keep compensating; the original failure is what the caller sees
                logger.error("Saga compensation failed", saga=self.name, step=step.name, error=str(exc))

    def _finalize(self, state) -> None:
        for finalizer in self.finalizers:
            try:
                finalizer(state)
            except Exception as exc:
                logger.error(
                    "Saga finalizer failed",
                    saga=self.name,
                    finalizer=getattr(finalizer, "__name__", repr(finalizer)),
                    error=str(exc),
                )
