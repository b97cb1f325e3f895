"""
Compensating transactions for multi-step external writes.

A saga is an ordered list of steps. Each step has an action and an optional
compensation. Steps run in order; when one fails, the compensations of the
steps that already completed run in reverse order and the original error is
re-raised. If a compensation itself fails the remaining compensations still
run and a CompensationError is raised instead, chained to the original error.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

Action = Callable[[Dict[str, Any]], Awaitable[Any]]
Compensation = Callable[[Dict[str, Any], Any], Awaitable[None]]


@dataclass
class SagaStep:
    """One step: ``action(context)`` and ``compensation(context, action_result)``."""
    name: str
    action: Action
    compensation: Optional[Compensation] = None


@dataclass
class CompensationFailure:
    step: str
    error: Exception


class CompensationError(Exception):
    """Raised when at least one compensation failed while unwinding a saga."""

    def __init__(self, saga: str, failed_step: str, original: Exception, failures: List[CompensationFailure]):
        self.saga = saga
        self.failed_step = failed_step
        self.original = original
        self.failures = failures
        failed = ", ".join(f.step for f in failures)
        super().__init__(f"Saga '{saga}' failed at '{failed_step}' and could not compensate: {failed}")


@dataclass
class Saga:
    name: str
    steps: List[SagaStep] = field(default_factory=list)

    async def execute(self, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run all steps in order.

        Each action's result is stored in the context under the step name, so
        later steps can read earlier results.

        Returns:
            The context with every step's result

        Raises:
            The failing step's exception, after its predecessors were compensated
            CompensationError: if any compensation raised
        """
        context = context if context is not None else {}
        completed: List[Tuple[SagaStep, Any]] = []

        for step in self.steps:
            try:
                result = await step.action(context)
            except Exception as exc:
                logger.warning(f"Saga {self.name}: step '{step.name}' failed ({type(exc).__name__}), compensating")
                await self._compensate(completed, context, step.name, exc)
                raise
            context[step.name] = result
            completed.append((step, result))
            logger.debug(f"Saga {self.name}: step '{step.name}' done")

        return context

    async def _compensate(
        self,
        completed: List[Tuple[SagaStep, Any]],
        context: Dict[str, Any],
        failed_step: str,
        original: Exception,
    ) -> None:
        failures: List[CompensationFailure] = []

        for step, result in reversed(completed):
            if step.compensation is None:
                continue
            try:
                await step.compensation(context, result)
                logger.info(f"Saga {self.name}: compensated '{step.name}'")
            except Exception as exc:
                logger.error(f"Saga {self.name}: compensation for '{step.name}' failed: {exc}")
                failures.append(CompensationFailure(step=step.name, error=exc))

        if failures:
            raise CompensationError(self.name, failed_step, original, failures) from original
