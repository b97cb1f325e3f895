"""
Unit Tests for the compensating-transaction runner.

Run with: pytest tests/test_saga.py -v
"""

import pytest

from provisioning.saga import Saga, SagaStep, CompensationError


class StepError(Exception):
    pass


def recorder():
    calls = []

    def action(name, result=None, fail=False):
        async def run(context):
            calls.append(f"do:{name}")
            if fail:
                raise StepError(name)
            return result if result is not None else name
        return run

    def undo(name, fail=False):
        async def run(context, result):
            calls.append(f"undo:{name}:{result}")
            if fail:
                raise RuntimeError(f"cannot undo {name}")
        return run

    return calls, action, undo


class TestSaga:

    @pytest.mark.asyncio
    async def test_runs_steps_in_order_and_stores_results(self):
        calls, action, undo = recorder()
        saga = Saga("s", [
            SagaStep("a", action("a", result=1), undo("a")),
            SagaStep("b", action("b", result=2), undo("b")),
        ])

        context = await saga.execute({"input": "x"})

        assert calls == ["do:a", "do:b"]
        assert context == {"input": "x", "a": 1, "b": 2}

    @pytest.mark.asyncio
    async def test_later_step_reads_earlier_result(self):
        async def first(context):
            return "identity-1"

        async def second(context):
            return f"profile-for-{context['first']}"

        context = await Saga("s", [SagaStep("first", first), SagaStep("second", second)]).execute()

        assert context["second"] == "profile-for-identity-1"

    @pytest.mark.asyncio
    async def test_failure_compensates_completed_steps_in_reverse(self):
        calls, action, undo = recorder()
        saga = Saga("s", [
            SagaStep("a", action("a"), undo("a")),
            SagaStep("b", action("b"), undo("b")),
            SagaStep("c", action("c", fail=True), undo("c")),
        ])

        with pytest.raises(StepError):
            await saga.execute()

        # The failed step itself is never compensated
        assert calls == ["do:a", "do:b", "do:c", "undo:b:b", "undo:a:a"]

    @pytest.mark.asyncio
    async def test_first_step_failure_compensates_nothing(self):
        calls, action, undo = recorder()
        saga = Saga("s", [
            SagaStep("a", action("a", fail=True), undo("a")),
            SagaStep("b", action("b"), undo("b")),
        ])

        with pytest.raises(StepError):
            await saga.execute()

        assert calls == ["do:a"]

    @pytest.mark.asyncio
    async def test_failed_compensation_raises_compensation_error(self):
        calls, action, undo = recorder()
        saga = Saga("s", [
            SagaStep("a", action("a"), undo("a")),
            SagaStep("b", action("b"), undo("b", fail=True)),
            SagaStep("c", action("c", fail=True)),
        ])

        with pytest.raises(CompensationError) as exc_info:
            await saga.execute()

        err = exc_info.value
        assert err.failed_step == "c"
        assert isinstance(err.original, StepError)
        assert err.__cause__ is err.original
        assert [f.step for f in err.failures] == ["b"]
        # Remaining compensations still run after one fails
        assert calls[-2:] == ["undo:b:b", "undo:a:a"]
