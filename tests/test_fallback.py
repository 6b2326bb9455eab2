"""
Tests for fallback.py - first-success driver.
"""
import pytest
from unittest.mock import MagicMock

from autoburner.fallback import Verdict, describe, run_attempts


class TestRunAttempts:
    """Tests for run_attempts."""

    @pytest.mark.asyncio
    async def test_first_success_wins(self):
        calls = []

        async def execute(attempt):
            calls.append(attempt)
            return f"ok-{attempt}"

        outcome = await run_attempts([1, 2, 3], execute, MagicMock())
        assert outcome.result == "ok-1"
        assert outcome.attempts_made == 1
        assert outcome.succeeded
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_continue_moves_to_next_attempt(self):
        async def execute(attempt):
            if attempt < 3:
                raise RuntimeError(f"fail {attempt}")
            return "done"

        on_failure = MagicMock(return_value=Verdict.CONTINUE)
        outcome = await run_attempts([1, 2, 3], execute, on_failure)
        assert outcome.result == "done"
        assert outcome.attempts_made == 3
        assert on_failure.call_count == 2

    @pytest.mark.asyncio
    async def test_abort_stops_chain(self):
        async def execute(attempt):
            raise RuntimeError("fatal")

        outcome = await run_attempts([1, 2, 3], execute, MagicMock(return_value=Verdict.ABORT))
        assert outcome.result is None
        assert outcome.aborted
        assert outcome.attempts_made == 1

    @pytest.mark.asyncio
    async def test_none_and_rejected_results_move_on(self):
        async def execute(attempt):
            return None if attempt == 1 else f"sig-{attempt}"

        async def accept(attempt, result):
            return result != "sig-2"

        outcome = await run_attempts([1, 2, 3], execute, MagicMock(), accept)
        assert outcome.result == "sig-3"
        assert outcome.attempts_made == 3

    @pytest.mark.asyncio
    async def test_exhausted_chain(self):
        async def execute(attempt):
            return None

        outcome = await run_attempts([1, 2], execute, MagicMock())
        assert outcome.result is None
        assert not outcome.aborted
        assert not outcome.succeeded
        assert outcome.attempts_made == 2

    def test_describe_uses_label(self):
        attempt = MagicMock()
        attempt.label.return_value = "pump/fee=0.0001"
        assert describe(attempt) == "pump/fee=0.0001"
        assert describe(5) == "5"
