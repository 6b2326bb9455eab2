"""
Generic "first success wins" driver for ordered fallback chains.

Claims walk venue x fee x body-shape combinations and buys walk the spend
reduction ladder. Both are expressed as an ordered list of attempts consumed
by run_attempts(); the caller supplies the policy that decides, per failure,
whether the chain continues or stops.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Iterable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
S = TypeVar("S")


class Verdict(Enum):
    CONTINUE = "continue"
    ABORT = "abort"


@dataclass
class ChainOutcome(Generic[T]):
    """Result of a fallback chain."""
    result: Optional[T]
    attempts_made: int
    aborted: bool = False

    @property
    def succeeded(self) -> bool:
        return self.result is not None


async def run_attempts(
    attempts: Iterable[S],
    execute: Callable[[S], Awaitable[Optional[T]]],
    on_failure: Callable[[S, Exception], Verdict],
    accept: Optional[Callable[[S, T], Awaitable[bool]]] = None,
) -> ChainOutcome[T]:
    """
    Run attempts in order and stop at the first accepted result.

    Args:
        attempts: Ordered attempts (consumed lazily)
        execute: Runs one attempt; returning None means "no result, try next"
        on_failure: Decides whether an exception continues or aborts the chain
        accept: Optional check on a result; a rejected result moves to the next attempt

    Returns:
        ChainOutcome with the first accepted result, or result=None if exhausted
    """
    made = 0
    for attempt in attempts:
        made += 1
        try:
            result = await execute(attempt)
        except Exception as e:
            if on_failure(attempt, e) is Verdict.ABORT:
                return ChainOutcome(result=None, attempts_made=made, aborted=True)
            continue
        if result is None:
            continue
        if accept is not None and not await accept(attempt, result):
            logger.debug(f"Attempt {describe(attempt)} produced a rejected result, moving on")
            continue
        return ChainOutcome(result=result, attempts_made=made)
    return ChainOutcome(result=None, attempts_made=made)


def describe(attempt: Any) -> str:
    """Short label for an attempt in log lines."""
    label = getattr(attempt, "label", None)
    return label() if callable(label) else str(attempt)
