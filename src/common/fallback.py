"""
First-success combinator.

Fallback chains (LLM -> local parser, fast cache -> document cache -> live
fetch, Google -> DuckDuckGo) are expressed as an ordered list of named
strategies. The first strategy that returns an accepted value wins; every
attempt is recorded so callers can log which path was taken.

Usage:
    outcome = await first_success(
        [Strategy("llm", llm.extract), Strategy("local", parser.extract)],
        resume_text,
    )
    outcome.value       # result of the winning strategy (None if all failed)
    outcome.strategy    # "llm", "local" or None
"""

import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Strategy:
    """A named step in a fallback chain. ``func`` may be sync or async."""
    name: str
    func: Callable[..., Any]


@dataclass
class StrategyAttempt:
    """Record of one strategy evaluation."""
    name: str
    succeeded: bool
    duration_ms: int
    error: Optional[str] = None


@dataclass
class StrategyOutcome:
    """Result of a first_success run."""
    value: Any = None
    strategy: Optional[str] = None
    attempts: List[StrategyAttempt] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.strategy is not None

    @property
    def failed_strategies(self) -> List[str]:
        return [a.name for a in self.attempts if not a.succeeded]


def _not_none(value: Any) -> bool:
    return value is not None


async def first_success(
    strategies: List[Strategy],
    *args,
    accept: Optional[Callable[[Any], bool]] = None,
    **kwargs,
) -> StrategyOutcome:
    """
    Evaluate strategies in order until one yields an accepted value.

    A strategy fails when it raises or when ``accept(value)`` is False
    (default: value is None). Never raises; when every strategy fails the
    outcome has ``value=None`` and ``strategy=None``.

    Args:
        strategies: Ordered strategies to try
        *args: Positional arguments passed to every strategy
        accept: Predicate deciding whether a returned value counts as success
        **kwargs: Keyword arguments passed to every strategy

    Returns:
        StrategyOutcome with the winning value and all attempts
    """
    accept = accept or _not_none
    outcome = StrategyOutcome()

    for strategy in strategies:
        start = time.monotonic()
        try:
            value = strategy.func(*args, **kwargs)
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            logger.warning(f"Strategy '{strategy.name}' failed after {duration_ms}ms: {e}")
            outcome.attempts.append(StrategyAttempt(
                name=strategy.name, succeeded=False, duration_ms=duration_ms, error=str(e),
            ))
            continue

        duration_ms = int((time.monotonic() - start) * 1000)
        if not accept(value):
            logger.debug(f"Strategy '{strategy.name}' returned no usable result ({duration_ms}ms)")
            outcome.attempts.append(StrategyAttempt(
                name=strategy.name, succeeded=False, duration_ms=duration_ms, error="rejected",
            ))
            continue

        outcome.attempts.append(StrategyAttempt(
            name=strategy.name, succeeded=True, duration_ms=duration_ms,
        ))
        outcome.value = value
        outcome.strategy = strategy.name
        return outcome

    return outcome
