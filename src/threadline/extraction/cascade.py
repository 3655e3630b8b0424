"""Priority cascade runner.

A cascade is an ordered list of steps. Each step takes the input and returns
a result or None (sync or async). The first non-empty result wins and later
steps never run.
"""

import inspect
import logging
from collections.abc import Callable, Sequence
from typing import Any

logger = logging.getLogger(__name__)


def step_name(step: Callable) -> str:
    func = getattr(step, "func", step)  # functools.partial
    return getattr(func, "__name__", repr(func))


async def run_cascade(name: str, steps: Sequence[Callable[[Any], Any]], value: Any) -> Any | None:
    """Run ``steps`` in order against ``value`` and return the first hit."""
    for position, step in enumerate(steps, start=1):
        result = step(value)
        if inspect.isawaitable(result):
            result = await result
        if result:
            logger.debug(
                "%s cascade matched",
                name,
                extra={"cascade": name, "step": step_name(step), "priority": position},
            )
            return result
    logger.debug("%s cascade found nothing", name, extra={"cascade": name})
    return None
