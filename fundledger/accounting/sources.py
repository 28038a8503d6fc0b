"""Ordered precedence over named data sources.

Several figures (opening balance, carried loss, live equity) can come
from more than one place. Instead of chained fallbacks, candidates are
listed in priority order with a name, and the name of the one used is
kept and logged so a statement can always say where a number came from.
"""

import logging
from dataclasses import dataclass
from typing import Generic, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Sourced(Generic[T]):
    """A value together with the name of the source that supplied it."""

    value: T | None
    source: str | None

    @property
    def found(self) -> bool:
        return self.source is not None


def first_available(
    field: str,
    candidates: Sequence[tuple[str, T | None]],
    context: str = "",
) -> Sourced[T]:
    """Pick the first candidate whose value is not None.

    Args:
        field: What is being resolved, for the log line.
        candidates: (source_name, value) pairs in priority order.
        context: Extra log prefix, usually client and period.

    Returns:
        Sourced with source None when every candidate was empty.
    """
    for name, value in candidates:
        if value is not None:
            logger.debug("%s%s resolved from %s: %s", context, field, name, value)
            return Sourced(value=value, source=name)
        logger.debug("%s%s: source %s empty", context, field, name)

    logger.debug("%s%s: no source available", context, field)
    return Sourced(value=None, source=None)
