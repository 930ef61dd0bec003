"""
Instrument Partitioner
======================

Groups a batch of executions by instrument.

Grouping is on the literal instrument_id string (no case folding or
trimming). Keys come out in first-seen order and each list keeps the
relative input order of its executions, so every later stage sees a
deterministic ordering.
"""

from typing import Dict, Iterable, List, TypeVar

T = TypeVar("T")


def partition_by_instrument(executions: Iterable[T]) -> Dict[str, List[T]]:
    """Group records by their instrument_id attribute.

    Works for RawExecution and OpenLot alike.

    Args:
        executions: Records with an instrument_id attribute

    Returns:
        Mapping instrument_id -> records, in first-seen key order

    Example:
        >>> partition_by_instrument([buy_x, buy_y, sell_x])
        {'X': [buy_x, sell_x], 'Y': [buy_y]}
    """
    partitions: Dict[str, List[T]] = {}
    for execution in executions:
        partitions.setdefault(execution.instrument_id, []).append(execution)
    return partitions


def instrument_order(*partitions: Dict[str, list]) -> List[str]:
    """Union of the keys of several partitions, in first-seen order."""
    seen: Dict[str, None] = {}
    for partition in partitions:
        for instrument_id in partition:
            seen.setdefault(instrument_id, None)
    return list(seen)
