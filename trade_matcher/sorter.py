"""
Chronological Sorter
====================

Turns one instrument's executions into two FIFO queues of Lots.

Ordering rules:
- Buys and sells are sorted independently by execution_date, oldest first
- Equal dates keep their input order: each lot carries the sequence number
  it was fed in at, and that is the last sort key. Time of day is NOT a
  tie-breaker, so a re-run gives the same queues even when times are
  missing or malformed
- Executions with an unknown date go after every dated execution of the
  same side, in input order
- Carried-forward open lots sit at the front of their side's queue, sorted
  the same way among themselves, ahead of every new execution regardless
  of date
"""

from datetime import date
from typing import List, Sequence, Tuple

from trade_matcher.models import BUY, Lot, OpenLot, RawExecution, SELL


def _chronological_key(lot: Lot) -> Tuple[bool, bool, date, int]:
    unknown = lot.execution_date is None
    return (not lot.carried_forward, unknown, lot.execution_date or date.min, lot.sequence)


def sort_lots(lots: Sequence[Lot]) -> List[Lot]:
    """Sort lots oldest first.

    Carried-forward lots come first, then by execution date with unknown
    dates last; ties go to the lower sequence number.
    """
    return sorted(lots, key=_chronological_key)


def build_lot_queues(
    executions: Sequence[RawExecution],
    prior_open_lots: Sequence[OpenLot] = (),
) -> Tuple[List[Lot], List[Lot]]:
    """Build the buy and sell queues for one instrument.

    Args:
        executions: This instrument's executions, in input order
        prior_open_lots: This instrument's open lots from a previous run

    Returns:
        (buys, sells), each oldest first
    """
    sequence = 0

    queues = {BUY: [], SELL: []}
    for open_lot in prior_open_lots:
        queues[open_lot.side].append(Lot.from_open_lot(open_lot, sequence))
        sequence += 1

    for execution in executions:
        queues[execution.side].append(Lot.from_execution(execution, sequence))
        sequence += 1

    return sort_lots(queues[BUY]), sort_lots(queues[SELL])
