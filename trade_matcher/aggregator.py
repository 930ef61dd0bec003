"""
Result Aggregation
==================

Folds per-instrument matcher output into one MatchingResult.

Instruments are concatenated in a fixed order supplied by the caller (the
partitioner's first-seen order), never in completion order, so identical
input always produces an identical result even when instruments were
matched in parallel.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Mapping, Sequence, Tuple

from trade_matcher.models import (
    BUY,
    MatchedRoundTrip,
    MatchingResult,
    OpenLot,
    RawExecution,
    SELL,
)
from trade_matcher.utils import round2

InstrumentOutcome = Tuple[List[MatchedRoundTrip], List[OpenLot]]


def aggregate_results(
    per_instrument: Mapping[str, InstrumentOutcome],
    instrument_order: Sequence[str],
) -> MatchingResult:
    """Concatenate per-instrument results and compute the summary totals.

    Args:
        per_instrument: instrument_id -> (round trips, open lots)
        instrument_order: Order to concatenate instruments in

    Returns:
        Immutable MatchingResult
    """
    round_trips: List[MatchedRoundTrip] = []
    open_lots: List[OpenLot] = []

    for instrument_id in instrument_order:
        instrument_round_trips, instrument_open_lots = per_instrument.get(
            instrument_id, ([], [])
        )
        round_trips.extend(instrument_round_trips)
        open_lots.extend(instrument_open_lots)

    net = sum((rt.realized_profit for rt in round_trips), Decimal("0"))

    return MatchingResult(
        round_trips=tuple(round_trips),
        open_lots=tuple(open_lots),
        total_matched=len(round_trips),
        total_unmatched=len(open_lots),
        net_realized_profit=round2(net),
    )


def verify_conservation(
    executions: Sequence[RawExecution],
    result: MatchingResult,
    prior_open_lots: Sequence[OpenLot] = (),
) -> Dict[Tuple[str, str], Tuple[int, int]]:
    """Check that no quantity was created, lost or matched twice.

    For every (instrument, side): matched quantity + open quantity must equal
    the input quantity (new executions plus carried-forward remaining quantity).

    Returns:
        Mapping (instrument_id, side) -> (input quantity, accounted quantity)
        for every pair that does not balance. Empty when the result conserves.
    """
    expected: Dict[Tuple[str, str], int] = defaultdict(int)
    for execution in executions:
        expected[(execution.instrument_id, execution.side)] += execution.quantity
    for lot in prior_open_lots:
        expected[(lot.instrument_id, lot.side)] += lot.remaining_quantity

    accounted: Dict[Tuple[str, str], int] = defaultdict(int)
    for rt in result.round_trips:
        accounted[(rt.instrument_id, BUY)] += rt.quantity
        accounted[(rt.instrument_id, SELL)] += rt.quantity
    for lot in result.open_lots:
        accounted[(lot.instrument_id, lot.side)] += lot.remaining_quantity

    mismatches = {}
    for key in set(expected) | set(accounted):
        if expected.get(key, 0) != accounted.get(key, 0):
            mismatches[key] = (expected.get(key, 0), accounted.get(key, 0))
    return mismatches
