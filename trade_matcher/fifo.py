"""
FIFO Matcher
============

Pure function that closes one instrument's buy queue against its sell queue.

Algorithm:
- Two index cursors walk the oldest-first buy and sell queues; lots are
  never removed from the front of a list
- Each step matches min(buy remaining, sell remaining) and emits one
  MatchedRoundTrip; whichever lot reaches zero has its cursor advanced
- Whatever is left on either side becomes OpenLots, one per lot (never merged)

Commission policy: every round trip carries the FULL commission of both
legs, even when a lot is split across several round trips. Commission is
charged once per lot, not per share, and is not apportioned pro rata.

Money is Decimal throughout. Profit is rounded once, when the round trip is
emitted.
"""

from typing import List, Optional, Tuple
import logging

from trade_matcher.models import Lot, MatchedRoundTrip, OpenLot
from trade_matcher.utils import compute_duration_minutes, round2


def build_round_trip(
    instrument_id: str, buy: Lot, sell: Lot, quantity: int
) -> MatchedRoundTrip:
    """Close `quantity` of `buy` against `sell`.

    realized_profit = (sell.price - buy.price) * quantity - (buy.commission + sell.commission)
    """
    commission = buy.commission + sell.commission
    gross = (sell.price - buy.price) * quantity

    return MatchedRoundTrip(
        instrument_id=instrument_id,
        opening_date=buy.execution_date,
        opening_time=buy.execution_time,
        closing_date=sell.execution_date,
        closing_time=sell.execution_time,
        quantity=quantity,
        buy_price=buy.price,
        sell_price=sell.price,
        commission=commission,
        realized_profit=round2(gross - commission),
        duration_minutes=compute_duration_minutes(
            buy.execution_date,
            buy.execution_time,
            sell.execution_date,
            sell.execution_time,
        ),
        buy_execution_id=buy.execution_id,
        sell_execution_id=sell.execution_id,
    )


def _skip_exhausted(queue: List[Lot], cursor: int) -> int:
    while cursor < len(queue) and queue[cursor].remaining_quantity <= 0:
        cursor += 1
    return cursor


def match_instrument(
    instrument_id: str,
    buys: List[Lot],
    sells: List[Lot],
    logger: Optional[logging.Logger] = None,
) -> Tuple[List[MatchedRoundTrip], List[OpenLot]]:
    """Match one instrument's lots first-in-first-out.

    Buy-then-sell (long) and sell-then-buy (short) are handled the same way:
    the oldest remaining buy is always paired with the oldest remaining sell.

    Args:
        instrument_id: Instrument being matched
        buys: Buy lots, oldest first (remaining_quantity is consumed in place)
        sells: Sell lots, oldest first (remaining_quantity is consumed in place)
        logger: Optional logger

    Returns:
        Tuple of:
        - Round trips in match order
        - Open lots: remaining buys, then remaining sells

    Example:
        BUY 100@10 (d1), BUY 50@12 (d2), SELL 120@15 (d3)
        → round trips: 100 @ 10→15 (profit 500), 20 @ 12→15 (profit 60)
        → open lots:   BUY 30 @ 12
    """
    round_trips: List[MatchedRoundTrip] = []
    b = _skip_exhausted(buys, 0)
    s = _skip_exhausted(sells, 0)

    while b < len(buys) and s < len(sells):
        buy = buys[b]
        sell = sells[s]
        match_qty = min(buy.remaining_quantity, sell.remaining_quantity)
        # Exhausted lots were skipped above, so every step makes progress
        assert match_qty > 0, f"non-positive match quantity for {instrument_id}"

        round_trip = build_round_trip(instrument_id, buy, sell, match_qty)
        round_trips.append(round_trip)

        if logger:
            logger.debug(
                f"{instrument_id}: matched {match_qty} "
                f"buy={buy.execution_id}@{buy.price} sell={sell.execution_id}@{sell.price} "
                f"profit={round_trip.realized_profit}"
            )

        buy.remaining_quantity -= match_qty
        sell.remaining_quantity -= match_qty

        b = _skip_exhausted(buys, b)
        s = _skip_exhausted(sells, s)

    open_lots = [
        lot.to_open_lot()
        for lot in buys[b:] + sells[s:]
        if lot.remaining_quantity > 0
    ]

    if logger:
        logger.debug(
            f"{instrument_id}: {len(round_trips)} round trip(s), {len(open_lots)} open lot(s)"
        )

    return round_trips, open_lots
