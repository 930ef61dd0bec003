"""
Round-Trip Analytics
====================

Pure functions for performance statistics over matched round trips.

Computes:
- Win/loss counts, rates and averages
- Gross profit, gross loss and profit factor
- Drawdown of the cumulative realized P&L curve
- Win and loss streaks
- Profitable and losing days (by closing date)
- Per-instrument summaries of a MatchingResult

Break-even round trips (profit exactly 0) count as neither wins nor losses
and do not interrupt a streak.
"""

from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence
import logging

from trade_matcher.models import (
    BUY,
    InstrumentSummary,
    MatchedRoundTrip,
    MatchingResult,
    TradeAnalytics,
)
from trade_matcher.utils import round2

ZERO = Decimal("0")


def _chronological(round_trips: Sequence[MatchedRoundTrip]) -> List[MatchedRoundTrip]:
    # Stable on opening date; round trips without a date keep their place at the end
    return sorted(
        round_trips,
        key=lambda rt: (rt.opening_date is None, rt.opening_date or date.min),
    )


def _percent(part: int, whole: int) -> float:
    if whole == 0:
        return 0.0
    return round(part / whole * 100, 2)


def compute_trade_analytics(
    round_trips: Sequence[MatchedRoundTrip],
    logger: Optional[logging.Logger] = None,
) -> TradeAnalytics:
    """Compute performance statistics for a set of round trips.

    Round trips are walked in opening-date order for the drawdown and
    streak calculations.

    Args:
        round_trips: Matched round trips (any order)
        logger: Optional logger

    Returns:
        TradeAnalytics; all zeros for an empty input
    """
    if not round_trips:
        return TradeAnalytics()

    ordered = _chronological(round_trips)
    profits = [rt.realized_profit for rt in ordered]

    total_trades = len(profits)
    wins = [p for p in profits if p > 0]
    losses = [p for p in profits if p < 0]

    total = sum(profits, ZERO)
    gross_profit = sum(wins, ZERO)
    gross_loss = abs(sum(losses, ZERO))

    profit_factor = None
    if gross_loss > 0:
        profit_factor = round(float(gross_profit / gross_loss), 2)

    # Drawdown of cumulative P&L; the peak starts at zero (flat account)
    running = ZERO
    peak = ZERO
    max_drawdown = ZERO
    drawdowns = []
    for p in profits:
        running += p
        peak = max(peak, running)
        drawdown = peak - running
        drawdowns.append(drawdown)
        max_drawdown = max(max_drawdown, drawdown)

    avg_drawdown = sum(drawdowns, ZERO) / len(drawdowns)
    max_drawdown_percent = 0.0
    if peak > 0:
        max_drawdown_percent = round(float(max_drawdown / peak * 100), 2)

    longest_win = longest_loss = current_win = current_loss = 0
    for p in profits:
        if p > 0:
            current_win += 1
            current_loss = 0
            longest_win = max(longest_win, current_win)
        elif p < 0:
            current_loss += 1
            current_win = 0
            longest_loss = max(longest_loss, current_loss)

    daily: Dict[date, Decimal] = OrderedDict()
    for rt in ordered:
        if rt.closing_date is None:
            continue
        daily[rt.closing_date] = daily.get(rt.closing_date, ZERO) + rt.realized_profit
    daily = OrderedDict((d, round2(v)) for d, v in sorted(daily.items()))

    analytics = TradeAnalytics(
        total_net_profit_loss=round2(total),
        gross_profit=round2(gross_profit),
        gross_loss=round2(gross_loss),
        total_trades=total_trades,
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=_percent(len(wins), total_trades),
        loss_rate=_percent(len(losses), total_trades),
        profit_factor=profit_factor,
        avg_profit_per_win=round2(gross_profit / len(wins)) if wins else ZERO,
        avg_loss_per_loss=round2(gross_loss / len(losses)) if losses else ZERO,
        avg_profit_loss_per_trade=round2(total / total_trades),
        max_drawdown=round2(max_drawdown),
        max_drawdown_percent=max_drawdown_percent,
        avg_drawdown=round2(avg_drawdown),
        longest_win_streak=longest_win,
        longest_loss_streak=longest_loss,
        profitable_days=sum(1 for v in daily.values() if v > 0),
        loss_days=sum(1 for v in daily.values() if v < 0),
        daily_pnl=dict(daily),
    )

    if logger:
        logger.info(
            f"Analytics: {total_trades} trade(s), win_rate={analytics.win_rate:.2f}%, "
            f"net={analytics.total_net_profit_loss}, max_drawdown={analytics.max_drawdown}"
        )

    return analytics


def summarize_by_instrument(result: MatchingResult) -> List[InstrumentSummary]:
    """Per-instrument totals, in the order instruments appear in the result."""
    rows: Dict[str, dict] = OrderedDict()

    def row(instrument_id: str) -> dict:
        return rows.setdefault(
            instrument_id,
            {
                "round_trips": 0,
                "matched_quantity": 0,
                "realized_profit": ZERO,
                "open_buy_quantity": 0,
                "open_sell_quantity": 0,
            },
        )

    for rt in result.round_trips:
        r = row(rt.instrument_id)
        r["round_trips"] += 1
        r["matched_quantity"] += rt.quantity
        r["realized_profit"] += rt.realized_profit

    for lot in result.open_lots:
        r = row(lot.instrument_id)
        if lot.side == BUY:
            r["open_buy_quantity"] += lot.remaining_quantity
        else:
            r["open_sell_quantity"] += lot.remaining_quantity

    return [
        InstrumentSummary(
            instrument_id=instrument_id,
            round_trips=r["round_trips"],
            matched_quantity=r["matched_quantity"],
            realized_profit=round2(r["realized_profit"]),
            open_buy_quantity=r["open_buy_quantity"],
            open_sell_quantity=r["open_sell_quantity"],
        )
        for instrument_id, r in rows.items()
    ]
