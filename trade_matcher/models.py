"""
Trade Matcher Data Models
=========================

Pydantic models for the lot-matching engine.

Design decisions:
1. Pydantic over dataclasses for records that cross the API boundary:
   runtime type coercion + JSON serialization
2. Immutability: executions, round trips, open lots and results are frozen
3. Money is Decimal end to end; floats are converted through their repr
4. Models check TYPES only. Business rules (positive quantity, known side)
   are enforced by trade_matcher.validation so the whole batch can be
   rejected with the offending execution named.

Lot is the one mutable type. It lives only inside a single matching call.
"""

from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal
from typing import Dict, Literal, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from trade_matcher.utils import parse_trade_date, parse_trade_time, to_decimal

BUY = "BUY"
SELL = "SELL"
SIDES = (BUY, SELL)


class RawExecution(BaseModel):
    """One fill as supplied by the execution source (broker API or file import).

    Attributes:
        instrument_id: Traded symbol; matched literally (case-sensitive)
        side: "BUY" or "SELL" (input is upper-cased; anything else is rejected
              by batch validation, not here)
        quantity: Filled quantity
        price: Fill price
        execution_date: Trade date; None when the supplied value could not be parsed
        execution_time: Optional time of day; None when absent or unparsable
        commission: Total commission charged for this fill
        execution_id: Broker's execution identifier, opaque to the engine
    """

    instrument_id: str
    side: str
    quantity: int
    price: Decimal
    execution_date: Optional[date]
    execution_time: Optional[time] = None
    commission: Decimal = Decimal("0")
    execution_id: Optional[str] = None

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v):
        return to_decimal(v)

    @field_validator("commission", mode="before")
    @classmethod
    def coerce_commission(cls, v):
        if v is None:
            return Decimal("0")
        return to_decimal(v)

    @field_validator("execution_date", mode="before")
    @classmethod
    def coerce_date(cls, v):
        return parse_trade_date(v)

    @field_validator("execution_time", mode="before")
    @classmethod
    def coerce_time(cls, v):
        return parse_trade_time(v)

    model_config = {"frozen": True}


class MatchedRoundTrip(BaseModel):
    """One buy lot closed against one sell lot for some quantity.

    The opening leg is always the buy and the closing leg always the sell,
    also for shorts (sell first, cover later); duration_minutes is then negative.

    Attributes:
        instrument_id: Traded symbol
        opening_date: Buy leg date
        opening_time: Buy leg time of day, if known
        closing_date: Sell leg date
        closing_time: Sell leg time of day, if known
        quantity: Matched quantity
        buy_price: Buy leg price
        sell_price: Sell leg price
        commission: Buy commission + sell commission, never apportioned
        realized_profit: (sell - buy) * quantity - commission, 2 dp
        duration_minutes: Minutes from opening to closing; None unless both legs have a time
        buy_execution_id: Execution id of the buy leg
        sell_execution_id: Execution id of the sell leg
    """

    instrument_id: str
    opening_date: Optional[date] = None
    opening_time: Optional[time] = None
    closing_date: Optional[date] = None
    closing_time: Optional[time] = None
    quantity: int
    buy_price: Decimal
    sell_price: Decimal
    commission: Decimal
    realized_profit: Decimal
    duration_minutes: Optional[int] = None
    buy_execution_id: Optional[str] = None
    sell_execution_id: Optional[str] = None

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"quantity must be > 0, got {v}")
        return v

    @field_validator("buy_price", "sell_price", "commission", "realized_profit", mode="before")
    @classmethod
    def coerce_money(cls, v):
        return to_decimal(v)

    model_config = {"frozen": True}


class OpenLot(BaseModel):
    """Unmatched remaining quantity of one execution, carried to the next batch.

    Attributes:
        instrument_id: Traded symbol
        side: BUY (open long inventory) or SELL (open short)
        execution_date: Date of the originating execution
        execution_time: Time of day of the originating execution, if known
        price: Price of the originating execution
        remaining_quantity: Quantity not yet matched
        commission: Full commission of the originating execution
        execution_id: Originating execution id
    """

    instrument_id: str
    side: Literal["BUY", "SELL"]
    execution_date: Optional[date] = None
    execution_time: Optional[time] = None
    price: Decimal
    remaining_quantity: int
    commission: Decimal = Decimal("0")
    execution_id: Optional[str] = None

    @field_validator("remaining_quantity")
    @classmethod
    def validate_remaining_quantity(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"remaining_quantity must be > 0, got {v}")
        return v

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("price", "commission", mode="before")
    @classmethod
    def coerce_money(cls, v):
        if v is None:
            return Decimal("0")
        return to_decimal(v)

    @field_validator("execution_date", mode="before")
    @classmethod
    def coerce_date(cls, v):
        return parse_trade_date(v)

    @field_validator("execution_time", mode="before")
    @classmethod
    def coerce_time(cls, v):
        return parse_trade_time(v)

    model_config = {"frozen": True}


class MatchingResult(BaseModel):
    """Output of one engine run.

    Attributes:
        round_trips: Round trips in instrument first-seen order, then match order
        open_lots: Open lots in the same instrument order, buys before sells
        total_matched: Number of round trips
        total_unmatched: Number of open lots
        net_realized_profit: Sum of round-trip profits, 2 dp
    """

    round_trips: Tuple[MatchedRoundTrip, ...] = ()
    open_lots: Tuple[OpenLot, ...] = ()
    total_matched: int = 0
    total_unmatched: int = 0
    net_realized_profit: Decimal = Decimal("0.00")

    model_config = {"frozen": True}


@dataclass
class Lot:
    """Working copy of an execution while it is being matched.

    remaining_quantity only goes down. sequence is the position the lot was
    fed into the engine at (carried lots first) and breaks ties between
    lots with the same date. carried_forward marks lots from a previous run,
    which queue ahead of every new execution.
    """

    instrument_id: str
    side: str
    quantity: int
    price: Decimal
    commission: Decimal
    execution_date: Optional[date]
    execution_time: Optional[time]
    execution_id: Optional[str]
    remaining_quantity: int
    sequence: int
    carried_forward: bool = False

    @classmethod
    def from_execution(cls, execution: RawExecution, sequence: int) -> "Lot":
        return cls(
            instrument_id=execution.instrument_id,
            side=execution.side,
            quantity=execution.quantity,
            price=execution.price,
            commission=execution.commission,
            execution_date=execution.execution_date,
            execution_time=execution.execution_time,
            execution_id=execution.execution_id,
            remaining_quantity=execution.quantity,
            sequence=sequence,
        )

    @classmethod
    def from_open_lot(cls, open_lot: OpenLot, sequence: int) -> "Lot":
        return cls(
            instrument_id=open_lot.instrument_id,
            side=open_lot.side,
            quantity=open_lot.remaining_quantity,
            price=open_lot.price,
            commission=open_lot.commission,
            execution_date=open_lot.execution_date,
            execution_time=open_lot.execution_time,
            execution_id=open_lot.execution_id,
            remaining_quantity=open_lot.remaining_quantity,
            sequence=sequence,
            carried_forward=True,
        )

    def to_open_lot(self) -> OpenLot:
        return OpenLot(
            instrument_id=self.instrument_id,
            side=self.side,
            execution_date=self.execution_date,
            execution_time=self.execution_time,
            price=self.price,
            remaining_quantity=self.remaining_quantity,
            commission=self.commission,
            execution_id=self.execution_id,
        )


class InstrumentSummary(BaseModel):
    """Per-instrument totals derived from a MatchingResult."""

    instrument_id: str
    round_trips: int = 0
    matched_quantity: int = 0
    realized_profit: Decimal = Decimal("0.00")
    open_buy_quantity: int = 0
    open_sell_quantity: int = 0

    model_config = {"frozen": True}


class TradeAnalytics(BaseModel):
    """Performance statistics over closed round trips.

    Attributes:
        total_net_profit_loss: Sum of realized profit
        gross_profit: Sum of winning round trips' profit
        gross_loss: Absolute sum of losing round trips' profit
        total_trades: Number of round trips
        winning_trades: Round trips with profit > 0
        losing_trades: Round trips with profit < 0
        win_rate: Winning trades as percent of all trades
        loss_rate: Losing trades as percent of all trades
        profit_factor: gross_profit / gross_loss; None when there are no losses
        avg_profit_per_win: gross_profit / winning_trades
        avg_loss_per_loss: gross_loss / losing_trades
        avg_profit_loss_per_trade: total_net_profit_loss / total_trades
        max_drawdown: Largest drop of cumulative P&L from its running peak
        max_drawdown_percent: max_drawdown as percent of the final peak
        avg_drawdown: Mean drawdown over all round trips
        longest_win_streak: Longest run of consecutive winners
        longest_loss_streak: Longest run of consecutive losers
        profitable_days: Closing dates with positive net P&L
        loss_days: Closing dates with negative net P&L
        daily_pnl: Net P&L per closing date
    """

    total_net_profit_loss: Decimal = Decimal("0.00")
    gross_profit: Decimal = Decimal("0.00")
    gross_loss: Decimal = Decimal("0.00")
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    loss_rate: float = 0.0
    profit_factor: Optional[float] = None
    avg_profit_per_win: Decimal = Decimal("0.00")
    avg_loss_per_loss: Decimal = Decimal("0.00")
    avg_profit_loss_per_trade: Decimal = Decimal("0.00")
    max_drawdown: Decimal = Decimal("0.00")
    max_drawdown_percent: float = 0.0
    avg_drawdown: Decimal = Decimal("0.00")
    longest_win_streak: int = 0
    longest_loss_streak: int = 0
    profitable_days: int = 0
    loss_days: int = 0
    daily_pnl: Dict[date, Decimal] = Field(default_factory=dict)

    model_config = {"frozen": True}
