"""Pytest fixtures for trade matcher tests."""
import pytest
from datetime import date, timedelta

from trade_matcher.models import RawExecution, OpenLot


BASE_DATE = date(2024, 1, 1)


def day(n: int) -> date:
    """Day n of the test calendar (day 1 = 2024-01-01)."""
    return BASE_DATE + timedelta(days=n - 1)


@pytest.fixture
def make_execution():
    """Factory for RawExecution with sensible defaults."""
    def _make(side, quantity, price, on=1, instrument="X", execution_id=None,
              commission=0, at=None, execution_date=None):
        return RawExecution(
            instrument_id=instrument,
            side=side,
            quantity=quantity,
            price=price,
            execution_date=execution_date if execution_date is not None else day(on),
            execution_time=at,
            commission=commission,
            execution_id=execution_id,
        )
    return _make


@pytest.fixture
def make_open_lot():
    """Factory for carried-forward OpenLot records."""
    def _make(side, remaining, price, on=1, instrument="X", execution_id=None, commission=0):
        return OpenLot(
            instrument_id=instrument,
            side=side,
            execution_date=day(on),
            price=price,
            remaining_quantity=remaining,
            commission=commission,
            execution_id=execution_id,
        )
    return _make


@pytest.fixture
def partial_fill_batch(make_execution):
    """BUY 100@10 d1, BUY 50@12 d2, SELL 120@15 d3 on instrument X."""
    return [
        make_execution("BUY", 100, 10, on=1, execution_id="b1"),
        make_execution("BUY", 50, 12, on=2, execution_id="b2"),
        make_execution("SELL", 120, 15, on=3, execution_id="s1"),
    ]


@pytest.fixture
def mixed_batch(make_execution):
    """Several instruments, interleaved, with commissions and partial fills."""
    return [
        make_execution("BUY", 100, "101.50", on=1, instrument="INFY", execution_id="i1", commission="20"),
        make_execution("SELL", 40, "250.00", on=1, instrument="TCS", execution_id="t1", commission="5"),
        make_execution("BUY", 60, "99.25", on=2, instrument="INFY", execution_id="i2", commission="15"),
        make_execution("SELL", 130, "103.00", on=3, instrument="INFY", execution_id="i3", commission="30"),
        make_execution("BUY", 25, "240.00", on=4, instrument="TCS", execution_id="t2", commission="5"),
        make_execution("BUY", 10, "55.10", on=4, instrument="HDFC", execution_id="h1"),
    ]
