"""
Database Persistence Tests

The psycopg2 connection is replaced by a MagicMock; these tests check the
statements, rows and transaction handling, not PostgreSQL itself.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

import psycopg2
import pytest
from psycopg2.extras import RealDictCursor

from trade_matcher import ConfigurationError, PersistenceError, run_matching_engine
from trade_matcher.config import DatabaseConfig
from trade_matcher.models import MatchedRoundTrip, OpenLot
from trade_matcher.persistence import MatchingStore, open_lot_rows, round_trip_rows


@pytest.fixture
def connection():
    return MagicMock()


@pytest.fixture
def store(connection):
    return MatchingStore(config=DatabaseConfig(schema="ledger_test"), connection=connection)


def _cursor(connection):
    return connection.cursor.return_value.__enter__.return_value


class TestRows:
    """Row building and key de-duplication."""

    def test_round_trip_rows(self, partial_fill_batch):
        result = run_matching_engine(partial_fill_batch)

        rows = round_trip_rows("user-1", result.round_trips)

        assert len(rows) == 2
        assert rows[0][:2] == ("user-1", "X")
        assert rows[0][-2:] == ("b1", "s1")
        assert rows[1][10] == Decimal("60.00")

    def test_duplicate_keys_collapse_last_wins(self):
        def rt(profit, buy_id="b", sell_id="s"):
            return MatchedRoundTrip(
                instrument_id="X",
                quantity=1,
                buy_price=1,
                sell_price=2,
                commission=0,
                realized_profit=profit,
                buy_execution_id=buy_id,
                sell_execution_id=sell_id,
            )

        rows = round_trip_rows("u", [rt(1), rt(2)])
        assert len(rows) == 1
        assert rows[0][10] == Decimal("2")

        anonymous = round_trip_rows("u", [rt(1, None, None), rt(2, None, None)])
        assert len(anonymous) == 2

    def test_open_lot_rows(self):
        lot = OpenLot(
            instrument_id="X",
            side="SELL",
            execution_date=date(2024, 1, 3),
            price="20",
            remaining_quantity=15,
            execution_id="t1",
        )

        assert open_lot_rows("u", [lot, lot]) == [
            ("u", "X", "SELL", date(2024, 1, 3), None, Decimal("20"), 15, Decimal("0"), "t1")
        ]


class TestMatchingStore:
    """Transactions against a mocked connection."""

    def test_invalid_schema_name(self, connection):
        with pytest.raises(ConfigurationError):
            MatchingStore(config=DatabaseConfig(schema="ledger; DROP TABLE x"), connection=connection)

    def test_requires_connection(self):
        store = MatchingStore(config=DatabaseConfig())

        with pytest.raises(PersistenceError):
            store.load_open_lots("u")

    @patch("trade_matcher.persistence.execute_values")
    def test_persist_result(self, mock_execute_values, store, connection, partial_fill_batch):
        result = run_matching_engine(partial_fill_batch)

        counts = store.persist_result("user-1", result)

        assert counts == {"round_trips": 2, "open_lots": 1}
        cursor = _cursor(connection)

        upsert_rt, upsert_lots = mock_execute_values.call_args_list
        assert upsert_rt.args[0] is cursor
        assert "ledger_test.matched_round_trips" in upsert_rt.args[1]
        assert "ON CONFLICT (user_id, instrument_id, buy_execution_id, sell_execution_id)" in upsert_rt.args[1]
        assert len(upsert_rt.args[2]) == 2
        assert "ledger_test.open_lots" in upsert_lots.args[1]

        delete_sql, delete_params = cursor.execute.call_args.args
        assert delete_sql.startswith("DELETE FROM ledger_test.open_lots")
        assert delete_params == ("user-1",)

        connection.commit.assert_called_once()
        connection.rollback.assert_not_called()

    @patch("trade_matcher.persistence.execute_values")
    def test_persist_empty_result_clears_open_lots(self, mock_execute_values, store, connection):
        counts = store.persist_result("user-1", run_matching_engine([]))

        assert counts == {"round_trips": 0, "open_lots": 0}
        mock_execute_values.assert_not_called()
        _cursor(connection).execute.assert_called_once()
        connection.commit.assert_called_once()

    @patch("trade_matcher.persistence.execute_values")
    def test_failure_rolls_back(self, mock_execute_values, store, connection, partial_fill_batch):
        mock_execute_values.side_effect = psycopg2.Error("unique violation")

        with pytest.raises(PersistenceError):
            store.persist_result("user-1", run_matching_engine(partial_fill_batch))

        connection.rollback.assert_called_once()
        connection.commit.assert_not_called()

    def test_load_open_lots(self, store, connection):
        cursor = _cursor(connection)
        cursor.fetchall.return_value = [
            {
                "instrument_id": "X",
                "side": "BUY",
                "execution_date": date(2024, 1, 2),
                "execution_time": None,
                "price": Decimal("12"),
                "remaining_quantity": 30,
                "commission": Decimal("0"),
                "execution_id": "b2",
            }
        ]

        lots = store.load_open_lots("user-1")

        connection.cursor.assert_called_with(cursor_factory=RealDictCursor)
        assert cursor.execute.call_args.args[1] == ("user-1",)
        assert lots == [
            OpenLot(
                instrument_id="X",
                side="BUY",
                execution_date=date(2024, 1, 2),
                price=Decimal("12"),
                remaining_quantity=30,
                execution_id="b2",
            )
        ]

    def test_ensure_schema(self, store, connection):
        store.ensure_schema()

        ddl = _cursor(connection).execute.call_args.args[0]
        assert "CREATE TABLE IF NOT EXISTS ledger_test.open_lots" in ddl
        assert "UNIQUE (user_id, instrument_id, execution_id)" in ddl
        connection.commit.assert_called_once()

    @patch("trade_matcher.persistence.psycopg2.connect")
    def test_connect_failure(self, mock_connect):
        mock_connect.side_effect = psycopg2.OperationalError("refused")
        store = MatchingStore(config=DatabaseConfig())

        with pytest.raises(PersistenceError):
            store.connect()
        assert not store.connected

    @patch("trade_matcher.persistence.psycopg2.connect")
    def test_connect_and_disconnect(self, mock_connect):
        store = MatchingStore(config=DatabaseConfig(host="db", password="secret"))

        assert store.connect()
        mock_connect.assert_called_once_with(
            host="db", port=5432, database="trade_matcher", user="trade_matcher", password="secret"
        )

        store.disconnect()
        mock_connect.return_value.close.assert_called_once()
        assert not store.connected
