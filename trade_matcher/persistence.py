"""
Trade Ledger Database Persistence Layer

Purpose: Store matching results in PostgreSQL so that re-importing
overlapping execution batches never duplicates records.
Tables: <schema>.matched_round_trips, <schema>.open_lots

Idempotency keys:
- Round trips: (user_id, instrument_id, buy_execution_id, sell_execution_id)
- Open lots:   (user_id, instrument_id, execution_id)

Rows whose execution ids are NULL cannot collide on these keys and are
always inserted; import sources should supply execution ids.

Integration:
- Import job → load_open_lots() → run_matching_engine() → persist_result()
"""

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

import psycopg2
from psycopg2.extras import RealDictCursor, execute_values

from trade_matcher.config import DatabaseConfig
from trade_matcher.exceptions import ConfigurationError, PersistenceError
from trade_matcher.models import MatchedRoundTrip, MatchingResult, OpenLot
from trade_matcher.utils import keep_last_by_key, open_lot_key, round_trip_key

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

SCHEMA_DDL = """
CREATE SCHEMA IF NOT EXISTS {schema};

CREATE TABLE IF NOT EXISTS {schema}.matched_round_trips (
    round_trip_id BIGSERIAL PRIMARY KEY,
    user_id TEXT NOT NULL,
    instrument_id TEXT NOT NULL,
    opening_date DATE,
    opening_time TIME,
    closing_date DATE,
    closing_time TIME,
    quantity INTEGER NOT NULL CHECK (quantity > 0),
    buy_price NUMERIC NOT NULL,
    sell_price NUMERIC NOT NULL,
    commission NUMERIC NOT NULL,
    realized_profit NUMERIC(20, 2) NOT NULL,
    duration_minutes INTEGER,
    buy_execution_id TEXT,
    sell_execution_id TEXT,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (user_id, instrument_id, buy_execution_id, sell_execution_id)
);

CREATE TABLE IF NOT EXISTS {schema}.open_lots (
    lot_id BIGSERIAL PRIMARY KEY,
    user_id TEXT NOT NULL,
    instrument_id TEXT NOT NULL,
    side TEXT NOT NULL CHECK (side IN ('BUY', 'SELL')),
    execution_date DATE,
    execution_time TIME,
    price NUMERIC NOT NULL,
    remaining_quantity INTEGER NOT NULL CHECK (remaining_quantity > 0),
    commission NUMERIC NOT NULL,
    execution_id TEXT,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (user_id, instrument_id, execution_id)
);
"""

ROUND_TRIP_UPSERT = """
INSERT INTO {schema}.matched_round_trips (
    user_id, instrument_id, opening_date, opening_time, closing_date, closing_time,
    quantity, buy_price, sell_price, commission, realized_profit, duration_minutes,
    buy_execution_id, sell_execution_id
) VALUES %s
ON CONFLICT (user_id, instrument_id, buy_execution_id, sell_execution_id) DO UPDATE SET
    opening_date = EXCLUDED.opening_date,
    opening_time = EXCLUDED.opening_time,
    closing_date = EXCLUDED.closing_date,
    closing_time = EXCLUDED.closing_time,
    quantity = EXCLUDED.quantity,
    buy_price = EXCLUDED.buy_price,
    sell_price = EXCLUDED.sell_price,
    commission = EXCLUDED.commission,
    realized_profit = EXCLUDED.realized_profit,
    duration_minutes = EXCLUDED.duration_minutes,
    updated_at = NOW()
"""

OPEN_LOT_UPSERT = """
INSERT INTO {schema}.open_lots (
    user_id, instrument_id, side, execution_date, execution_time,
    price, remaining_quantity, commission, execution_id
) VALUES %s
ON CONFLICT (user_id, instrument_id, execution_id) DO UPDATE SET
    side = EXCLUDED.side,
    execution_date = EXCLUDED.execution_date,
    execution_time = EXCLUDED.execution_time,
    price = EXCLUDED.price,
    remaining_quantity = EXCLUDED.remaining_quantity,
    commission = EXCLUDED.commission,
    updated_at = NOW()
"""

OPEN_LOT_DELETE = "DELETE FROM {schema}.open_lots WHERE user_id = %s"

OPEN_LOT_SELECT = """
SELECT instrument_id, side, execution_date, execution_time,
       price, remaining_quantity, commission, execution_id
FROM {schema}.open_lots
WHERE user_id = %s
ORDER BY lot_id
"""


def round_trip_rows(user_id: str, round_trips: Sequence[MatchedRoundTrip]) -> List[tuple]:
    """Rows for ROUND_TRIP_UPSERT, one per distinct key (last wins)."""
    rows: Dict[Tuple, tuple] = {}
    for rt in round_trips:
        row = (
            user_id,
            rt.instrument_id,
            rt.opening_date,
            rt.opening_time,
            rt.closing_date,
            rt.closing_time,
            rt.quantity,
            rt.buy_price,
            rt.sell_price,
            rt.commission,
            rt.realized_profit,
            rt.duration_minutes,
            rt.buy_execution_id,
            rt.sell_execution_id,
        )
        keep_last_by_key(rows, round_trip_key(user_id, rt), row)
    return list(rows.values())


def open_lot_rows(user_id: str, open_lots: Sequence[OpenLot]) -> List[tuple]:
    """Rows for OPEN_LOT_UPSERT, one per distinct key (last wins)."""
    rows: Dict[Tuple, tuple] = {}
    for lot in open_lots:
        row = (
            user_id,
            lot.instrument_id,
            lot.side,
            lot.execution_date,
            lot.execution_time,
            lot.price,
            lot.remaining_quantity,
            lot.commission,
            lot.execution_id,
        )
        keep_last_by_key(rows, open_lot_key(user_id, lot), row)
    return list(rows.values())


class MatchingStore:
    """
    PostgreSQL store for round trips and open lots.

    One instance serves one connection. All writes for a result happen in a
    single transaction; on failure the transaction is rolled back and
    PersistenceError is raised.
    """

    def __init__(self, config: Optional[DatabaseConfig] = None, connection=None):
        """
        Initialize the store.

        Args:
            config: Database configuration (default: DatabaseConfig.from_env())
            connection: Existing DB-API connection to use instead of connecting
        """
        self.config = config or DatabaseConfig.from_env()
        if not _IDENTIFIER.match(self.config.schema):
            raise ConfigurationError(f"Invalid schema name: {self.config.schema!r}")
        self.schema = self.config.schema
        self.connection = connection
        self.connected = connection is not None

    def connect(self) -> bool:
        """
        Establish database connection.

        Returns:
            True once connected

        Raises:
            PersistenceError: If the connection cannot be opened
        """
        try:
            self.connection = psycopg2.connect(
                host=self.config.host,
                port=self.config.port,
                database=self.config.database,
                user=self.config.user,
                password=self.config.password,
            )
        except psycopg2.Error as e:
            self.connected = False
            raise PersistenceError(f"Database connection failed: {e}") from e

        self.connected = True
        logger.info(
            f"Connected to {self.config.host}:{self.config.port}/{self.config.database}"
        )
        return True

    def disconnect(self):
        """Close database connection."""
        if self.connection:
            self.connection.close()
        self.connection = None
        self.connected = False

    def _require_connection(self):
        if not self.connected or self.connection is None:
            raise PersistenceError("Database not connected")

    def _sql(self, template: str) -> str:
        return template.format(schema=self.schema)

    def ensure_schema(self) -> None:
        """Create the schema and ledger tables if they do not exist."""
        self._require_connection()
        try:
            with self.connection.cursor() as cursor:
                cursor.execute(self._sql(SCHEMA_DDL))
            self.connection.commit()
        except psycopg2.Error as e:
            self.connection.rollback()
            raise PersistenceError(f"Failed to create ledger schema: {e}") from e

    def upsert_round_trips(self, cursor, user_id: str, round_trips: Sequence[MatchedRoundTrip]) -> int:
        """
        Upsert round trips on the current transaction (no commit).

        Returns:
            Number of rows sent
        """
        rows = round_trip_rows(user_id, round_trips)
        if rows:
            execute_values(cursor, self._sql(ROUND_TRIP_UPSERT), rows)
        return len(rows)

    def replace_open_lots(self, cursor, user_id: str, open_lots: Sequence[OpenLot]) -> int:
        """
        Replace the user's open inventory on the current transaction (no commit).

        The previous open lots were inputs to the run that produced these,
        so they are deleted rather than merged.

        Returns:
            Number of rows sent
        """
        cursor.execute(self._sql(OPEN_LOT_DELETE), (user_id,))
        rows = open_lot_rows(user_id, open_lots)
        if rows:
            execute_values(cursor, self._sql(OPEN_LOT_UPSERT), rows)
        return len(rows)

    def persist_result(self, user_id: str, result: MatchingResult) -> Dict[str, int]:
        """
        Write one matching result atomically.

        Args:
            user_id: Owner of the executions
            result: Output of run_matching_engine()

        Returns:
            Counts of round trip and open lot rows written

        Raises:
            PersistenceError: If not connected or any statement fails
        """
        self._require_connection()
        try:
            with self.connection.cursor() as cursor:
                round_trips = self.upsert_round_trips(cursor, user_id, result.round_trips)
                open_lots = self.replace_open_lots(cursor, user_id, result.open_lots)
            self.connection.commit()
        except psycopg2.Error as e:
            self.connection.rollback()
            logger.error(f"Persisting result for user {user_id} failed: {e}")
            raise PersistenceError(f"Failed to persist result for {user_id}: {e}") from e

        logger.info(
            f"Persisted user {user_id}: {round_trips} round trip(s), {open_lots} open lot(s)"
        )
        return {"round_trips": round_trips, "open_lots": open_lots}

    def load_open_lots(self, user_id: str) -> List[OpenLot]:
        """
        Load the user's open lots in insertion order, for continuation.

        Raises:
            PersistenceError: If not connected or the query fails
        """
        self._require_connection()
        try:
            with self.connection.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(self._sql(OPEN_LOT_SELECT), (user_id,))
                rows = cursor.fetchall()
        except psycopg2.Error as e:
            self.connection.rollback()
            raise PersistenceError(f"Failed to load open lots for {user_id}: {e}") from e

        return [OpenLot.model_validate(dict(row)) for row in rows]
