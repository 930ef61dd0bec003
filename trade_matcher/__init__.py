"""
Trade Matcher
=============

A deterministic FIFO lot-matching engine that reduces a trader's raw
executions to closed round trips and open inventory, per instrument.

This package provides pure, auditable functions for:
- Validating execution batches (all-or-nothing)
- Partitioning executions by instrument
- Building chronological buy/sell lot queues
- FIFO matching with realized P&L
- Aggregating results and computing performance analytics

Design Principles:
- Pure functions: No side effects, explicit inputs/outputs
- DB-agnostic core: All matching works on in-memory data structures
- Strong typing: Pydantic models with runtime coercion
- Deterministic: Same inputs always produce the same outputs
- Fail-fast: ValidationError rejects a bad batch before anything is matched

Entry Point:
    run_matching_engine() - Main orchestration function

Key Modules:
    models - Pydantic data models
    validation - Batch business-rule checks
    partitioner - Executions → per-instrument groups
    sorter - Groups → chronological lot queues
    fifo - Lot queues → round trips + open lots
    aggregator - Per-instrument output → MatchingResult
    analytics - Performance statistics
    storage - JSON lines files
    persistence - PostgreSQL upserts
    exceptions - Domain-specific exceptions
"""

from trade_matcher.models import (
    BUY,
    SELL,
    RawExecution,
    Lot,
    MatchedRoundTrip,
    OpenLot,
    MatchingResult,
    InstrumentSummary,
    TradeAnalytics,
)
from trade_matcher.config import MatchingConfig, DatabaseConfig, load_matching_config
from trade_matcher.engine import run_matching_engine, drop_duplicate_executions
from trade_matcher.validation import validate_execution, validate_execution_batch
from trade_matcher.partitioner import partition_by_instrument
from trade_matcher.sorter import build_lot_queues
from trade_matcher.fifo import match_instrument
from trade_matcher.aggregator import aggregate_results, verify_conservation
from trade_matcher.analytics import compute_trade_analytics, summarize_by_instrument
from trade_matcher.exceptions import (
    TradeMatcherError,
    ValidationError,
    ConfigurationError,
    StorageException,
    PersistenceError,
)

__version__ = "1.0.0"
__all__ = [
    # Main entry point
    "run_matching_engine",
    # Pipeline stages
    "validate_execution",
    "validate_execution_batch",
    "drop_duplicate_executions",
    "partition_by_instrument",
    "build_lot_queues",
    "match_instrument",
    "aggregate_results",
    "verify_conservation",
    # Analytics
    "compute_trade_analytics",
    "summarize_by_instrument",
    # Models
    "BUY",
    "SELL",
    "RawExecution",
    "Lot",
    "MatchedRoundTrip",
    "OpenLot",
    "MatchingResult",
    "InstrumentSummary",
    "TradeAnalytics",
    # Configuration
    "MatchingConfig",
    "DatabaseConfig",
    "load_matching_config",
    # Exceptions
    "TradeMatcherError",
    "ValidationError",
    "ConfigurationError",
    "StorageException",
    "PersistenceError",
]
