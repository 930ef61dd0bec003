"""
Lot-Matching Engine Orchestration
=================================

Main entry point for the trade matcher.

The run_matching_engine() function orchestrates the complete pipeline:
1. Validate the batch (all-or-nothing)
2. Partition executions by instrument
3. Build chronological buy/sell queues per instrument
4. Match each instrument FIFO
5. Aggregate into one MatchingResult

This is the function that import jobs (file upload, broker sync) should
call. Persisting the result is the caller's job; see
trade_matcher.persistence for an idempotent upsert adapter.

Design:
- Deterministic: Same inputs always produce the same MatchingResult
- Side-effect free: No I/O; carried-forward lots are copied, never mutated
- Fail-fast: Any invalid execution rejects the whole batch
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence
import logging

from trade_matcher.aggregator import InstrumentOutcome, aggregate_results
from trade_matcher.config import MatchingConfig
from trade_matcher.fifo import match_instrument
from trade_matcher.models import MatchingResult, OpenLot, RawExecution
from trade_matcher.partitioner import instrument_order, partition_by_instrument
from trade_matcher.sorter import build_lot_queues
from trade_matcher.validation import validate_execution_batch, validate_open_lots


def drop_duplicate_executions(
    executions: Sequence[RawExecution],
    prior_open_lots: Sequence[OpenLot] = (),
    logger: Optional[logging.Logger] = None,
) -> List[RawExecution]:
    """Remove executions whose execution_id has already been seen.

    An id counts as seen when it belongs to a carried-forward lot or to an
    earlier execution in the same batch. Executions without an id are kept.
    """
    seen = {lot.execution_id for lot in prior_open_lots if lot.execution_id}
    kept = []
    dropped = 0

    for execution in executions:
        execution_id = execution.execution_id
        if execution_id and execution_id in seen:
            dropped += 1
            if logger:
                logger.warning(
                    f"Dropping duplicate execution {execution_id} ({execution.instrument_id})"
                )
            continue
        if execution_id:
            seen.add(execution_id)
        kept.append(execution)

    if logger and dropped:
        logger.info(f"Dropped {dropped} duplicate execution(s)")

    return kept


def _match_one(
    instrument_id: str,
    executions: Sequence[RawExecution],
    prior_open_lots: Sequence[OpenLot],
    logger: Optional[logging.Logger],
) -> InstrumentOutcome:
    buys, sells = build_lot_queues(executions, prior_open_lots)
    if logger:
        logger.debug(
            f"Matching {instrument_id}: {len(buys)} buy lot(s), {len(sells)} sell lot(s)"
        )
    return match_instrument(instrument_id, buys, sells, logger=logger)


def run_matching_engine(
    executions: Sequence[RawExecution],
    prior_open_lots: Optional[Sequence[OpenLot]] = None,
    config: Optional[MatchingConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> MatchingResult:
    """Main entry point for the lot-matching engine.

    Args:
        executions: Raw executions for exactly one user, in any order
        prior_open_lots: Open lots left by a previous run for the same user.
                         They are treated as older than every new execution.
        config: Run options (default: MatchingConfig())
        logger: Optional logger for diagnostics

    Returns:
        MatchingResult with round trips, open lots and totals

    Raises:
        ValidationError: If any execution or carried-forward lot is invalid.
                         Nothing is matched in that case.

    Example:
        >>> result = run_matching_engine(executions, prior_open_lots=open_lots)
        >>> for rt in result.round_trips:
        ...     print(f"{rt.instrument_id} {rt.quantity} {rt.realized_profit}")
    """
    if config is None:
        config = MatchingConfig()
    prior_open_lots = list(prior_open_lots or [])

    if logger:
        logger.info(
            f"Lot matching starting: {len(executions)} execution(s), "
            f"{len(prior_open_lots)} carried-forward lot(s)"
        )

    executions = validate_execution_batch(
        executions, require_date=config.reject_unknown_dates, logger=logger
    )
    prior_open_lots = validate_open_lots(prior_open_lots)

    if config.deduplicate_execution_ids:
        executions = drop_duplicate_executions(executions, prior_open_lots, logger)

    if logger:
        undated = sum(1 for e in executions if e.execution_date is None)
        if undated:
            logger.warning(
                f"{undated} execution(s) have no parsable date; "
                f"they are matched after dated executions"
            )

    new_by_instrument = partition_by_instrument(executions)
    prior_by_instrument = partition_by_instrument(prior_open_lots)
    order = instrument_order(prior_by_instrument, new_by_instrument)

    per_instrument: Dict[str, InstrumentOutcome] = {}

    if config.max_workers and config.max_workers > 1 and len(order) > 1:
        with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
            futures = {
                instrument_id: pool.submit(
                    _match_one,
                    instrument_id,
                    new_by_instrument.get(instrument_id, []),
                    prior_by_instrument.get(instrument_id, []),
                    logger,
                )
                for instrument_id in order
            }
            for instrument_id, future in futures.items():
                per_instrument[instrument_id] = future.result()
    else:
        for instrument_id in order:
            per_instrument[instrument_id] = _match_one(
                instrument_id,
                new_by_instrument.get(instrument_id, []),
                prior_by_instrument.get(instrument_id, []),
                logger,
            )

    result = aggregate_results(per_instrument, order)

    if logger:
        logger.info(
            f"Lot matching complete: {result.total_matched} round trip(s), "
            f"{result.total_unmatched} open lot(s), "
            f"net_realized_profit={result.net_realized_profit}"
        )

    return result
