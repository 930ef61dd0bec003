"""
Execution Batch Validation

Business-rule checks run over the whole batch before any matching starts.
A batch is accepted or rejected as a unit.
"""

import logging
from typing import List, Optional, Sequence

from trade_matcher.models import RawExecution, OpenLot, SIDES
from trade_matcher.exceptions import ValidationError


def validate_execution(
    execution: RawExecution,
    index: Optional[int] = None,
    require_date: bool = False,
) -> RawExecution:
    """
    Validate and return a single execution (pure function).

    Args:
        execution: Execution to check
        index: Position in the batch, used in the error when execution_id is missing
        require_date: Treat a missing or unparsable date as invalid

    Returns:
        The same execution

    Raises:
        ValidationError: If the execution breaks a business rule
    """
    execution_id = execution.execution_id

    if not execution.instrument_id:
        raise ValidationError(
            "instrument_id must not be empty", execution_id=execution_id, index=index
        )

    if execution.side not in SIDES:
        raise ValidationError(
            f"side must be BUY or SELL, got {execution.side!r}",
            execution_id=execution_id,
            index=index,
        )

    if execution.quantity <= 0:
        raise ValidationError(
            f"quantity must be > 0, got {execution.quantity}",
            execution_id=execution_id,
            index=index,
        )

    if not execution.price.is_finite() or execution.price < 0:
        raise ValidationError(
            f"price must be >= 0, got {execution.price}",
            execution_id=execution_id,
            index=index,
        )

    if not execution.commission.is_finite() or execution.commission < 0:
        raise ValidationError(
            f"commission must be >= 0, got {execution.commission}",
            execution_id=execution_id,
            index=index,
        )

    if require_date and execution.execution_date is None:
        raise ValidationError(
            "execution_date is missing or unparsable",
            execution_id=execution_id,
            index=index,
        )

    return execution


def validate_execution_batch(
    executions: Sequence[RawExecution],
    require_date: bool = False,
    logger: Optional[logging.Logger] = None,
) -> List[RawExecution]:
    """
    Validate every execution in a batch.

    Args:
        executions: Executions for one user
        require_date: Treat a missing or unparsable date as invalid
        logger: Optional logger

    Returns:
        List of validated executions, in input order

    Raises:
        ValidationError: On the first invalid execution; nothing is matched
    """
    validated = []
    for index, execution in enumerate(executions):
        try:
            validated.append(validate_execution(execution, index, require_date))
        except ValidationError as e:
            if logger:
                logger.error(f"Rejecting batch of {len(executions)} executions: {e}")
            raise
    return validated


def validate_open_lots(open_lots: Sequence[OpenLot]) -> List[OpenLot]:
    """
    Validate carried-forward lots from a previous run.

    Raises:
        ValidationError: If a lot has an empty instrument, or a negative or
            non-finite price or commission
    """
    for index, lot in enumerate(open_lots):
        if not lot.instrument_id:
            raise ValidationError(
                "open lot instrument_id must not be empty",
                execution_id=lot.execution_id,
                index=index,
            )
        if not lot.price.is_finite() or lot.price < 0:
            raise ValidationError(
                f"open lot price must be >= 0, got {lot.price}",
                execution_id=lot.execution_id,
                index=index,
            )
        if not lot.commission.is_finite() or lot.commission < 0:
            raise ValidationError(
                f"open lot commission must be >= 0, got {lot.commission}",
                execution_id=lot.execution_id,
                index=index,
            )
    return list(open_lots)
