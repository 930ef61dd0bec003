"""
Trade Matcher File Storage

File-based storage using JSON lines format, for import jobs that run
without a database and for replaying batches in tests.

Raw execution files are append-only. A ledger directory written by
save_matching_result() is replaced as a whole, one file at a time via
temporary siblings, so a failed save never leaves it half-written.

Money fields are written as strings so Decimal values survive the round
trip unchanged.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel

from trade_matcher.models import MatchedRoundTrip, MatchingResult, OpenLot, RawExecution
from trade_matcher.exceptions import StorageException
from trade_matcher.utils import keep_last_by_key, round_trip_key

M = TypeVar("M", bound=BaseModel)


def _dump_lines(f, records: Iterable[BaseModel]) -> int:
    written = 0
    for record in records:
        json.dump(record.model_dump(mode="json"), f, default=str)
        f.write("\n")
        written += 1
    return written


def _append_records(file_path: str | Path, records: Iterable[BaseModel], kind: str) -> int:
    try:
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "a") as f:
            return _dump_lines(f, records)

    except Exception as e:
        raise StorageException(f"Failed to append {kind} to {file_path}: {e}") from e


def _write_records(file_path: Path, records: Iterable[BaseModel], kind: str) -> int:
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w") as f:
            return _dump_lines(f, records)

    except Exception as e:
        raise StorageException(f"Failed to write {kind} to {file_path}: {e}") from e


def _load_records(
    file_path: str | Path,
    model: Type[M],
    filters: Dict[str, Any] | None,
    kind: str,
) -> List[M]:
    try:
        file_path = Path(file_path)

        if not file_path.exists():
            return []

        records = []
        with open(file_path, "r") as f:
            for line in f:
                if not line.strip():
                    continue
                record = model.model_validate(json.loads(line))
                if filters and not _matches_filters(record, filters):
                    continue
                records.append(record)
        return records

    except Exception as e:
        raise StorageException(f"Failed to load {kind} from {file_path}: {e}") from e


def append_executions_to_file(file_path: str | Path, executions: Iterable[RawExecution]) -> int:
    """
    Append raw executions to a JSON lines file.

    Returns:
        Number of records written

    Raises:
        StorageException: If write fails
    """
    return _append_records(file_path, executions, "executions")


def append_round_trips_to_file(
    file_path: str | Path, round_trips: Iterable[MatchedRoundTrip]
) -> int:
    """
    Append matched round trips to a JSON lines file.

    Returns:
        Number of records written

    Raises:
        StorageException: If write fails
    """
    return _append_records(file_path, round_trips, "round trips")


def append_open_lots_to_file(file_path: str | Path, open_lots: Iterable[OpenLot]) -> int:
    """
    Append open lots to a JSON lines file.

    Returns:
        Number of records written

    Raises:
        StorageException: If write fails
    """
    return _append_records(file_path, open_lots, "open lots")


def load_executions(
    file_path: str | Path, filters: Dict[str, Any] | None = None
) -> List[RawExecution]:
    """
    Load raw executions from a JSON lines file.

    Args:
        file_path: Path to JSON lines file
        filters: Optional field equality filters (e.g., {"instrument_id": "INFY"})

    Returns:
        Executions in file order; empty if the file does not exist

    Raises:
        StorageException: If read or parsing fails
    """
    return _load_records(file_path, RawExecution, filters, "executions")


def load_round_trips(
    file_path: str | Path, filters: Dict[str, Any] | None = None
) -> List[MatchedRoundTrip]:
    """Load round trips from a JSON lines file (empty if missing)."""
    return _load_records(file_path, MatchedRoundTrip, filters, "round trips")


def load_open_lots(
    file_path: str | Path, filters: Dict[str, Any] | None = None
) -> List[OpenLot]:
    """Load open lots from a JSON lines file (empty if missing)."""
    return _load_records(file_path, OpenLot, filters, "open lots")


def merge_round_trips(
    existing: Iterable[MatchedRoundTrip],
    new: Iterable[MatchedRoundTrip],
    user_id: Optional[str] = None,
) -> List[MatchedRoundTrip]:
    """
    Merge round trips on their upsert key, later records replacing earlier ones.

    Round trips missing a buy or sell execution id are always kept.
    """
    merged: Dict[tuple, MatchedRoundTrip] = {}
    for rt in list(existing) + list(new):
        keep_last_by_key(merged, round_trip_key(user_id, rt), rt)
    return list(merged.values())


def _staging_path(path: Path) -> Path:
    return path.with_name(path.name + ".tmp")


def save_matching_result(
    directory: str | Path,
    result: MatchingResult,
    user_id: Optional[str] = None,
) -> Dict[str, Path]:
    """
    Write a result as round_trips.jsonl, open_lots.jsonl and summary.json.

    Round trips accumulate across imports, merged on
    (instrument, buy id, sell id) so saving an overlapping result again
    does not duplicate them. Open lots replace the previous inventory.

    All three files are written to temporary siblings first and only moved
    into place once every write has succeeded; on failure the ledger is left
    as it was.

    Returns:
        Mapping of file role to path

    Raises:
        StorageException: If any write fails
    """
    directory = Path(directory)
    paths = {
        "round_trips": directory / "round_trips.jsonl",
        "open_lots": directory / "open_lots.jsonl",
        "summary": directory / "summary.json",
    }
    staged = {role: _staging_path(path) for role, path in paths.items()}

    round_trips = merge_round_trips(
        load_round_trips(paths["round_trips"]), result.round_trips, user_id
    )
    summary = {
        "total_matched": result.total_matched,
        "total_unmatched": result.total_unmatched,
        "net_realized_profit": str(result.net_realized_profit),
    }

    try:
        _write_records(staged["round_trips"], round_trips, "round trips")
        _write_records(staged["open_lots"], result.open_lots, "open lots")
        _write_summary(staged["summary"], summary)
    except StorageException:
        for path in staged.values():
            path.unlink(missing_ok=True)
        raise

    try:
        for role, path in paths.items():
            os.replace(staged[role], path)
    except OSError as e:
        raise StorageException(f"Failed to move ledger files into {directory}: {e}") from e

    return paths


def _write_summary(file_path: Path, summary: Dict[str, Any]) -> None:
    try:
        with open(file_path, "w") as f:
            json.dump(summary, f, indent=2)
    except Exception as e:
        raise StorageException(f"Failed to write summary to {file_path}: {e}") from e


def _matches_filters(obj: Any, filters: Dict[str, Any]) -> bool:
    for field, value in filters.items():
        if getattr(obj, field, None) != value:
            return False
    return True
