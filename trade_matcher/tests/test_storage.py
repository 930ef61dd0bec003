"""
JSON Lines Storage Tests
"""

import json
from decimal import Decimal
from unittest.mock import patch

import pytest

from trade_matcher import StorageException, run_matching_engine
from trade_matcher import storage
from trade_matcher.storage import (
    append_executions_to_file,
    append_open_lots_to_file,
    append_round_trips_to_file,
    load_executions,
    load_open_lots,
    load_round_trips,
    merge_round_trips,
    save_matching_result,
)


class TestExecutionFiles:
    """Raw execution import files."""

    def test_append_and_load(self, tmp_path, mixed_batch):
        path = tmp_path / "imports" / "executions.jsonl"

        written = append_executions_to_file(path, mixed_batch)
        loaded = load_executions(path)

        assert written == len(mixed_batch)
        assert loaded == mixed_batch

    def test_missing_file_is_empty(self, tmp_path):
        assert load_executions(tmp_path / "nope.jsonl") == []

    def test_filters(self, tmp_path, mixed_batch):
        path = tmp_path / "executions.jsonl"
        append_executions_to_file(path, mixed_batch)

        infy = load_executions(path, filters={"instrument_id": "INFY"})

        assert [e.execution_id for e in infy] == ["i1", "i2", "i3"]

    def test_corrupt_line_raises(self, tmp_path):
        path = tmp_path / "executions.jsonl"
        path.write_text('{"instrument_id": "X"\n')

        with pytest.raises(StorageException):
            load_executions(path)

    def test_blank_lines_skipped(self, tmp_path, make_execution):
        path = tmp_path / "executions.jsonl"
        append_executions_to_file(path, [make_execution("BUY", 1, 1)])
        with open(path, "a") as f:
            f.write("\n\n")

        assert len(load_executions(path)) == 1

    def test_replayed_file_matches_identically(self, tmp_path, mixed_batch):
        path = tmp_path / "executions.jsonl"
        append_executions_to_file(path, mixed_batch)

        assert run_matching_engine(load_executions(path)) == run_matching_engine(mixed_batch)


class TestResultFiles:
    """Round trip and open lot files."""

    def test_round_trips_keep_decimals(self, tmp_path, mixed_batch):
        result = run_matching_engine(mixed_batch)
        path = tmp_path / "round_trips.jsonl"

        append_round_trips_to_file(path, result.round_trips)
        loaded = load_round_trips(path)

        assert tuple(loaded) == result.round_trips
        assert loaded[1].realized_profit == Decimal("67.50")

    def test_open_lots_feed_next_run(self, tmp_path, partial_fill_batch, make_execution):
        first = run_matching_engine(partial_fill_batch)
        path = tmp_path / "open_lots.jsonl"
        append_open_lots_to_file(path, first.open_lots)

        carried = load_open_lots(path)
        second = run_matching_engine(
            [make_execution("SELL", 30, 13, on=5, execution_id="s9")],
            prior_open_lots=carried,
        )

        assert second.round_trips[0].buy_execution_id == "b2"
        assert second.net_realized_profit == Decimal("30.00")

    def test_save_matching_result(self, tmp_path, partial_fill_batch, make_execution):
        first = run_matching_engine(partial_fill_batch)
        paths = save_matching_result(tmp_path / "ledger", first)

        summary = json.loads(paths["summary"].read_text())
        assert summary == {"total_matched": 2, "total_unmatched": 1, "net_realized_profit": "560.00"}

        second = run_matching_engine(
            [make_execution("SELL", 30, 13, on=5, execution_id="s9")],
            prior_open_lots=load_open_lots(paths["open_lots"]),
        )
        save_matching_result(tmp_path / "ledger", second)

        assert len(load_round_trips(paths["round_trips"])) == 3
        assert load_open_lots(paths["open_lots"]) == []

    def test_resave_does_not_duplicate_round_trips(self, tmp_path, partial_fill_batch):
        result = run_matching_engine(partial_fill_batch)

        paths = save_matching_result(tmp_path / "ledger", result)
        save_matching_result(tmp_path / "ledger", result)

        assert tuple(load_round_trips(paths["round_trips"])) == result.round_trips
        assert len(load_open_lots(paths["open_lots"])) == 1

    def test_overlapping_import_keeps_one_record_per_key(self, tmp_path, partial_fill_batch):
        directory = tmp_path / "ledger"
        first_import = [partial_fill_batch[0], partial_fill_batch[2]]
        save_matching_result(directory, run_matching_engine(first_import))

        paths = save_matching_result(directory, run_matching_engine(partial_fill_batch))

        ids = [
            (rt.buy_execution_id, rt.sell_execution_id)
            for rt in load_round_trips(paths["round_trips"])
        ]
        assert ids == [("b1", "s1"), ("b2", "s1")]

    def test_failed_save_leaves_ledger_untouched(self, tmp_path, partial_fill_batch, make_execution):
        directory = tmp_path / "ledger"
        paths = save_matching_result(directory, run_matching_engine(partial_fill_batch))
        before = {role: path.read_text() for role, path in paths.items()}

        write_records = storage._write_records

        def fail_on_open_lots(file_path, records, kind):
            if kind == "open lots":
                raise StorageException("disk full")
            return write_records(file_path, records, kind)

        second = run_matching_engine(
            [make_execution("SELL", 30, 13, on=5, execution_id="s9")],
            prior_open_lots=load_open_lots(paths["open_lots"]),
        )
        with patch.object(storage, "_write_records", side_effect=fail_on_open_lots):
            with pytest.raises(StorageException):
                save_matching_result(directory, second)

        assert {role: path.read_text() for role, path in paths.items()} == before
        assert sorted(p.name for p in directory.iterdir()) == [
            "open_lots.jsonl",
            "round_trips.jsonl",
            "summary.json",
        ]


class TestMergeRoundTrips:
    """merge_round_trips()."""

    def test_later_record_wins(self, partial_fill_batch):
        old = run_matching_engine(partial_fill_batch).round_trips
        corrected = old[1].model_copy(update={"realized_profit": Decimal("59.00")})

        merged = merge_round_trips(old, [corrected])

        assert len(merged) == 2
        assert merged[1].realized_profit == Decimal("59.00")

    def test_round_trips_without_ids_are_all_kept(self, make_execution):
        result = run_matching_engine(
            [make_execution("BUY", 1, 10, on=1), make_execution("SELL", 1, 11, on=2)]
        )

        merged = merge_round_trips(result.round_trips, result.round_trips)

        assert len(merged) == 2
