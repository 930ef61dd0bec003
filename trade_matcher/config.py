"""
Trade Matcher Configuration
===========================

MatchingConfig controls how the engine runs; DatabaseConfig tells the
persistence adapter where to write. Both can be built explicitly or read
from the environment (a .env file is loaded first when present).

Environment variables:
    TRADE_MATCHER_MAX_WORKERS           Threads for per-instrument matching (default: sequential)
    TRADE_MATCHER_DEDUPLICATE_IDS       "true" to drop repeated execution ids
    TRADE_MATCHER_REJECT_UNKNOWN_DATES  "true" to reject executions without a parsable date
    PGHOST / PGPORT / PGDATABASE / PGUSER / PGPASSWORD
    TRADE_MATCHER_SCHEMA                Schema holding the ledger tables
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

from trade_matcher.exceptions import ConfigurationError

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


class MatchingConfig(BaseModel):
    """Engine run options.

    Attributes:
        max_workers: Threads used to match instruments concurrently.
                     None or 1 runs sequentially. Output is identical either way.
        deduplicate_execution_ids: Drop an execution whose execution_id was already
                     seen earlier in the batch or among the carried-forward lots
        reject_unknown_dates: Fail the batch when an execution has no parsable date
                     instead of sorting it last
    """

    max_workers: Optional[int] = None
    deduplicate_execution_ids: bool = False
    reject_unknown_dates: bool = False

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}")
        return v

    model_config = {"frozen": True}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def load_matching_config(env_file: Optional[str] = None) -> MatchingConfig:
    """Build a MatchingConfig from the environment.

    Args:
        env_file: Optional .env path; defaults to python-dotenv's search

    Raises:
        ConfigurationError: If a variable is present but malformed
    """
    load_dotenv(env_file)

    max_workers = None
    raw_workers = os.getenv("TRADE_MATCHER_MAX_WORKERS")
    if raw_workers:
        try:
            max_workers = int(raw_workers)
        except ValueError as e:
            raise ConfigurationError(
                f"TRADE_MATCHER_MAX_WORKERS must be an integer, got {raw_workers!r}"
            ) from e
        if max_workers < 1:
            raise ConfigurationError(
                f"TRADE_MATCHER_MAX_WORKERS must be >= 1, got {max_workers}"
            )

    return MatchingConfig(
        max_workers=max_workers,
        deduplicate_execution_ids=_env_bool("TRADE_MATCHER_DEDUPLICATE_IDS", False),
        reject_unknown_dates=_env_bool("TRADE_MATCHER_REJECT_UNKNOWN_DATES", False),
    )


@dataclass
class DatabaseConfig:
    """Where MatchingStore keeps the trade ledger.

    The defaults target a local development Postgres; production sets the
    PG* variables. schema names the namespace holding matched_round_trips
    and open_lots, and must be a plain SQL identifier.
    """

    host: str = "127.0.0.1"
    port: int = 5432
    database: str = "trade_matcher"
    user: str = "trade_matcher"
    password: str = ""
    schema: str = "trade_ledger"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "DatabaseConfig":
        """Read PG* variables, falling back to the defaults above."""
        load_dotenv(env_file)
        try:
            port = int(os.getenv("PGPORT", cls.port))
        except ValueError as e:
            raise ConfigurationError(f"PGPORT must be an integer: {e}") from e
        return cls(
            host=os.getenv("PGHOST", cls.host),
            port=port,
            database=os.getenv("PGDATABASE", cls.database),
            user=os.getenv("PGUSER", cls.user),
            password=os.getenv("PGPASSWORD", cls.password),
            schema=os.getenv("TRADE_MATCHER_SCHEMA", cls.schema),
        )
