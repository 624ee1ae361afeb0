"""Runtime configuration and the shared context handed to repositories.

``LedgerConfig`` replaces process-wide settings objects: it is built once by
the host (explicitly or through ``LedgerConfig.from_env()``) and passed down.
``LedgerContext`` bundles the config with the storage port and the access
gate so every repository sees the same three collaborators.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from db.client import Database

from .gate import AccessGate
from .models import Currency

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///ledger.db"


def _local_now() -> datetime:
    return datetime.now()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True, slots=True)
class LedgerConfig:
    database_url: str = DEFAULT_DATABASE_URL
    default_currency: Currency = Currency.KRW
    # Appended to the note of every transaction the scheduler materializes.
    auto_generated_label: str = "Auto-generated"
    # Percentage of a budget at which its status turns to Warning.
    warning_threshold: Decimal = Decimal(80)
    insights_workers: int = 1
    log_level: str = "INFO"
    clock: Callable[[], datetime] = field(default=_local_now, compare=False)

    @classmethod
    def from_env(cls, **overrides) -> LedgerConfig:
        """Build a config from ``LEDGER_*`` environment variables.

        Keyword ``overrides`` win over the environment (used by the CLI for
        ``--database-url`` and by tests for ``clock``).
        """

        values = {
            "database_url": os.getenv("LEDGER_DATABASE_URL")
            or os.getenv("DATABASE_URL")
            or DEFAULT_DATABASE_URL,
            "default_currency": Currency.parse(os.getenv("LEDGER_DEFAULT_CURRENCY") or "KRW"),
            "auto_generated_label": os.getenv("LEDGER_AUTO_GENERATED_LABEL") or "Auto-generated",
            "warning_threshold": Decimal(_env_int("LEDGER_WARNING_THRESHOLD", 80)),
            "insights_workers": max(1, _env_int("LEDGER_INSIGHTS_WORKERS", 1)),
            "log_level": os.getenv("LEDGER_LOG_LEVEL") or "INFO",
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def now(self) -> datetime:
        return self.clock()


@dataclass(frozen=True, slots=True)
class LedgerContext:
    config: LedgerConfig
    database: Database
    gate: AccessGate = field(default_factory=AccessGate)

    @classmethod
    def open(cls, config: LedgerConfig, *, create_schema: bool = True) -> LedgerContext:
        database = Database(config.database_url)
        if create_schema:
            database.create_all()
        return cls(config=config, database=database)

    def now(self) -> datetime:
        return self.config.clock()


__all__ = ["DEFAULT_DATABASE_URL", "LedgerConfig", "LedgerContext"]
