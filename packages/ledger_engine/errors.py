"""Error taxonomy raised by the ledger repositories and scheduler.

Storage exceptions (``sqlalchemy.exc.SQLAlchemyError``) are caught only at the
repository boundary and re-raised as one of the ``LedgerError`` subclasses
below with ``raise ... from exc``; the original exception stays reachable as
``__cause__`` and ``.underlying``.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for every failure surfaced by ``ledger_engine``."""


class _StorageFailure(LedgerError):
    operation = "storage operation"

    def __init__(self, underlying: BaseException, detail: str | None = None) -> None:
        self.underlying = underlying
        msg = f"{self.operation} failed"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(f"{msg} ({underlying})")


class SaveFailed(_StorageFailure):
    operation = "save"


class FetchFailed(_StorageFailure):
    operation = "fetch"


class DeleteFailed(_StorageFailure):
    operation = "delete"


class NotFound(LedgerError):
    def __init__(self, kind: str, ident: object) -> None:
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind} not found: {ident}")


class InvalidData(LedgerError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


__all__ = [
    "DeleteFailed",
    "FetchFailed",
    "InvalidData",
    "LedgerError",
    "NotFound",
    "SaveFailed",
]
