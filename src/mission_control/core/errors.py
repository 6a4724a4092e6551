# src/mission_control/core/errors.py

from __future__ import annotations

"""
Error taxonomy for the mutation pipeline.

Only storage problems are raised as exceptions. Network and backend outcomes
are values (see api/outcome.py) that the flush engine routes locally;
FailureKind names them so logs and events speak one vocabulary.
"""

from enum import StrEnum


class MissionControlError(Exception):
    """Base class for errors raised by mission_control."""


class StorageFailure(MissionControlError):
    """
    The durable ledger is unreachable or corrupt.

    Never swallowed: a lost mutation breaks at-least-once delivery.
    """

    def __init__(self, message: str, *, op: str | None = None) -> None:
        super().__init__(message)
        self.op = op


class FailureKind(StrEnum):
    TRANSPORT_UNREACHABLE = "transport_unreachable"
    LOCAL_ONLY = "local_only"
    APPLICATION_REJECTED = "application_rejected"
    APPLICATION_CONFLICT = "application_conflict"
    RETRY_BUDGET_EXHAUSTED = "retry_budget_exhausted"
