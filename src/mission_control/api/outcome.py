# src/mission_control/api/outcome.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from ..core.errors import FailureKind

CONFLICT_STATUS = 409


@dataclass(frozen=True, slots=True)
class Success:
    """Backend answered with a 2xx status."""

    status: int
    data: Any = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class ApplicationFailure:
    """
    Backend was reachable but answered non-2xx.

    Retry policy is not decided here; the caller routes on the status.
    """

    status: int
    data: Any = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def is_conflict(self) -> bool:
        return self.status == CONFLICT_STATUS


@dataclass(frozen=True, slots=True)
class TransportFailure:
    """
    The request never completed.

    local_only=True means no backend is configured (by design, not an error);
    otherwise the network was unreachable. queued is set by the API client when
    the failed write was moved into the ledger.
    """

    reason: str
    local_only: bool = False
    queued: bool = False

    @property
    def ok(self) -> bool:
        return False


Outcome = Union[Success, ApplicationFailure, TransportFailure]


def classify(outcome: Outcome) -> FailureKind | None:
    """Map an outcome to its failure kind (None for success)."""
    if isinstance(outcome, Success):
        return None
    if isinstance(outcome, TransportFailure):
        return FailureKind.LOCAL_ONLY if outcome.local_only else FailureKind.TRANSPORT_UNREACHABLE
    if outcome.is_conflict:
        return FailureKind.APPLICATION_CONFLICT
    return FailureKind.APPLICATION_REJECTED
