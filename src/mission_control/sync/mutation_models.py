# src/mission_control/sync/mutation_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class MutationMethod(StrEnum):
    """Write verbs that may be queued. Reads are never queued."""

    POST = "POST"
    PATCH = "PATCH"

    @classmethod
    def parse(cls, raw: str) -> MutationMethod:
        try:
            return cls((raw or "").strip().upper())
        except ValueError:
            raise ValueError(f"not a queueable write method: {raw!r}") from None


def new_idempotency_key() -> str:
    return str(uuid.uuid4())


@dataclass(slots=True)
class Mutation:
    """
    A pending write operation.

    idempotency_key and enqueued_at are fixed for the life of the mutation;
    only retries moves, once per failed replay attempt.
    """

    idempotency_key: str
    method: MutationMethod
    path: str
    body: Any = None
    enqueued_at: float | None = None
    retries: int = 0

    def __post_init__(self) -> None:
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if not self.path:
            raise ValueError("path is required")
        self.method = MutationMethod.parse(str(self.method))
        if self.retries < 0:
            raise ValueError("retries must be >= 0")

    @classmethod
    def create(cls, method: str, path: str, body: Any = None) -> Mutation:
        """New mutation with a fresh idempotency key; enqueued_at is set by the ledger."""
        return cls(
            idempotency_key=new_idempotency_key(),
            method=MutationMethod.parse(method),
            path=path,
            body=body,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "idempotencyKey": self.idempotency_key,
            "method": self.method.value,
            "path": self.path,
            "body": self.body,
            "enqueuedAt": self.enqueued_at,
            "retries": int(self.retries),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Mutation:
        enqueued_at = record.get("enqueuedAt")
        return cls(
            idempotency_key=str(record["idempotencyKey"]),
            method=MutationMethod.parse(str(record["method"])),
            path=str(record["path"]),
            body=record.get("body"),
            enqueued_at=float(enqueued_at) if enqueued_at is not None else None,
            retries=int(record.get("retries") or 0),
        )
