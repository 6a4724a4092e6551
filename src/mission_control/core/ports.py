# src/mission_control/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps transport/storage/credentials swappable and makes testing easier.
"""

from typing import Any, Awaitable, Mapping, Protocol

JsonRecord = dict[str, Any]
# Persisted ledger row: {"idempotencyKey", "method", "path", "body", "enqueuedAt", "retries"}.


class CredentialProvider(Protocol):
    """External provider of the opaque bearer token and the connectivity mode."""

    def get_token(self) -> str | None: ...
    def is_remote(self) -> bool: ...

    @property
    def base_url(self) -> str: ...


class Transport(Protocol):
    """A single idempotent HTTP call. Never retries, never persists."""

    def send(
            self,
            method: str,
            path: str,
            body: Any = None,
            idempotency_key: str | None = None,
            params: Mapping[str, Any] | None = None,
    ) -> Awaitable[Any]: ...  # Outcome (kept as Any to avoid import coupling)


class KeyValueStore(Protocol):
    """
    Minimal durable key-value interface behind the mutation ledger.

    Implementations must be atomic per call; the ledger serializes calls.
    """

    def get(self, key: str) -> JsonRecord | None: ...
    def put(self, key: str, record: JsonRecord) -> None: ...
    def delete(self, key: str) -> None: ...
    def list_ordered_by(self, field: str) -> list[JsonRecord]: ...
    def count(self) -> int: ...
