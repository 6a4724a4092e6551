# src/mission_control/api/auth.py

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class StaticCredentials:
    """
    Credential provider backed by settings.

    The token is opaque: it is forwarded as a bearer header and never inspected.
    An empty base_url puts the client in local-only mode.
    """

    base_url: str = ""
    token: str | None = None

    def get_token(self) -> str | None:
        return self.token or None

    def is_remote(self) -> bool:
        return bool((self.base_url or "").strip())
