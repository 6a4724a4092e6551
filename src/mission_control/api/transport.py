# src/mission_control/api/transport.py

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from ..core.ports import CredentialProvider
from .outcome import ApplicationFailure, Outcome, Success, TransportFailure

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"


def _make_timeout(connect_s: float, read_s: float) -> httpx.Timeout:
    return httpx.Timeout(connect=connect_s, read=read_s, write=10.0, pool=connect_s)


class HttpTransport:
    """
    Stateless HTTP transport for the Mission Control backend.

    send() returns an Outcome value instead of raising:
    - Success             -> 2xx
    - ApplicationFailure  -> any other status (409 included)
    - TransportFailure    -> request never completed, or no backend configured

    There are no internal retries; replay policy belongs to the flush engine.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        *,
        connect_timeout: float = 5.0,
        read_timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._credentials = credentials
        self._client = client or httpx.AsyncClient(
            timeout=_make_timeout(connect_timeout, read_timeout),
            follow_redirects=False,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def is_remote(self) -> bool:
        return self._credentials.is_remote()

    def _build_headers(self, idempotency_key: str | None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self._credentials.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if idempotency_key:
            headers[IDEMPOTENCY_HEADER] = idempotency_key
        return headers

    def _build_url(self, path: str) -> httpx.URL:
        # Resolved like a browser URL: an absolute path replaces the base path.
        return httpx.URL(self._credentials.base_url).join(path)

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        content_type = response.headers.get("content-type", "")
        if "json" not in content_type or not response.content:
            return None
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.debug("Response claimed JSON but did not parse status=%s", response.status_code)
            return None

    async def send(
        self,
        method: str,
        path: str,
        body: Any = None,
        idempotency_key: str | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> Outcome:
        if not method or not method.strip():
            raise ValueError("method is required")
        if not path or not path.strip():
            raise ValueError("path is required")

        method = method.strip().upper()

        if not self.is_remote():
            return TransportFailure(reason="local-only mode", local_only=True)

        query = {k: v for k, v in (params or {}).items() if v is not None}
        content = None
        if body is not None and method != "GET":
            content = json.dumps(body, ensure_ascii=False).encode("utf-8")

        try:
            response = await self._client.request(
                method,
                self._build_url(path),
                params=query or None,
                content=content,
                headers=self._build_headers(idempotency_key),
            )
        except httpx.TransportError as e:
            logger.warning("Network error %s %s: %s", method, path, e)
            return TransportFailure(reason=f"{e.__class__.__name__}: {e}")

        data = self._parse_body(response)
        logger.debug(
            "%s %s -> %s key=%s", method, path, response.status_code, idempotency_key
        )

        if response.is_success:
            return Success(status=response.status_code, data=data)
        return ApplicationFailure(status=response.status_code, data=data)
