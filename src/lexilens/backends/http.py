"""Dictionary backend reached over HTTP.

Each registered operation is posted as JSON to ``{base_url}/{operation}``
and the JSON reply is validated against the operation registry.
"""

from __future__ import annotations

import logging
import random
import time
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

import httpx

from ..errors import BackendError
from ..operations import build_request, parse_response
from .base import BaseDictionaryBackend

if TYPE_CHECKING:
    from ..config.models import Settings

logger = logging.getLogger(__name__)


def _is_transient(status: int) -> bool:
    """Throttling and server-side failures are worth another attempt."""
    return status == 429 or status >= 500


def _retry_after(response: httpx.Response) -> Optional[float]:
    """Seconds requested by a numeric Retry-After header, if any."""
    raw = response.headers.get("Retry-After", "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


class HTTPDictionaryBackend(BaseDictionaryBackend):
    """Backend backed by a dictionary server's HTTP API."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        max_retries: int = 2,
        backoff_base_s: float = 0.2,
        backoff_max_s: float = 4.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = (base_url or "").strip().rstrip("/")
        if not self.base_url:
            raise ValueError("base_url cannot be blank")

        self.timeout_s = float(timeout) if timeout and float(timeout) > 0 else 10.0
        self.max_retries = int(max_retries) if max_retries and int(max_retries) >= 0 else 0
        self.backoff_base_s = float(backoff_base_s) if backoff_base_s and float(backoff_base_s) > 0 else 0.2
        self.backoff_max_s = float(backoff_max_s) if backoff_max_s and float(backoff_max_s) > 0 else 4.0

        self._client = client or httpx.Client(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout_s,
        )

    @classmethod
    def from_settings(
        cls, settings: "Settings", client: httpx.Client | None = None
    ) -> "HTTPDictionaryBackend":
        """Build a backend from server_url, timeout and max_retries."""
        return cls(
            settings.server_url,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
            client=client,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HTTPDictionaryBackend":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def _backoff_delay(self, attempt: int, hint: Optional[float] = None) -> float:
        """Seconds to wait before retry number attempt + 1, capped at backoff_max_s."""
        if hint is not None and hint > 0:
            return min(hint, self.backoff_max_s)
        jitter = random.uniform(0, min(0.5, self.backoff_base_s))
        return min(self.backoff_max_s, self.backoff_base_s * 2**attempt + jitter)

    def call(self, operation: str, **params: Any) -> Any:
        """Invoke a registered operation and return its validated response.

        Raises:
            UnknownOperationError: If the operation is not registered
            BackendError: On transport failure, HTTP error or invalid reply
        """
        payload = build_request(operation, **params)
        endpoint = f"/{operation}"
        last_exc: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                response = self._client.post(endpoint, json=payload)
            except httpx.HTTPError as exc:
                last_exc = exc
                if attempt < self.max_retries:
                    time.sleep(self._backoff_delay(attempt))
                    continue
                raise BackendError(
                    f"Request '{operation}' to {self.base_url} failed after "
                    f"{self.max_retries + 1} attempts: {type(exc).__name__}: {exc}"
                ) from exc

            status = response.status_code
            if status >= 400:
                if _is_transient(status) and attempt < self.max_retries:
                    logger.warning(
                        "Request %s%s failed with HTTP %s (attempt %s/%s). Retrying…",
                        self.base_url,
                        endpoint,
                        status,
                        attempt + 1,
                        self.max_retries + 1,
                    )
                    time.sleep(self._backoff_delay(attempt, _retry_after(response)))
                    continue

                body_preview = (response.text or "").strip()
                if len(body_preview) > 300:
                    body_preview = body_preview[:300] + "…"
                raise BackendError(
                    f"Request '{operation}' failed (HTTP {status}). "
                    f"Response: {body_preview or '<empty>'}"
                )

            try:
                data = response.json()
            except ValueError as exc:
                raise BackendError(
                    f"Response to '{operation}' is not valid JSON: {exc}"
                ) from exc

            return parse_response(operation, data)

        raise BackendError(f"Request '{operation}' failed. Last error: {last_exc}")

    def search(
        self,
        source_id: int,
        keyword: str,
        *,
        strict: bool = False,
        prefix_limit: int = 5,
        phrase_limit: int = 10,
    ) -> List[str]:
        return self.call(
            "search",
            id=source_id,
            kw=keyword,
            strict=strict,
            prefix_limit=prefix_limit,
            phrase_limit=phrase_limit,
        )

    def search_word(self, source_id: int, term: str) -> Optional[str]:
        return self.call("search_word", id=source_id, name=term)

    def get_static_files(self, source_id: int) -> Optional[Tuple[str, str]]:
        return self.call("get_static_files", id=source_id)

    def search_resource(self, source_id: int, name: str) -> Optional[bytes]:
        data = self.call("search_resource", id=source_id, name=name)
        return bytes(data) if data is not None else None
