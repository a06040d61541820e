from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)


class KeepAlivePinger:
    """Periodically requests the public URL so a free-tier host stays awake."""

    def __init__(
        self, *, url: str, timeout_seconds: float = 10.0, client: httpx.Client | None = None
    ) -> None:
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout_seconds)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def ping(self) -> bool:
        try:
            resp = self._client.get(self._url)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Self-ping failed: %s", e)
            return False
        logger.info("Self-ping OK")
        return True
