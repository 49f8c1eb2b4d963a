"""HTTP client for the raffle drawing backend."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import requests

from drawing.models import Snapshot
from utils.config import get_float
from utils.logger import get_logger

logger = get_logger(__name__)


class BackendError(RuntimeError):
    """Raised when the drawing backend rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class DrawingBackendClient:
    """Async-friendly wrapper around requests for the drawing endpoints.

    Every endpoint answers with the same ``{success, message, data}`` envelope
    whose ``data`` is the full drawing snapshot.
    """

    def __init__(self, config: Dict[str, Any], session: Optional[requests.Session] = None):
        self._config = config

        backend_cfg = config.get("backend", {})
        self.base_url: str = str(backend_cfg.get("base_url", "http://localhost:5000/api")).rstrip("/")
        self.timeout: float = get_float(config, "backend.timeout", 10.0)
        self._auth_token: Optional[str] = backend_cfg.get("auth_token") or None
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        if self._auth_token:
            self._session.headers["Authorization"] = f"Bearer {self._auth_token}"

    async def close(self) -> None:
        await asyncio.to_thread(self._session.close)

    def _url(self, raffle_id: int, action: str) -> str:
        return f"{self.base_url}/raffles/{raffle_id}/{action}"

    async def _request(self, method: str, url: str, json_body: Optional[Dict[str, Any]] = None) -> Snapshot:
        def _send() -> requests.Response:
            return self._session.request(method, url, json=json_body, timeout=self.timeout)

        try:
            response = await asyncio.to_thread(_send)
        except requests.exceptions.RequestException as exc:
            raise BackendError(f"{method} {url} failed: {exc}") from exc

        try:
            envelope = response.json()
        except ValueError:
            envelope = None

        if not isinstance(envelope, dict):
            raise BackendError(
                f"{method} {url} returned HTTP {response.status_code} without a JSON envelope",
                status_code=response.status_code,
            )

        if not response.ok or not envelope.get("success"):
            message = envelope.get("message") or f"HTTP {response.status_code}"
            raise BackendError(message, status_code=response.status_code)

        try:
            return Snapshot.from_payload(envelope.get("data"))
        except (ValueError, TypeError, AttributeError) as exc:
            raise BackendError(f"Malformed drawing payload from {url}: {exc}", status_code=response.status_code) from exc

    async def get_drawing(self, raffle_id: int) -> Snapshot:
        return await self._request("GET", self._url(raffle_id, "drawing"))

    async def start_drawing(self, raffle_id: int) -> Snapshot:
        logger.info("Starting drawing for raffle %s", raffle_id)
        return await self._request("POST", self._url(raffle_id, "start-drawing"))

    async def reveal_next(self, raffle_id: int) -> Snapshot:
        logger.info("Revealing next digit for raffle %s", raffle_id)
        return await self._request("POST", self._url(raffle_id, "reveal-next"))

    async def reveal_digit(self, raffle_id: int, digit: int) -> Snapshot:
        logger.info("Revealing digit %s for raffle %s", digit, raffle_id)
        return await self._request("POST", self._url(raffle_id, "reveal-digit"), {"digit": digit})

    async def reset_drawing(self, raffle_id: int) -> Snapshot:
        logger.info("Resetting drawing for raffle %s", raffle_id)
        return await self._request("POST", self._url(raffle_id, "reset-drawing"))

    async def health_check(self, raffle_id: int) -> Dict[str, Any]:
        try:
            snapshot = await self.get_drawing(raffle_id)
            return {"status": "ok", "drawing_status": snapshot.session.status.value}
        except BackendError as exc:
            return {"status": "error", "detail": exc.message, "status_code": exc.status_code}
