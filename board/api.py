"""
api.py - Async HTTP client for the task board API.
Unwraps the {success, data, error} envelope and turns every kind of failure
(transport error, non-2xx status, success=false) into BoardRequestError.
"""

import logging

import httpx

from board.config import BOARD_API_URL, BOARD_REQUEST_TIMEOUT, BOARD_TRANSPORT_RETRIES

logger = logging.getLogger(__name__)


class BoardRequestError(Exception):
    """A request to the board API did not succeed. status_code is None when nothing came back."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def is_transport(self) -> bool:
        return self.status_code is None


class BoardApiClient:
    def __init__(
        self,
        base_url: str = BOARD_API_URL,
        timeout: float = BOARD_REQUEST_TIMEOUT,
        retries: int = BOARD_TRANSPORT_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        # requests carry no idempotency key; one retry is the most we allow
        self.retries = max(0, min(1, retries))

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    # ------------------------------------------------------------------
    async def _request(self, method: str, path: str, json: dict | None = None):
        attempt = 0
        while True:
            try:
                resp = await self._client.request(method, path, json=json)
                break
            except httpx.TransportError as e:
                if attempt < self.retries:
                    attempt += 1
                    logger.info(f"{method} {path} transport error ({e!r}), retrying")
                    continue
                raise BoardRequestError(f"{method} {path} failed: {e!r}") from e

        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.status_code >= 400 or not isinstance(body, dict) or not body.get("success"):
            error = body.get("error") if isinstance(body, dict) else None
            raise BoardRequestError(
                error or f"{method} {path} returned {resp.status_code}",
                status_code=resp.status_code,
            )
        return body.get("data")

    async def list_tasks(self) -> list[dict]:
        return await self._request("GET", "/tasks") or []

    async def get_task(self, task_id: int) -> dict:
        return await self._request("GET", f"/tasks/{task_id}")

    async def update_task(self, task_id: int, fields: dict) -> dict:
        """PUT only the given fields; everything else stays as stored."""
        return await self._request("PUT", f"/tasks/{task_id}", json=fields)
