"""HTTP client for the remote preprocessing processor."""

import logging
from typing import Any, Optional

import httpx

from app.core.config import settings
from app.core.errors import SubmissionError

logger = logging.getLogger(__name__)


class RemoteProcessorClient:
    """Submits method invocations to the processor's /preprocess endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.PROCESSOR_API_URL).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.PROCESSOR_TIMEOUT_SECONDS,
        )

    async def submit(self, body: dict[str, Any]) -> dict:
        """POST a method invocation body. Any non-2xx response raises SubmissionError."""
        url = f"{self.base_url}/preprocess"
        try:
            response = await self._client.post(url, json=body)
        except httpx.HTTPError as exc:
            raise SubmissionError(f"Processor unreachable: {exc}") from exc

        if not response.is_success:
            message = _error_message(response)
            logger.warning("Processor rejected task method %s: HTTP %d %s", body.get("taskMethodId"), response.status_code, message)
            raise SubmissionError(message, extra={"upstream_status": response.status_code})

        try:
            return response.json()
        except ValueError:
            return {}

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return f"Failed to start preprocessing (HTTP {response.status_code})"
