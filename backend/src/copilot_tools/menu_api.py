"""Remote menu API used by the restaurant service agent."""

from __future__ import annotations

import json
import logging

import httpx

from src.copilot_orchestrator.errors import ToolExecutionError

logger = logging.getLogger(__name__)


class MenuApiClient:
    def __init__(
        self,
        base_url: str | None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def get_restaurant_menu(self) -> str:
        if not self.base_url:
            raise ToolExecutionError("Menu service is not configured (API_BASE_URL is unset)")
        try:
            response = await self._client.get(f"{self.base_url}/menu")
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("Menu API returned %s", e.response.status_code)
            raise ToolExecutionError(f"Menu service returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.warning("Menu API request failed: %s", e)
            raise ToolExecutionError("Menu service is unreachable") from e
        except ValueError as e:
            raise ToolExecutionError("Menu service returned invalid JSON") from e
        return json.dumps(data, ensure_ascii=False)

    async def aclose(self) -> None:
        await self._client.aclose()
