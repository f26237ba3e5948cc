from typing import Any, Dict, List, Optional

import httpx

from teamboard.client.board_state import ClientColumn, ClientTask
from teamboard.core.ordering import MovePlan
from teamboard.logs import debug_logger


class ApiError(Exception):
    """Raised for any non-2xx response from the board API."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")


class KanbanApiClient:
    """Async client for the board endpoints, using httpx."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0
    ):
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._transport = transport
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            client_kwargs = {
                "base_url": self.base_url,
                "headers": self._headers,
                "timeout": httpx.Timeout(self._timeout),
            }
            if self._transport is not None:
                client_kwargs["transport"] = self._transport
            self._client = httpx.AsyncClient(**client_kwargs)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json_data: Optional[dict] = None
    ) -> Any:
        client = self._get_client()
        try:
            response = await client.request(method, path, params=params, json=json_data)
        except httpx.HTTPError as exc:
            debug_logger.warning(f"{method} {path} failed: {exc}")
            raise ApiError(0, str(exc)) from exc

        if response.is_success:
            return response.json() if response.content else None

        try:
            detail = response.json().get("detail", response.text)
        except ValueError:
            detail = response.text
        debug_logger.warning(f"{method} {path} returned {response.status_code}: {detail}")
        raise ApiError(response.status_code, str(detail))

    async def get_board(self, team_id: Optional[int] = None) -> List[ClientColumn]:
        params = {"teamId": team_id} if team_id is not None else None
        payload = await self._request("GET", "/kanban", params=params)
        return [ClientColumn.from_payload(column) for column in payload]

    async def move_task(self, plan: MovePlan, team_id: int) -> ClientTask:
        """Persist a planned move through ``PATCH /task``"""
        payload = await self._request("PATCH", "/task", json_data=plan.to_payload(team_id))
        return ClientTask.from_payload(payload)
