"""
AIVox Dashboard - Retell API Client
Pulls call and agent records from the Retell telephony API
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx
from fastapi import Request

from app import config
from app.exceptions import UnexpectedError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


class RetellAPIError(Exception):
    """A Retell request failed; `context` says which request"""

    def __init__(self, message: str, status_code: Optional[int] = None, **context):
        self.status_code = status_code
        self.context = context
        super().__init__(message)


class RetellClient:
    """Client for the Retell REST API.

    One instance is shared by the whole process; it owns a pooled
    `httpx.AsyncClient` that must be released with `aclose()`.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = None,
        page_delay: float = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport = None,
    ):
        if not api_key:
            raise ValueError("RETELL_API_KEY environment variable is required")

        self.base_url = (base_url or config.RETELL_BASE_URL).rstrip("/")
        self.page_delay = config.RETELL_PAGE_DELAY if page_delay is None else page_delay
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
            event_hooks={"request": [self._log_request], "response": [self._log_response]},
        )

    async def _log_request(self, request: httpx.Request):
        logger.debug(f"Retell API request: {request.method} {request.url}")

    async def _log_response(self, response: httpx.Response):
        logger.debug(f"Retell API response: {response.status_code} {response.request.url}")

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise RetellAPIError(
                f"HTTP {e.response.status_code}: {e.response.text[:200]}",
                status_code=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            raise RetellAPIError("Request timeout") from e
        except httpx.RequestError as e:
            raise RetellAPIError(f"Network error: {e}") from e
        except ValueError as e:
            raise RetellAPIError(f"Invalid JSON response: {e}") from e

    async def test_connection(self) -> Dict:
        """Cheap request used by the health check"""
        try:
            await self.fetch_page(limit=1)
            return {"success": True}
        except RetellAPIError as e:
            logger.error(f"Retell connection test failed: {e}")
            return {"success": False, "error": str(e)}

    async def fetch_page(
        self,
        cursor: Optional[str] = None,
        start_ms: Optional[int] = None,
        end_ms: Optional[int] = None,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Tuple[List[Dict], Optional[str]]:
        """Fetch one page of calls.

        Returns the records and the cursor for the next page, or None when
        this page is the last one (it came back shorter than `limit`).
        """
        body: Dict[str, Any] = {"limit": limit}
        if cursor:
            body["pagination_key"] = cursor

        threshold = {}
        if start_ms is not None:
            threshold["lower_threshold"] = start_ms
        if end_ms is not None:
            threshold["upper_threshold"] = end_ms
        if threshold:
            body["filter_criteria"] = {"start_timestamp": threshold}

        try:
            data = await self._request("POST", "/v2/list-calls", json=body)
        except RetellAPIError as e:
            logger.error(f"Failed to fetch calls page (cursor={cursor}): {e}")
            raise RetellAPIError(
                f"Failed to fetch calls page after cursor {cursor!r}: {e}",
                status_code=e.status_code,
                cursor=cursor,
            ) from e

        if isinstance(data, dict):
            data = data.get("calls")
        calls = data or []
        if not isinstance(calls, list):
            raise RetellAPIError(
                f"Unexpected calls payload after cursor {cursor!r}: {type(calls).__name__}",
                cursor=cursor,
            )

        next_cursor = None
        if len(calls) >= limit:
            last = calls[-1]
            next_cursor = last.get("call_id") if isinstance(last, dict) else None
            if not next_cursor:
                raise RetellAPIError(
                    f"Calls page after cursor {cursor!r} is full but its last record has no call_id",
                    cursor=cursor,
                )
        return calls, next_cursor

    async def fetch_all(
        self,
        start_ms: Optional[int] = None,
        end_ms: Optional[int] = None,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> List[Dict]:
        """Drain every page in the window; any page failure aborts the drain"""
        all_calls: List[Dict] = []
        cursor = None
        page = 0

        logger.info(f"Fetching calls from Retell API (start={start_ms}, end={end_ms}, limit={limit})")

        while True:
            page += 1
            calls, cursor = await self.fetch_page(
                cursor=cursor, start_ms=start_ms, end_ms=end_ms, limit=limit
            )
            all_calls.extend(calls)
            logger.debug(f"Fetched page {page}: {len(calls)} calls, {len(all_calls)} total")

            if cursor is None:
                break

            # Be gentle with the remote API between pages
            await asyncio.sleep(self.page_delay)

        logger.info(f"Completed fetching calls: {len(all_calls)} total in {page} page(s)")
        return all_calls

    async def list_agents(self) -> List[Dict]:
        """Fetch the full agent roster"""
        try:
            data = await self._request("GET", "/list-agents")
        except RetellAPIError as e:
            logger.error(f"Failed to fetch agents from Retell API: {e}")
            raise RetellAPIError(f"Failed to fetch agents: {e}", status_code=e.status_code) from e
        if isinstance(data, dict):
            data = data.get("agents")
        agents = data or []
        if not isinstance(agents, list):
            raise RetellAPIError(f"Unexpected agents payload: {type(agents).__name__}")
        return agents

    async def get_call(self, call_id: str) -> Dict:
        try:
            return await self._request("GET", f"/v2/get-call/{call_id}")
        except RetellAPIError as e:
            logger.error(f"Failed to fetch call {call_id}: {e}")
            raise RetellAPIError(
                f"Failed to fetch call {call_id}: {e}", status_code=e.status_code, call_id=call_id
            ) from e

    async def get_agent(self, agent_id: str) -> Dict:
        try:
            return await self._request("GET", f"/get-agent/{agent_id}")
        except RetellAPIError as e:
            logger.error(f"Failed to fetch agent {agent_id}: {e}")
            raise RetellAPIError(
                f"Failed to fetch agent {agent_id}: {e}", status_code=e.status_code, agent_id=agent_id
            ) from e

    async def aclose(self):
        await self.client.aclose()


def get_retell_client(request: Request) -> RetellClient:
    """FastAPI dependency returning the process-wide client built at startup"""
    client = getattr(request.app.state, "retell_client", None)
    if client is None:
        raise UnexpectedError("RETELL_API_KEY is not configured")
    return client
