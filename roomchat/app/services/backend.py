from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple

import httpx

from ..core.config import Settings
from ..core.logger import get_logger

log = get_logger("services.backend")

Row = Dict[str, Any]
Filters = Dict[str, Any]
# (column, ascending)
Order = Tuple[str, bool]


@dataclass
class BackendResult:
    data: Optional[List[Row]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ChatBackend(Protocol):
    async def select(self, table: str, filters: Optional[Filters] = None, order: Optional[Order] = None) -> BackendResult:
        ...

    async def insert(self, table: str, row: Row) -> BackendResult:
        ...

    async def update(self, table: str, values: Row, filters: Filters) -> BackendResult:
        ...

    async def delete(self, table: str, filters: Filters) -> BackendResult:
        ...

    async def aclose(self) -> None:
        ...


def build_headers(api_key: str) -> Dict[str, str]:
    headers: Dict[str, str] = {
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    if api_key:
        headers["apikey"] = api_key
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def build_query_params(filters: Optional[Filters] = None, order: Optional[Order] = None) -> Dict[str, str]:
    params: Dict[str, str] = {}
    for column, value in (filters or {}).items():
        if isinstance(value, bool):
            value = "true" if value else "false"
        params[column] = f"eq.{value}"
    if order is not None:
        column, ascending = order
        params["order"] = f"{column}.{'asc' if ascending else 'desc'}"
    return params


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error_description", "error", "hint"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    text = resp.text.strip()
    return text or f"HTTP {resp.status_code}"


class RestChatBackend:
    """
    PostgREST client for a hosted (Supabase style) database.

    Every call resolves to a BackendResult; HTTP failures and transport
    errors are reported through ``error`` instead of raising.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = f"{base_url.rstrip('/')}/rest/v1"
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=build_headers(api_key),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        returning: bool = False,
    ) -> BackendResult:
        headers = {"Prefer": "return=representation"} if returning else None
        try:
            resp = await self._client.request(method, f"/{table}", params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            log.warning(f"{method} /{table} failed: {e}")
            return BackendResult(error=str(e) or e.__class__.__name__)

        if resp.status_code >= 400:
            return BackendResult(error=_error_message(resp))
        if resp.status_code == 204 or not resp.content:
            return BackendResult(data=None)
        try:
            data = resp.json()
        except ValueError:
            return BackendResult(error=f"invalid JSON from {method} /{table}")
        if isinstance(data, dict):
            data = [data]
        return BackendResult(data=data)

    async def select(self, table: str, filters: Optional[Filters] = None, order: Optional[Order] = None) -> BackendResult:
        params = {"select": "*"}
        params.update(build_query_params(filters, order))
        return await self._request("GET", table, params=params)

    async def insert(self, table: str, row: Row) -> BackendResult:
        return await self._request("POST", table, params={"select": "*"}, json=row, returning=True)

    async def update(self, table: str, values: Row, filters: Filters) -> BackendResult:
        params = {"select": "*"}
        params.update(build_query_params(filters))
        return await self._request("PATCH", table, params=params, json=values, returning=True)

    async def delete(self, table: str, filters: Filters) -> BackendResult:
        return await self._request("DELETE", table, params=build_query_params(filters))

    async def aclose(self) -> None:
        await self._client.aclose()


def build_backend(settings: Settings) -> ChatBackend:
    if settings.backend == "rest":
        log.info(f"Using REST backend at {settings.supabase_url}")
        return RestChatBackend(settings.supabase_url, settings.supabase_key, timeout=settings.http_timeout)

    from .sql_backend import SqlChatBackend
    from ..core.paths import default_database_url

    database_url = settings.database_url or default_database_url()
    log.info(f"Using SQL backend at {database_url}")
    return SqlChatBackend(database_url)
