"""HTTP client for the hosted database's REST and RPC endpoints."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from itmanager.exceptions import RemoteCallError
from itmanager.remote.query import QueryBuilder

logger = structlog.get_logger(__name__)


class TableQuery:
    """Entry point for building a query against one table."""

    def __init__(self, database: RemoteDatabase, table: str) -> None:
        self._database = database
        self._table = table

    def select(self, columns: str = "*") -> QueryBuilder:
        return QueryBuilder(self._database, self._table, "select", columns=columns)

    def insert(self, rows: dict[str, Any] | list[dict[str, Any]]) -> QueryBuilder:
        return QueryBuilder(self._database, self._table, "insert", payload=rows)

    def update(self, data: dict[str, Any]) -> QueryBuilder:
        return QueryBuilder(self._database, self._table, "update", payload=data)

    def delete(self) -> QueryBuilder:
        return QueryBuilder(self._database, self._table, "delete")


class RemoteDatabase:
    """Thin async wrapper over the platform's REST surface.

    All persistence, row-level security and procedure logic live on the
    remote side; this class only speaks the wire dialect and turns failures
    into RemoteCallError without reinterpreting them.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        headers = {
            "apikey": api_key,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=f"{self._base_url}/rest/v1",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> RemoteDatabase:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    def table(self, name: str) -> TableQuery:
        return TableQuery(self, name)

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        """Call a remote procedure and return its decoded result."""
        try:
            response = await self._client.post(f"/rpc/{function}", json=params or {})
        except httpx.HTTPError as exc:
            logger.warning("remote_rpc_unreachable", function=function, error=str(exc))
            raise RemoteCallError(str(exc) or exc.__class__.__name__) from exc
        logger.debug("remote_rpc", function=function, status=response.status_code)
        return self._decode(response)

    async def send(self, query: QueryBuilder) -> Any:
        """Execute a built query. Called by QueryBuilder.execute()."""
        try:
            response = await self._client.request(
                query.http_method,
                f"/{query.table}",
                params=query.params(),
                json=query.payload if query.method in ("insert", "update") else None,
                headers=query.headers(),
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "remote_request_unreachable",
                table=query.table,
                method=query.method,
                error=str(exc),
            )
            raise RemoteCallError(str(exc) or exc.__class__.__name__) from exc
        logger.debug(
            "remote_request",
            table=query.table,
            method=query.method,
            status=response.status_code,
        )
        return self._decode(response)

    async def ping(self) -> None:
        """Probe the REST root; raises RemoteCallError when unavailable."""
        try:
            response = await self._client.get("/")
        except httpx.HTTPError as exc:
            raise RemoteCallError(str(exc) or exc.__class__.__name__) from exc
        self._decode(response)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if response.status_code >= 400:
            body: Any
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                raise RemoteCallError(
                    str(body.get("message") or response.reason_phrase),
                    code=body.get("code"),
                    details=body.get("details"),
                    hint=body.get("hint"),
                    status_code=response.status_code,
                )
            raise RemoteCallError(
                response.text or response.reason_phrase,
                status_code=response.status_code,
            )
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            msg = "Remote returned a non-JSON body"
            raise RemoteCallError(msg, status_code=response.status_code) from exc
