# Backend Client Service
"""HTTP client for the portal's hosted REST backend."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from portal_sync.config import settings
from portal_sync.errors import BackendError, NotFoundError
from portal_sync.models.content import SORT_KEYS, ContentKind, SubunitScope

from .backend import PortalBackend

logger = logging.getLogger("portal_sync.services.backend_client")

REST_PREFIX = "/rest/v1"
GROUPS_TABLE = "message_groups"
USERS_TABLE = "profiles"
USER_COLUMNS = "id,full_name,email,role,work_location_id"
TEAM_COLUMNS = "*,profiles(full_name,email)"
SEND_MESSAGE_FUNCTION = "send_group_message"


def content_order(kind: ContentKind) -> str:
    """Server-side ordering clause matching the kind's local sort keys."""
    return ",".join(
        f"{key.field}.{'desc' if key.descending else 'asc'}.nullslast"
        for key in SORT_KEYS[kind]
    )


class BackendClient(PortalBackend):
    """HTTP client for the portal backend's PostgREST-style API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        access_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or settings.backend_url
        self.api_key = api_key or settings.backend_api_key
        self.timeout = timeout or settings.backend_timeout
        self.access_token = access_token
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def set_access_token(self, access_token: Optional[str]):
        """Use a signed-in user's token instead of the bare API key."""
        self.access_token = access_token

    def _build_headers(self, returning: bool = False) -> Dict[str, str]:
        """Build request headers."""
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
        bearer = self.access_token or self.api_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        if returning:
            headers["Prefer"] = "return=representation"
        return headers

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str):
        if response.is_success:
            return
        details: Dict[str, Any] = {}
        try:
            body = response.json()
            if isinstance(body, dict):
                details = body
        except ValueError:
            pass
        message = (
            details.get("message")
            or details.get("error")
            or details.get("hint")
            or response.text[:200]
            or f"Failed to {action}"
        )
        logger.error(f"Failed to {action}: {response.status_code} {message}")
        if response.status_code == 404:
            raise NotFoundError(str(message), details=details)
        raise BackendError(str(message), status_code=response.status_code, details=details)

    async def _select(
        self,
        table: str,
        filters: Optional[Dict[str, str]] = None,
        order: Optional[str] = None,
        columns: str = "*",
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        client = await self._get_client()
        params: Dict[str, str] = {"select": columns}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)

        response = await client.get(
            f"{REST_PREFIX}/{table}",
            headers=self._build_headers(),
            params=params,
        )
        self._raise_for_status(response, f"list {table}")
        data = response.json()
        return data if isinstance(data, list) else [data]

    async def _insert(self, table: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        client = await self._get_client()
        response = await client.post(
            f"{REST_PREFIX}/{table}",
            headers=self._build_headers(returning=True),
            json=payload,
        )
        self._raise_for_status(response, f"create {table} row")
        return self._single_row(response, table)

    async def _patch(self, table: str, row_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        client = await self._get_client()
        body = dict(patch)
        body["updated_at"] = datetime.now(timezone.utc).isoformat()
        response = await client.patch(
            f"{REST_PREFIX}/{table}",
            headers=self._build_headers(returning=True),
            params={"id": f"eq.{row_id}"},
            json=body,
        )
        self._raise_for_status(response, f"update {table} row {row_id}")
        return self._single_row(response, table, row_id)

    async def _remove(self, table: str, row_id: str):
        client = await self._get_client()
        response = await client.delete(
            f"{REST_PREFIX}/{table}",
            headers=self._build_headers(),
            params={"id": f"eq.{row_id}"},
        )
        self._raise_for_status(response, f"delete {table} row {row_id}")

    @staticmethod
    def _single_row(response: httpx.Response, table: str, row_id: Optional[str] = None) -> Dict[str, Any]:
        data = response.json()
        if isinstance(data, list):
            if not data:
                target = f"{table} row {row_id}" if row_id else f"{table} row"
                raise NotFoundError(f"No {target} returned")
            return data[0]
        return data

    # Subunits

    async def get_subunit(self, scope: SubunitScope, subunit_id: str) -> Dict[str, Any]:
        columns = "*,sectors(name)" if scope == SubunitScope.SUBSECTOR else "*"
        rows = await self._select(scope.table, {"id": subunit_id}, columns=columns, limit=1)
        if not rows:
            raise NotFoundError(f"{scope.value.capitalize()} {subunit_id} not found")
        return rows[0]

    async def list_subsectors(self, sector_id: str) -> List[Dict[str, Any]]:
        return await self._select(
            SubunitScope.SUBSECTOR.table,
            {"sector_id": sector_id},
            order="name.asc",
        )

    # Content

    async def list_content(
        self, scope: SubunitScope, kind: ContentKind, subunit_id: str
    ) -> List[Dict[str, Any]]:
        return await self._select(
            scope.content_table(kind),
            {scope.column: subunit_id},
            order=content_order(kind),
        )

    async def create_content(
        self, scope: SubunitScope, kind: ContentKind, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._insert(scope.content_table(kind), payload)

    async def update_content(
        self, scope: SubunitScope, kind: ContentKind, item_id: str, patch: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._patch(scope.content_table(kind), item_id, patch)

    async def delete_content(self, scope: SubunitScope, kind: ContentKind, item_id: str) -> None:
        await self._remove(scope.content_table(kind), item_id)

    # Reference data

    async def list_users(self) -> List[Dict[str, Any]]:
        return await self._select(USERS_TABLE, columns=USER_COLUMNS, order="full_name.asc")

    async def list_work_locations(self) -> List[Dict[str, Any]]:
        return await self._select("work_locations", order="name.asc")

    async def list_positions(self) -> List[Dict[str, Any]]:
        return await self._select("positions", order="name.asc")

    async def list_groups(self, scope: SubunitScope, subunit_id: str) -> List[Dict[str, Any]]:
        return await self._select(GROUPS_TABLE, {scope.column: subunit_id}, order="name.asc")

    # Groups

    async def create_group(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._insert(GROUPS_TABLE, payload)

    async def update_group(self, group_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        return await self._patch(GROUPS_TABLE, group_id, patch)

    async def delete_group(self, group_id: str) -> None:
        await self._remove(GROUPS_TABLE, group_id)

    # Team membership

    async def list_team_members(self, scope: SubunitScope, subunit_id: str) -> List[Dict[str, Any]]:
        # Sector rosters show their own members ahead of those inherited from subsectors
        order = "created_at.desc"
        if scope == SubunitScope.SECTOR:
            order = "is_from_subsector.asc,created_at.desc"
        return await self._select(
            scope.team_table,
            {scope.column: subunit_id},
            order=order,
            columns=TEAM_COLUMNS,
        )

    async def add_team_member(self, scope: SubunitScope, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._insert(scope.team_table, payload)

    async def update_team_member(
        self, scope: SubunitScope, member_id: str, patch: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._patch(scope.team_table, member_id, patch)

    async def remove_team_member(self, scope: SubunitScope, member_id: str) -> None:
        await self._remove(scope.team_table, member_id)

    # Notifications

    async def send_group_message(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send a notification through the backend's ``send_group_message`` function.

        Returns:
            The function's result, e.g. ``{"sent": 3}``
        """
        client = await self._get_client()
        response = await client.post(
            f"{REST_PREFIX}/rpc/{SEND_MESSAGE_FUNCTION}",
            headers=self._build_headers(),
            json=payload,
        )
        self._raise_for_status(response, f"send message to group {payload.get('group_id')}")
        data = response.json() if response.content else {}
        return data if isinstance(data, dict) else {"result": data}


# Global client instance
backend_client = BackendClient()
