"""Remote Store client - async REST access to persisted waypoints.

Wraps the waypoint CRUD API with httpx.AsyncClient and translates HTTP
outcomes into the application's error taxonomy:

    401                     -> Unauthenticated (caller prompts re-login)
    400 / 404 / 409 / 422   -> ValidationRejected (server message preserved)
    5xx, timeouts, network  -> TransportFailure

The store is stateless apart from its HTTP client. Authentication is an
opaque token provider: a callable returning a bearer token or None.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from waypoint_survey.constants import RemoteConfig
from waypoint_survey.errors import TransportFailure, Unauthenticated, ValidationRejected

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], "str | None"]
ServerId = int | str


@dataclass(frozen=True)
class RemoteWaypoint:
    """A waypoint row as returned by the Remote Store.

    Numeric columns may arrive as strings (Postgres NUMERIC), so they are
    coerced on parse.
    """

    id: ServerId
    name: str
    latitude: float
    longitude: float
    notes: str = ""
    image_url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteWaypoint:
        """Parse a response row. Raises ValidationRejected on missing fields."""
        try:
            return cls(
                id=data["id"],
                name=data.get("name") or "",
                latitude=float(data["latitude"]),
                longitude=float(data["longitude"]),
                notes=data.get("notes") or "",
                image_url=data.get("image_url") or None,
                created_at=data.get("created_at"),
                updated_at=data.get("updated_at"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationRejected(
                message="Server returned a malformed waypoint",
                context={"error": str(e), "data": data},
            ) from e


def build_payload(name: str, lat: float, lon: float, notes: str, image_ref: str | None) -> dict[str, Any]:
    """Request body for POST/PUT. Field names match the store's columns."""
    return {
        "name": name,
        "latitude": float(lat),
        "longitude": float(lon),
        "notes": notes or "",
        "image_url": image_ref or None,
    }


class RemoteStore:
    """Async client for the waypoint REST API.

    Example:
        store = RemoteStore(token_provider=lambda: token)
        created = await store.create(build_payload("Point 1", 12.34, 56.78, "", None))
        await store.update(created.id, payload)
    """

    def __init__(
        self,
        base_url: str = RemoteConfig.API_BASE_URL,
        token_provider: TokenProvider | None = None,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = RemoteConfig.TIMEOUT_S,
    ) -> None:
        """Initialize store.

        Args:
            base_url: Backend origin (without the /api prefix)
            token_provider: Returns the current bearer token or None
            client: Optional preconfigured client (tests pass a MockTransport)
            timeout_s: Per-request timeout when the client is created here
        """
        self.api_url = f"{base_url.rstrip('/')}{RemoteConfig.API_PREFIX}"
        self.token_provider = token_provider or (lambda: None)
        self._client = client
        self._owns_client = client is None
        self._timeout_s = timeout_s

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazily created shared HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout_s)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this store created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # Waypoint endpoints
    # =========================================================================

    async def list_waypoints(self) -> list[RemoteWaypoint]:
        """GET /waypoints - all persisted waypoints (requires auth)."""
        data = await self._request("GET", RemoteConfig.WAYPOINTS_PATH)
        if not isinstance(data, list):
            raise ValidationRejected(message="Server returned an unexpected waypoint list")
        return [RemoteWaypoint.from_dict(data=row) for row in data]

    async def get_default(self) -> RemoteWaypoint:
        """GET /waypoints/default - server-designated default location (no auth)."""
        data = await self._request("GET", RemoteConfig.DEFAULT_PATH, authenticated=False)
        return RemoteWaypoint.from_dict(data=data)

    async def get(self, server_id: ServerId) -> RemoteWaypoint:
        """GET /waypoints/{id}."""
        data = await self._request("GET", f"{RemoteConfig.WAYPOINTS_PATH}/{server_id}")
        return RemoteWaypoint.from_dict(data=data)

    async def create(self, payload: dict[str, Any]) -> RemoteWaypoint:
        """POST /waypoints - returns the created row with its server id."""
        data = await self._request("POST", RemoteConfig.WAYPOINTS_PATH, json=payload)
        created = RemoteWaypoint.from_dict(data=data)
        logger.info(f"[STORE] Created waypoint id={created.id}")
        return created

    async def update(self, server_id: ServerId, payload: dict[str, Any]) -> RemoteWaypoint:
        """PUT /waypoints/{id}."""
        data = await self._request("PUT", f"{RemoteConfig.WAYPOINTS_PATH}/{server_id}", json=payload)
        logger.info(f"[STORE] Updated waypoint id={server_id}")
        return RemoteWaypoint.from_dict(data=data)

    async def delete(self, server_id: ServerId) -> dict[str, Any]:
        """DELETE /waypoints/{id} - returns {message, waypoint}."""
        data = await self._request("DELETE", f"{RemoteConfig.WAYPOINTS_PATH}/{server_id}")
        logger.info(f"[STORE] Deleted waypoint id={server_id}")
        return data

    # =========================================================================
    # Transport
    # =========================================================================

    def auth_headers(self) -> dict[str, str]:
        """Authorization header when a token is available."""
        token = self.token_provider()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        authenticated: bool = True,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            Unauthenticated, ValidationRejected, TransportFailure
        """
        url = f"{self.api_url}{path}"
        headers = self.auth_headers() if authenticated else {}
        try:
            response = await self.client.request(method, url, json=json, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning(f"[STORE] {method} {path} timed out: {e}")
            raise TransportFailure(message="The server took too long to respond", context={"url": url}) from e
        except httpx.TransportError as e:
            logger.warning(f"[STORE] {method} {path} failed: {e}")
            raise TransportFailure(context={"url": url, "error": str(e)}) from e

        raise_for_status(response=response, action=f"{method} {path}")

        try:
            return response.json()
        except ValueError as e:
            raise TransportFailure(
                message="Server returned an unreadable response",
                status_code=response.status_code,
                context={"url": url},
            ) from e


def raise_for_status(response: httpx.Response, action: str) -> None:
    """Translate a non-2xx response into the error taxonomy."""
    status = response.status_code
    if status < 400:
        return

    server_message = _error_message(response=response)
    logger.warning(f"[STORE] {action} -> {status}: {server_message}")

    if status == 401:
        raise Unauthenticated(context={"action": action})
    if status in RemoteConfig.VALIDATION_STATUSES:
        raise ValidationRejected(
            message=server_message or "The server rejected the waypoint",
            status_code=status,
            context={"action": action},
        )
    raise TransportFailure(
        message=server_message or "The server failed to process the request",
        status_code=status,
        context={"action": action},
    )


def _error_message(response: httpx.Response) -> str:
    """Extract the store's {"error": "..."} message, if any."""
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message", ""))
        if error:
            return str(error)
    return ""
