"""Shared pytest fixtures for waypoint_survey tests.

Provides FakeStore, an in-memory stand-in for the Remote Store, plus
collection, selection machine and controller fixtures wired to it.

COORDINATES:
    Tests use points around (26.5, 80.2), the default map center, spaced
    0.01 degrees apart so they never fall within the duplicate-click tolerance.
"""

import asyncio
from typing import Any

import httpx
import pytest

from waypoint_survey.controller import SurveyController
from waypoint_survey.core.remote_store import RemoteStore, RemoteWaypoint
from waypoint_survey.core.routing import RoutingClient
from waypoint_survey.model.collection import WaypointCollection, WaypointEvent
from waypoint_survey.ui.state_machine import SelectionStateMachine

BASE_LAT = 26.5
BASE_LON = 80.2


def point(n: int) -> tuple[float, float]:
    """n-th test coordinate, 0.01 degrees apart."""
    return (BASE_LAT + n * 0.01, BASE_LON + n * 0.01)


# =============================================================================
# FAKE REMOTE STORE
# =============================================================================


class FakeStore:
    """In-memory Remote Store recording every call.

    Attributes:
        rows: server_id -> stored row
        calls: (operation, argument) in call order
        gate: When set to an asyncio.Event, every call waits for it before answering
        fail_with: When set, every call raises this after the gate
        next_id: Server id handed out by the next create
    """

    def __init__(self, first_id: int = 1) -> None:
        self.rows: dict[int, dict[str, Any]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.gate: asyncio.Event | None = None
        self.fail_with: Exception | None = None
        self.next_id = first_id
        self.default_row: dict[str, Any] | None = None

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    async def _enter(self, operation: str, argument: Any) -> None:
        self.calls.append((operation, argument))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with

    def _row(self, server_id: int, payload: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": server_id,
            **payload,
            "created_at": self.rows.get(server_id, {}).get("created_at", "2026-01-01T00:00:00Z"),
            "updated_at": f"2026-01-01T00:00:{len(self.calls):02d}Z",
        }

    async def create(self, payload: dict[str, Any]) -> RemoteWaypoint:
        await self._enter("create", dict(payload))
        server_id = self.next_id
        self.next_id += 1
        self.rows[server_id] = self._row(server_id=server_id, payload=payload)
        return RemoteWaypoint.from_dict(self.rows[server_id])

    async def update(self, server_id: int, payload: dict[str, Any]) -> RemoteWaypoint:
        await self._enter("update", (server_id, dict(payload)))
        self.rows[server_id] = self._row(server_id=server_id, payload=payload)
        return RemoteWaypoint.from_dict(self.rows[server_id])

    async def delete(self, server_id: int) -> dict[str, Any]:
        await self._enter("delete", server_id)
        row = self.rows.pop(server_id, None)
        return {"message": "Waypoint deleted successfully", "waypoint": row}

    async def get(self, server_id: int) -> RemoteWaypoint:
        await self._enter("get", server_id)
        return RemoteWaypoint.from_dict(self.rows[server_id])

    async def list_waypoints(self) -> list[RemoteWaypoint]:
        await self._enter("list", None)
        return [RemoteWaypoint.from_dict(row) for row in self.rows.values()]

    async def get_default(self) -> RemoteWaypoint:
        await self._enter("get_default", None)
        from waypoint_survey.errors import ValidationRejected

        if self.default_row is None:
            raise ValidationRejected(message="No default location", status_code=404)
        return RemoteWaypoint.from_dict(self.default_row)

    async def aclose(self) -> None:
        pass

    def seed(self, server_id: int, name: str, lat: float, lon: float, notes: str = "") -> dict[str, Any]:
        """Put a persisted row in the store without recording a call."""
        self.rows[server_id] = {
            "id": server_id,
            "name": name,
            "latitude": lat,
            "longitude": lon,
            "notes": notes,
            "image_url": None,
            "created_at": "2026-01-01T00:00:00Z",
            "updated_at": "2026-01-01T00:00:00Z",
        }
        return self.rows[server_id]


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def collection(fake_store: FakeStore) -> WaypointCollection:
    return WaypointCollection(store=fake_store)


@pytest.fixture
def events(collection: WaypointCollection) -> list[WaypointEvent]:
    """Every event the collection emits, in order."""
    received: list[WaypointEvent] = []
    collection.subscribe(received.append)
    return received


@pytest.fixture
def state_machine(collection: WaypointCollection) -> SelectionStateMachine:
    return SelectionStateMachine(collection=collection)


@pytest.fixture
def controller(fake_store: FakeStore) -> SurveyController:
    """Controller on the fake store with routing left unconfigured."""
    return SurveyController(store=fake_store, router=RoutingClient(api_key=""), add_log_listener=False)


def mock_remote_store(handler, token: str | None = "token-123") -> RemoteStore:
    """RemoteStore whose HTTP traffic goes to handler(request) -> httpx.Response."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RemoteStore(base_url="https://survey.test", token_provider=lambda: token, client=client)
