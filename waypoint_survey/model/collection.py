"""WaypointCollection - single source of truth for the session's waypoints.

Owns every Waypoint currently on the map and the IdentityMap that ties them
to the Remote Store. Provides operations for:
- Adding pins (map click, locate-me, bulk import, opening persisted records)
- Updating fields, with one change event per affected record
- Removing records and keeping positional labels contiguous
- Saving (POST on first save, PUT afterwards) and deleting against the store

Change events are the only way other components learn about mutations. The
marker surface and the selection machine subscribe; nothing reaches back
into the collection's records directly.

Concurrency:
    Everything runs on one asyncio loop. save() snapshots the payload when it
    is called and serializes saves per record with a lock, so a retried save
    waits for the in-flight create and then issues an update. On completion
    the result is discarded if the record was removed meanwhile, and field
    values are not applied if the record was edited meanwhile.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from waypoint_survey.constants import EntityPrefixes, MapConfig, NamingConfig
from waypoint_survey.core.geo_calculator import GeoCalculator
from waypoint_survey.core.remote_store import build_payload
from waypoint_survey.errors import NotFound, Protected, ValidationRejected
from waypoint_survey.model.identity_map import IdentityMap
from waypoint_survey.model.waypoint import (
    EDITABLE_FIELDS,
    MARKER_FIELDS,
    ServerId,
    Waypoint,
    WaypointDraft,
    is_default_location_name,
    is_default_pattern_name,
    positional_label,
)

if TYPE_CHECKING:
    from waypoint_survey.core.remote_store import RemoteWaypoint

logger = logging.getLogger(__name__)


class WaypointStore(Protocol):
    """The slice of RemoteStore the collection needs."""

    async def create(self, payload: dict[str, Any]) -> "RemoteWaypoint": ...

    async def update(self, server_id: ServerId, payload: dict[str, Any]) -> "RemoteWaypoint": ...

    async def delete(self, server_id: ServerId) -> dict[str, Any]: ...


# =============================================================================
# Change Events
# =============================================================================


class EventKind(Enum):
    """What happened to a record."""

    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True)
class WaypointEvent:
    """One change to one record.

    Attributes:
        kind: ADDED, UPDATED or REMOVED
        local_id: The affected record
        fields: Changed field names (UPDATED only)
    """

    kind: EventKind
    local_id: str
    fields: frozenset[str] = field(default_factory=frozenset)

    @property
    def affects_marker(self) -> bool:
        """True if the marker for this record must be redrawn."""
        if self.kind is not EventKind.UPDATED:
            return True
        return bool(self.fields & MARKER_FIELDS)


WaypointListener = Callable[[WaypointEvent], None]


# =============================================================================
# Collection
# =============================================================================


class WaypointCollection:
    """Ordered set of waypoints with identity reconciliation.

    Records are kept in a dict keyed by local_id; dict order is the display
    order that positional labels follow.

    Example:
        collection = WaypointCollection(store=RemoteStore())
        wp_id = collection.add(lat=12.34, lon=56.78)
        server_id = await collection.save(local_id=wp_id)
        await collection.save(local_id=wp_id)  # PUT, not a second POST
    """

    def __init__(self, store: WaypointStore | None = None, identity: IdentityMap | None = None) -> None:
        self.store = store
        self.identity = identity or IdentityMap()
        self._records: dict[str, Waypoint] = {}
        self._listeners: list[WaypointListener] = []
        self._save_locks: dict[str, asyncio.Lock] = {}
        self._id_counter = 0

    def _next_local_id(self) -> str:
        self._id_counter += 1
        return f"{EntityPrefixes.WAYPOINT}{self._id_counter}"

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, local_id: str) -> Waypoint:
        """Return the live record.

        Raises:
            NotFound: If local_id is not in the collection.
        """
        record = self._records.get(local_id)
        if record is None:
            raise NotFound(local_id=local_id)
        return record

    def index_of(self, local_id: str) -> int:
        """0-based display position of local_id."""
        self.get(local_id=local_id)
        return list(self._records).index(local_id)

    @property
    def records(self) -> list[Waypoint]:
        """Records in display order (live objects; do not mutate)."""
        return list(self._records.values())

    def snapshot(self) -> list[Waypoint]:
        """Copies of all records in display order, for export."""
        return [record.copy() for record in self._records.values()]

    def sentinel_id(self) -> str | None:
        """local_id of the "Default Location" record, if present."""
        for record in self._records.values():
            if record.is_default_location:
                return record.local_id
        return None

    def find_near(
        self,
        lat: float,
        lon: float,
        tolerance_deg: float = MapConfig.DUPLICATE_TOLERANCE_DEG,
    ) -> Waypoint | None:
        """First record within tolerance of (lat, lon) on both axes."""
        for record in self._records.values():
            if GeoCalculator.is_same_spot(lat1=record.lat, lon1=record.lon, lat2=lat, lon2=lon, tolerance_deg=tolerance_deg):
                return record
        return None

    def __contains__(self, local_id: object) -> bool:
        return local_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Waypoint]:
        return iter(list(self._records.values()))

    # =========================================================================
    # Events
    # =========================================================================

    def subscribe(self, listener: WaypointListener) -> None:
        """Register a listener for change events."""
        self._listeners.append(listener)

    def _emit(self, event: WaypointEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    # =========================================================================
    # Lifecycle Operations
    # =========================================================================

    def add(
        self,
        lat: float,
        lon: float,
        name: str | None = None,
        notes: str = "",
        image_ref: str | None = None,
        custom: bool | None = None,
    ) -> str:
        """Append a new waypoint and return its local_id.

        Names that are empty or match the default-ish pattern get a positional
        label; anything else is kept as a custom name. Pass custom to override
        the inference (an empty name is always positional).

        Raises:
            ValidationRejected: Invalid coordinates, or a second "Default Location".
        """
        record = self._build(lat=lat, lon=lon, name=name, notes=notes, image_ref=image_ref, custom=custom)
        self._records[record.local_id] = record
        relabeled = self._renumber()
        logger.info(f"[COLLECTION] Added {record!r}")

        self._emit(WaypointEvent(kind=EventKind.ADDED, local_id=record.local_id))
        self._emit_relabels(relabeled=relabeled, skip=record.local_id)
        return record.local_id

    def import_batch(self, drafts: Iterable[WaypointDraft]) -> list[str]:
        """Append many decoded records in one pass.

        User-supplied names survive; default-ish names ("Point 4",
        "Imported Point") are renumbered by position. All records are
        validated before any is added.

        Returns:
            local_ids of the imported records, in input order.
        """
        has_sentinel = self.sentinel_id() is not None
        built = []
        for draft in drafts:
            name = draft.name
            if is_default_location_name(name):
                if has_sentinel:
                    # Only one sentinel may exist; extras import under a plain custom name
                    name = NamingConfig.IMPORTED_DEFAULT_LOCATION_NAME
                has_sentinel = True
            built.append(self._build(lat=draft.lat, lon=draft.lon, name=name, notes=draft.notes, image_ref=draft.image_ref))

        for record in built:
            self._records[record.local_id] = record
        new_ids = {record.local_id for record in built}
        relabeled = self._renumber()
        logger.info(f"[IMPORT] Added {len(built)} waypoint(s)")

        for record in built:
            self._emit(WaypointEvent(kind=EventKind.ADDED, local_id=record.local_id))
        self._emit_relabels(relabeled=relabeled - new_ids)
        return [record.local_id for record in built]

    def adopt(self, remote: "RemoteWaypoint") -> str:
        """Show a persisted record on the map, reusing an existing local record.

        If a local record already maps to remote.id, its fields are refreshed
        from the server copy. Otherwise a new record is added under the
        server's name and its identity is recorded.

        Returns:
            local_id of the (new or refreshed) record.
        """
        fields = {
            "display_name": remote.name,
            "lat": remote.latitude,
            "lon": remote.longitude,
            "notes": remote.notes,
            "image_ref": remote.image_url,
        }

        local_id = self.identity.find_local(server_id=remote.id)
        if local_id is None and is_default_location_name(remote.name):
            sentinel = self.sentinel_id()
            if sentinel is not None and self.identity.lookup(local_id=sentinel) is None:
                local_id = sentinel
                self.identity.record(local_id=sentinel, server_id=remote.id)

        if local_id is not None and local_id in self._records:
            self.update(local_id, **fields)
        else:
            record = self._build(
                lat=remote.latitude,
                lon=remote.longitude,
                name=remote.name,
                notes=remote.notes,
                image_ref=remote.image_url,
                custom=True,
                check_sentinel=False,
            )
            self._records[record.local_id] = record
            local_id = record.local_id
            self.identity.record(local_id=local_id, server_id=remote.id)
            relabeled = self._renumber()
            self._emit(WaypointEvent(kind=EventKind.ADDED, local_id=local_id))
            self._emit_relabels(relabeled=relabeled, skip=local_id)

        record = self._records[local_id]
        record.server_id = remote.id
        record.created_at = remote.created_at
        record.updated_at = remote.updated_at
        logger.info(f"[COLLECTION] Adopted server id={remote.id} as {local_id}")
        return local_id

    def update(self, local_id: str, **fields: Any) -> set[str]:
        """Merge fields into a record.

        Accepted fields: display_name, lat, lon, notes, image_ref. An empty or
        default-ish display_name turns the record back into a positional label.

        Returns:
            Names of the fields that actually changed.

        Raises:
            NotFound: Unknown local_id
            Protected: Renaming the sentinel default location
            ValidationRejected: Invalid coordinates or a reserved name
            ValueError: Unknown field names (programming error)
        """
        record = self.get(local_id=local_id)
        prepared = self._prepare(record=record, fields=fields)

        changed = {key for key, value in prepared.items() if getattr(record, key) != value}
        if not changed:
            return set()

        for key in changed:
            setattr(record, key, prepared[key])
        record.revision += 1

        relabeled = self._renumber() if "custom_name" in changed else set()
        event_fields = (changed - {"custom_name"}) | ({"display_name"} if local_id in relabeled else set())
        logger.debug(f"[COLLECTION] Updated {local_id}: {sorted(event_fields)}")

        self._emit(WaypointEvent(kind=EventKind.UPDATED, local_id=local_id, fields=frozenset(event_fields)))
        self._emit_relabels(relabeled=relabeled, skip=local_id)
        return event_fields

    def remove(self, local_id: str) -> Waypoint:
        """Remove a record locally and renumber the rest.

        Also forgets its identity-map entry. Use delete() to remove a persisted
        record from the store as well.

        Returns:
            The removed record.

        Raises:
            NotFound: Unknown local_id
            Protected: The sentinel default location
        """
        record = self.get(local_id=local_id)
        if record.is_default_location:
            raise Protected(local_id=local_id, action="delete")

        del self._records[local_id]
        self.identity.remove(local_id=local_id)
        lock = self._save_locks.get(local_id)
        if lock is not None and not lock.locked():
            del self._save_locks[local_id]
        relabeled = self._renumber()
        logger.info(f"[COLLECTION] Removed {record!r}")

        self._emit(WaypointEvent(kind=EventKind.REMOVED, local_id=local_id))
        self._emit_relabels(relabeled=relabeled)
        return record

    # =========================================================================
    # Remote Reconciliation
    # =========================================================================

    async def save(self, local_id: str, changes: dict[str, Any] | None = None) -> ServerId:
        """Persist a record, creating it on first save and updating afterwards.

        Args:
            local_id: Record to save
            changes: Pending edits (e.g. the selection's edit buffer) saved
                together with the record and applied locally on success

        Returns:
            The record's server id.

        Raises:
            NotFound, Protected, ValidationRejected: Before any request
            Unauthenticated, ValidationRejected, TransportFailure: From the store;
                the record is left unchanged
        """
        store = self._require_store()
        pending = dict(changes or {})
        self._prepare(record=self.get(local_id=local_id), fields=pending)

        async with self._save_lock(local_id=local_id):
            record = self.get(local_id=local_id)
            revision = record.revision
            payload = self._payload(record=record, changes=pending)
            server_id = self.identity.lookup(local_id=local_id)

            if server_id is not None:
                logger.info(f"[SAVE] {local_id} -> update id={server_id}")
                remote = await store.update(server_id, payload)
                created = False
            else:
                logger.info(f"[SAVE] {local_id} -> create")
                remote = await store.create(payload)
                created = True

            if local_id not in self._records:
                logger.warning(f"[SAVE] {local_id} was removed while saving; discarding server id={remote.id}")
                return remote.id

            if created:
                self.identity.record(local_id=local_id, server_id=remote.id)
                server_id = remote.id

            current = self._records[local_id]
            current.server_id = server_id
            current.created_at = remote.created_at
            current.updated_at = remote.updated_at

            if current.revision != revision:
                logger.info(f"[SAVE] {local_id} changed while saving; keeping newer local edits")
            elif pending:
                self.update(local_id, **pending)

            return server_id

    async def delete(self, local_id: str) -> Waypoint:
        """Delete a record from the store (if persisted) and from the session.

        Raises:
            NotFound, Protected: Before any request
            Unauthenticated, ValidationRejected, TransportFailure: From the store;
                the record stays in the collection
        """
        record = self.get(local_id=local_id)
        if record.is_default_location:
            raise Protected(local_id=local_id, action="delete")

        server_id = self.identity.lookup(local_id=local_id)
        if server_id is not None:
            await self._require_store().delete(server_id)
            logger.info(f"[DELETE] {local_id} deleted from store (id={server_id})")
            if local_id not in self._records:
                self.identity.remove(local_id=local_id)
                return record

        return self.remove(local_id=local_id)

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_store(self) -> WaypointStore:
        if self.store is None:
            raise RuntimeError("WaypointCollection has no remote store configured")
        return self.store

    def _save_lock(self, local_id: str) -> asyncio.Lock:
        lock = self._save_locks.get(local_id)
        if lock is None:
            lock = asyncio.Lock()
            self._save_locks[local_id] = lock
        return lock

    def _build(
        self,
        lat: float,
        lon: float,
        name: str | None,
        notes: str,
        image_ref: str | None,
        custom: bool | None = None,
        check_sentinel: bool = True,
    ) -> Waypoint:
        """Validate inputs and create an unattached record."""
        lat, lon = self._validate_coordinates(lat=lat, lon=lon)
        has_name = bool(name and name.strip())
        custom = has_name and (custom if custom is not None else not is_default_pattern_name(name))
        if check_sentinel and custom and is_default_location_name(name) and self.sentinel_id() is not None:
            raise ValidationRejected(message='"Default Location" already exists', field="display_name")

        display_name = NamingConfig.DEFAULT_LOCATION_NAME if custom and is_default_location_name(name) else None
        return Waypoint(
            local_id=self._next_local_id(),
            lat=lat,
            lon=lon,
            display_name=display_name or (name.strip() if custom and name else ""),
            custom_name=custom,
            notes=notes or "",
            image_ref=image_ref or None,
        )

    def _prepare(self, record: Waypoint, fields: dict[str, Any]) -> dict[str, Any]:
        """Validate and normalize fields for update(); no mutation."""
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields {sorted(unknown)}; allowed: {sorted(EDITABLE_FIELDS)}")

        prepared: dict[str, Any] = {}

        if "display_name" in fields:
            name = (fields["display_name"] or "").strip()
            if record.is_default_location:
                if not is_default_location_name(name):
                    raise Protected(local_id=record.local_id, action="rename")
                prepared["display_name"] = NamingConfig.DEFAULT_LOCATION_NAME
                prepared["custom_name"] = True
            elif is_default_pattern_name(name):
                prepared["custom_name"] = False
            else:
                if is_default_location_name(name):
                    if self.sentinel_id() not in (None, record.local_id):
                        raise ValidationRejected(message='"Default Location" already exists', field="display_name")
                    name = NamingConfig.DEFAULT_LOCATION_NAME
                prepared["display_name"] = name
                prepared["custom_name"] = True

        if "lat" in fields or "lon" in fields:
            lat, lon = self._validate_coordinates(lat=fields.get("lat", record.lat), lon=fields.get("lon", record.lon))
            prepared["lat"] = lat
            prepared["lon"] = lon

        if "notes" in fields:
            prepared["notes"] = fields["notes"] or ""

        if "image_ref" in fields:
            prepared["image_ref"] = fields["image_ref"] or None

        return prepared

    def _payload(self, record: Waypoint, changes: dict[str, Any]) -> dict[str, Any]:
        """Store payload for record with pending changes applied to a copy."""
        draft = record.copy()
        for key, value in self._prepare(record=record, fields=changes).items():
            setattr(draft, key, value)
        if not draft.custom_name:
            draft.display_name = positional_label(index=self.index_of(local_id=record.local_id))
        return build_payload(
            name=draft.persisted_name,
            lat=draft.lat,
            lon=draft.lon,
            notes=draft.notes,
            image_ref=draft.image_ref,
        )

    @staticmethod
    def _validate_coordinates(lat: Any, lon: Any) -> tuple[float, float]:
        try:
            lat_f, lon_f = float(lat), float(lon)
        except (TypeError, ValueError) as e:
            raise ValidationRejected(message="Coordinates must be numbers", field="coordinates") from e
        if not GeoCalculator.is_valid_coordinate(lat=lat_f, lon=lon_f):
            raise ValidationRejected(
                message=f"Invalid coordinates ({lat_f}, {lon_f})",
                field="coordinates",
                context={"lat": lat_f, "lon": lon_f},
            )
        return lat_f, lon_f

    def _renumber(self) -> set[str]:
        """Recompute positional labels. Returns ids whose label changed."""
        relabeled = set()
        for index, record in enumerate(self._records.values()):
            if record.custom_name:
                continue
            label = positional_label(index=index)
            if record.display_name != label:
                record.display_name = label
                relabeled.add(record.local_id)
        return relabeled

    def _emit_relabels(self, relabeled: set[str], skip: str | None = None) -> None:
        for local_id in [lid for lid in self._records if lid in relabeled and lid != skip]:
            self._emit(WaypointEvent(kind=EventKind.UPDATED, local_id=local_id, fields=frozenset({"display_name"})))

    def __repr__(self) -> str:
        return f"WaypointCollection(records={len(self._records)}, persisted={len(self.identity)})"
