"""SurveyController - the single owner of a survey session's state.

Holds the waypoint collection (and its identity map), the selection machine
and its context, the marker surface, the HTTP clients and the live-location
watch. Every user action is a method here; the Streamlit shell only calls
these methods and turns their errors into toasts.

Async methods suspend only at Remote Store, image host, routing
and place search calls.
"""

import logging
from collections.abc import AsyncIterable
from dataclasses import dataclass
from datetime import date, datetime

from waypoint_survey.constants import GeocodingConfig, MapConfig, NamingConfig
from waypoint_survey.core.geo_calculator import GeoCalculator
from waypoint_survey.core.geocoding import GeocodeResult, GeocodingClient
from waypoint_survey.core.image_host import ImageHost
from waypoint_survey.core.location_watch import LocationWatch, PositionFix
from waypoint_survey.core.remote_store import RemoteStore, RemoteWaypoint, ServerId, TokenProvider
from waypoint_survey.core.routing import Route, RoutingClient
from waypoint_survey.errors import ValidationRejected, WaypointSurveyError
from waypoint_survey.formats import decode_file, encode, export_filename, mime_type, read_upload
from waypoint_survey.model.collection import WaypointCollection
from waypoint_survey.model.identity_map import IdentityMap
from waypoint_survey.model.message import LowAccuracyMessage, ToastMessage, error_message_for
from waypoint_survey.model.waypoint import Waypoint, is_default_location_name
from waypoint_survey.ui.marker_surface import MarkerSurface
from waypoint_survey.ui.state_machine import SelectionStateMachine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaveOutcome:
    """Result of saving one waypoint."""

    local_id: str
    server_id: ServerId
    name: str
    created: bool


@dataclass(frozen=True)
class ExportFile:
    """A rendered export ready for download."""

    filename: str
    mime_type: str
    content: str
    count: int


class SurveyController:
    """Owns all client state for one survey session.

    Example:
        controller = SurveyController(token_provider=lambda: token)
        local_id = controller.place_pin(lat=26.51, lon=80.23)
        outcome = await controller.save_selected()
    """

    def __init__(
        self,
        store: RemoteStore | None = None,
        image_host: ImageHost | None = None,
        router: RoutingClient | None = None,
        geocoder: GeocodingClient | None = None,
        token_provider: TokenProvider | None = None,
        add_log_listener: bool = True,
    ) -> None:
        self.store = store or RemoteStore(token_provider=token_provider)
        self.images = image_host or ImageHost(store=self.store)
        self.router = router or RoutingClient()
        self.geocoder = geocoder or GeocodingClient()

        self.collection = WaypointCollection(store=self.store)
        self.sm, self.context = SelectionStateMachine.create(
            collection=self.collection,
            add_log_listener=add_log_listener,
        )
        self.markers = MarkerSurface()
        self.markers.attach(self.collection)

        self.watch: LocationWatch | None = None
        self.saved: list[RemoteWaypoint] = []
        self.default_location: RemoteWaypoint | None = None
        # Toasts raised outside a user action (live-location callbacks)
        self.notices: list[ToastMessage] = []

    @property
    def identity(self) -> IdentityMap:
        return self.collection.identity

    def drain_notices(self) -> list[ToastMessage]:
        notices, self.notices = self.notices, []
        return notices

    async def aclose(self) -> None:
        """Close HTTP clients. They are recreated lazily on next use."""
        await self.store.aclose()
        await self.router.aclose()
        await self.geocoder.aclose()

    # =========================================================================
    # Pins and selection
    # =========================================================================

    def place_pin(self, lat: float, lon: float) -> str:
        """Drop a pin at (lat, lon), or select the pin already there.

        Returns:
            local_id of the new or existing waypoint.
        """
        existing = self.collection.find_near(lat=lat, lon=lon)
        if existing is not None:
            logger.info(f"[MAP] Click hit existing {existing.local_id}")
            self.sm.select_waypoint(local_id=existing.local_id)
            return existing.local_id

        local_id = self.collection.add(lat=lat, lon=lon)
        self.sm.select_waypoint(local_id=local_id)
        return local_id

    def select(self, local_id: str) -> None:
        self.sm.select_waypoint(local_id=local_id)

    def deselect(self) -> None:
        self.sm.clear()

    def edit_buffer(self, **fields: object) -> None:
        """Write form values into the selected waypoint's edit buffer."""
        if not self.sm.is_selected:
            raise ValidationRejected(message="Select a waypoint first")
        for name, value in fields.items():
            if not hasattr(self.context.buffer, name) or name.startswith("_"):
                raise ValueError(f"Unknown edit buffer field '{name}'")
            setattr(self.context.buffer, name, value)

    def _require_selected(self) -> str:
        local_id = self.sm.selected_id
        if local_id is None:
            raise ValidationRejected(message="Select a waypoint first")
        return local_id

    # =========================================================================
    # Persistence
    # =========================================================================

    async def save_selected(self) -> SaveOutcome:
        """Save the selected waypoint together with its pending edits."""
        local_id = self._require_selected()
        return await self.save(local_id=local_id, changes=self.sm.pending_changes())

    async def save(self, local_id: str, changes: dict | None = None) -> SaveOutcome:
        created = self.identity.lookup(local_id=local_id) is None
        server_id = await self.collection.save(local_id=local_id, changes=changes)

        name = changes.get("display_name") if changes else None
        if local_id in self.collection:
            record = self.collection.get(local_id=local_id)
            name = record.display_name
            if self.sm.selected_id == local_id:
                self.context.buffer.load(record=record)
        return SaveOutcome(local_id=local_id, server_id=server_id, name=name or "", created=created)

    async def delete_selected(self) -> Waypoint:
        """Delete the selected waypoint (from the store too, if saved)."""
        local_id = self._require_selected()
        return await self.delete(local_id=local_id)

    async def delete(self, local_id: str) -> Waypoint:
        removed = await self.collection.delete(local_id=local_id)
        if removed.server_id is not None:
            self.saved = [row for row in self.saved if str(row.id) != str(removed.server_id)]
        if self.context.route.start_local_id == local_id or self.context.route.end_local_id == local_id:
            self.context.route.clear()
        if self.context.survey.tracked_local_id == local_id:
            self.context.survey.tracked_local_id = None
        return removed

    async def load_saved(self) -> list[RemoteWaypoint]:
        """Fetch the persisted waypoint list (requires a session)."""
        self.saved = await self.store.list_waypoints()
        logger.info(f"[SAVED] {len(self.saved)} saved waypoint(s)")
        return self.saved

    async def open_saved(self, server_id: ServerId) -> str:
        """Show a persisted waypoint on the map and select it."""
        remote = next((row for row in self.saved if str(row.id) == str(server_id)), None)
        if remote is None:
            remote = await self.store.get(server_id)
        local_id = self.collection.adopt(remote=remote)
        self.sm.select_waypoint(local_id=local_id)
        self.context.map.fly_to(lat=remote.latitude, lon=remote.longitude, zoom=MapConfig.SINGLE_POINT_ZOOM)
        return local_id

    async def load_default(self) -> str | None:
        """Fetch the server's default location and put it on the map.

        Returns:
            local_id of the default location, or None if the server has none.
        """
        try:
            remote = await self.store.get_default()
        except ValidationRejected as e:
            if e.status_code == 404:
                logger.info("[DEFAULT] Server has no default location")
                return None
            raise
        self.default_location = remote
        local_id = self.collection.adopt(remote=remote)
        self.context.map.fly_to(lat=remote.latitude, lon=remote.longitude, zoom=MapConfig.DEFAULT_ZOOM)
        return local_id

    async def set_default_location(self) -> SaveOutcome:
        """Make sure a persisted "Default Location" exists and select it.

        Uses the saved record if there is one, otherwise creates it at the
        current map center.
        """
        sentinel = self.collection.sentinel_id()
        if sentinel is not None and self.identity.lookup(local_id=sentinel) is not None:
            self.sm.select_waypoint(local_id=sentinel)
            return SaveOutcome(
                local_id=sentinel,
                server_id=self.identity.lookup(local_id=sentinel),
                name=NamingConfig.DEFAULT_LOCATION_NAME,
                created=False,
            )

        saved = await self.load_saved()
        remote = next((row for row in saved if is_default_location_name(row.name)), None)
        if remote is not None:
            local_id = self.collection.adopt(remote=remote)
            self.sm.select_waypoint(local_id=local_id)
            return SaveOutcome(local_id=local_id, server_id=remote.id, name=remote.name, created=False)

        if sentinel is None:
            lat, lon = self.context.map.center
            sentinel = self.collection.add(
                lat=lat,
                lon=lon,
                name=NamingConfig.DEFAULT_LOCATION_NAME,
                notes=NamingConfig.DEFAULT_LOCATION_NOTES,
            )
        self.sm.select_waypoint(local_id=sentinel)
        return await self.save(local_id=sentinel)

    # =========================================================================
    # Live location
    # =========================================================================

    def locate_me(self, fix: PositionFix | None) -> str:
        """Show the user's position as the "My Location" waypoint and select it.

        Without a fix, the default location is used instead.
        """
        if fix is None:
            lat, lon = self._default_coordinates()
            fix_notes = NamingConfig.GPS_UNAVAILABLE_NOTES
            logger.info(f"[LOCATE] No GPS fix, falling back to ({lat:.6f}, {lon:.6f})")
        else:
            lat, lon = fix.lat, fix.lon
            fix_notes = fix.accuracy_label
            self._note_accuracy(fix=fix)

        local_id = self._place_tracked(lat=lat, lon=lon, notes=fix_notes)
        self.sm.select_waypoint(local_id=local_id)
        self.context.map.fly_to(lat=lat, lon=lon, zoom=MapConfig.SINGLE_POINT_ZOOM)
        return local_id

    def start_survey(self, source: AsyncIterable[PositionFix] | None = None) -> None:
        """Enable pin dropping and start following position fixes.

        With a source, must be called from a running event loop.
        """
        if self.context.survey.active:
            return
        self.context.survey.active = True
        self.watch = LocationWatch(source=source, on_fix=self.apply_fix, on_error=self._note_rejected_fix)
        self.watch.start()
        logger.info("[SURVEY] Started")

    async def end_survey(self) -> None:
        """Stop the watch; fixes arriving afterwards are ignored."""
        watch, self.watch = self.watch, None
        try:
            if watch is not None:
                await watch.stop()
        finally:
            self.context.survey.active = False
            logger.info("[SURVEY] Ended")

    def report_fix(self, fix: PositionFix) -> bool:
        """Feed one fix to the active watch. Returns True if it was applied."""
        if self.watch is None:
            return False
        return self.watch.handle(fix=fix)

    def apply_fix(self, fix: PositionFix) -> None:
        """Watch callback: move the tracked waypoint to the new fix."""
        self._note_accuracy(fix=fix)
        self._place_tracked(lat=fix.lat, lon=fix.lon, notes=fix.accuracy_label)

    def _place_tracked(self, lat: float, lon: float, notes: str) -> str:
        tracked = self.context.survey.tracked_local_id
        if tracked is not None and tracked in self.collection:
            self.collection.update(tracked, lat=lat, lon=lon, notes=notes)
            return tracked

        tracked = self.collection.add(lat=lat, lon=lon, name=NamingConfig.MY_LOCATION_NAME, notes=notes)
        self.context.survey.tracked_local_id = tracked
        return tracked

    def _note_rejected_fix(self, exc: WaypointSurveyError) -> None:
        self.notices.append(error_message_for(exc))

    def _note_accuracy(self, fix: PositionFix) -> None:
        self.context.survey.last_accuracy_m = fix.accuracy_m
        if fix.is_low_accuracy:
            logger.warning(f"[WATCH] Low accuracy fix: {fix.accuracy_m}m")
            self.notices.append(LowAccuracyMessage(accuracy_m=fix.accuracy_m))

    def _default_coordinates(self) -> tuple[float, float]:
        sentinel = self.collection.sentinel_id()
        if sentinel is not None:
            return self.collection.get(local_id=sentinel).lat_lon
        if self.default_location is not None:
            return (self.default_location.latitude, self.default_location.longitude)
        return (MapConfig.START_CENTER_LAT, MapConfig.START_CENTER_LON)

    # =========================================================================
    # Import / export
    # =========================================================================

    def import_file(self, filename: str, text: str) -> list[str]:
        """Import a GeoJSON or KML file, select the first point and fit the view."""
        drafts = decode_file(filename=filename, text=text)
        local_ids = self.collection.import_batch(drafts=drafts)

        center_lat, center_lon, zoom = GeoCalculator.fit_view(points=[(d.lat, d.lon) for d in drafts])
        self.context.map.fly_to(lat=center_lat, lon=center_lon, zoom=zoom)
        self.sm.select_waypoint(local_id=local_ids[0])
        return local_ids

    def import_upload(self, filename: str, data: bytes) -> list[str]:
        """Import an uploaded file's raw bytes; invalid UTF-8 is a FormatError."""
        return self.import_file(filename=filename, text=read_upload(filename=filename, data=data))

    def export(self, fmt: str, now: datetime | None = None, today: date | None = None) -> ExportFile:
        """Render the waypoints currently on the map."""
        return self._render_export(fmt=fmt, waypoints=self.collection.snapshot(), now=now, today=today)

    async def export_saved(self, fmt: str, now: datetime | None = None, today: date | None = None) -> ExportFile:
        """Render every persisted waypoint, fetched fresh from the store."""
        rows = await self.load_saved()
        waypoints = [
            Waypoint(
                local_id="",
                lat=row.latitude,
                lon=row.longitude,
                display_name=row.name,
                custom_name=True,
                notes=row.notes,
                image_ref=row.image_url,
                server_id=row.id,
                created_at=row.created_at,
                updated_at=row.updated_at,
            )
            for row in rows
        ]
        return self._render_export(fmt=fmt, waypoints=waypoints, now=now, today=today)

    @staticmethod
    def _render_export(fmt: str, waypoints: list[Waypoint], now: datetime | None, today: date | None) -> ExportFile:
        if not waypoints:
            raise ValidationRejected(message="No waypoints to export")
        content = encode(fmt=fmt, waypoints=waypoints, now=now)
        filename = export_filename(fmt=fmt, today=today)
        logger.info(f"[EXPORT] {len(waypoints)} waypoint(s) -> {filename}")
        return ExportFile(filename=filename, mime_type=mime_type(fmt), content=content, count=len(waypoints))

    # =========================================================================
    # Images and map services
    # =========================================================================

    async def upload_image(self, data: bytes, content_type: str | None, filename: str) -> str:
        """Upload an image and put its URL into the selected waypoint's buffer.

        If the selection moved to another waypoint while uploading, the URL is
        returned but not written into the other waypoint's buffer.
        """
        local_id = self._require_selected()
        url = await self.images.upload(data=data, content_type=content_type, filename=filename)
        if self.sm.selected_id == local_id:
            self.context.buffer.image_ref = url
        else:
            logger.info(f"[IMAGE] Selection moved from {local_id} during upload; URL not attached")
        return url

    async def navigate(self, start_id: str, end_id: str) -> Route:
        """Compute a driving route between two waypoints and show it."""
        start = self.collection.get(local_id=start_id)
        end = self.collection.get(local_id=end_id)
        route = await self.router.route(start=start.lat_lon, end=end.lat_lon)

        self.context.route.route = route
        self.context.route.start_local_id = start_id
        self.context.route.end_local_id = end_id
        center_lat, center_lon, zoom = GeoCalculator.fit_view(points=route.geometry)
        self.context.map.fly_to(lat=center_lat, lon=center_lon, zoom=zoom)
        return route

    def clear_route(self) -> None:
        self.context.route.clear()

    async def search_location(self, query: str) -> GeocodeResult:
        """Move the map to the best match for a free-text place search."""
        place = await self.geocoder.search(query=query)
        self.context.map.fly_to(lat=place.lat, lon=place.lon, zoom=GeocodingConfig.RESULT_ZOOM)
        return place

    def __repr__(self) -> str:
        return f"SurveyController({self.collection!r}, {self.sm!r})"
