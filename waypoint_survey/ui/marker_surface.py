"""Marker surface - projection of the waypoint collection onto pydeck layers.

The surface never reads the collection on its own: it keeps one marker dict
per local_id and updates only the entry named by each change event. Events
that do not touch marker fields (notes, image) cause no redraw.

Z-order (back to front): route -> markers -> selected marker
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pydeck as pdk

from waypoint_survey.constants import MapConfig, MarkerConfig, StyleConfig
from waypoint_survey.model.collection import EventKind, WaypointEvent

if TYPE_CHECKING:
    from waypoint_survey.core.routing import Route
    from waypoint_survey.model.collection import WaypointCollection
    from waypoint_survey.model.waypoint import Waypoint

logger = logging.getLogger(__name__)


@dataclass
class LayerStack:
    """Pydeck layers in z-order."""

    route: list[pdk.Layer] = field(default_factory=list)
    markers: list[pdk.Layer] = field(default_factory=list)
    selection: list[pdk.Layer] = field(default_factory=list)

    def get_ordered_layers(self) -> list[pdk.Layer]:
        return self.route + self.markers + self.selection


class MarkerSurface:
    """Marker set indexed by local_id, driven by collection events.

    Example:
        surface = MarkerSurface()
        surface.attach(collection)
        deck = surface.render(center=(lat, lon), zoom=13, selected_id="WP1")
    """

    def __init__(self) -> None:
        self._collection: "WaypointCollection | None" = None
        self._markers: dict[str, dict[str, Any]] = {}
        self.redraw_log: list[str] = []

    @property
    def redraw_count(self) -> int:
        return len(self.redraw_log)

    def attach(self, collection: "WaypointCollection") -> None:
        """Draw every current record, then follow the collection's events."""
        for record in collection:
            self._draw(record=record)
        self._collection = collection
        collection.subscribe(self.handle_event)

    def handle_event(self, event: WaypointEvent) -> None:
        if event.kind is EventKind.REMOVED:
            self._markers.pop(event.local_id, None)
            self.redraw_log.append(event.local_id)
            logger.debug(f"[MAP] Removed marker {event.local_id}")
            return

        if not event.affects_marker:
            return

        record = self._collection.get(local_id=event.local_id)
        self._draw(record=record)

    def _draw(self, record: "Waypoint") -> None:
        self._markers[record.local_id] = {
            "type": MarkerConfig.TYPE_WAYPOINT,
            "id": record.local_id,
            "name": record.display_name,
            "position": [record.lon, record.lat],
            "color": StyleConfig.DEFAULT_LOCATION_COLOR if record.is_default_location else StyleConfig.MARKER_COLOR,
        }
        self.redraw_log.append(record.local_id)
        logger.debug(f"[MAP] Drew marker {record.local_id} '{record.display_name}'")

    def marker(self, local_id: str) -> dict[str, Any] | None:
        return self._markers.get(local_id)

    @property
    def marker_ids(self) -> list[str]:
        return list(self._markers)

    def __len__(self) -> int:
        return len(self._markers)

    # =========================================================================
    # Rendering
    # =========================================================================

    def render(
        self,
        center: tuple[float, float] = (MapConfig.START_CENTER_LAT, MapConfig.START_CENTER_LON),
        zoom: int = MapConfig.DEFAULT_ZOOM,
        selected_id: str | None = None,
        route: "Route | None" = None,
    ) -> pdk.Deck:
        """Build the deck for the current marker set.

        Args:
            center: (lat, lon) view center
            zoom: View zoom level
            selected_id: Marker to highlight
            route: Optional route overlay
        """
        stack = LayerStack()
        if route is not None:
            stack.route.append(self._route_layer(route=route))

        unselected = [m for lid, m in self._markers.items() if lid != selected_id]
        stack.markers.append(self._scatter_layer(data=unselected, layer_id="waypoints", radius=MarkerConfig.RADIUS_PX))

        selected = self._markers.get(selected_id) if selected_id else None
        if selected is not None:
            highlighted = dict(selected, color=StyleConfig.SELECTED_COLOR)
            stack.selection.append(
                self._scatter_layer(data=[highlighted], layer_id="selected", radius=MarkerConfig.SELECTED_RADIUS_PX)
            )

        lat, lon = center
        return pdk.Deck(
            map_style=None,
            initial_view_state=pdk.ViewState(latitude=lat, longitude=lon, zoom=zoom),
            layers=stack.get_ordered_layers(),
            tooltip=self._tooltip_config(),
        )

    @staticmethod
    def _scatter_layer(data: list[dict[str, Any]], layer_id: str, radius: int) -> pdk.Layer:
        return pdk.Layer(
            "ScatterplotLayer",
            data,
            get_position="position",
            get_fill_color="color",
            get_line_color=StyleConfig.OUTLINE_COLOR,
            get_radius=radius,
            radius_units="pixels",
            stroked=True,
            line_width_min_pixels=MarkerConfig.LINE_WIDTH_PX,
            pickable=True,
            auto_highlight=True,
            id=layer_id,
        )

    @staticmethod
    def _route_layer(route: "Route") -> pdk.Layer:
        path = [[lon, lat] for lat, lon in route.geometry]
        return pdk.Layer(
            "PathLayer",
            [{"path": path, "name": route.summary}],
            get_path="path",
            get_color=StyleConfig.ROUTE_COLOR,
            get_width=StyleConfig.ROUTE_WIDTH_PX,
            width_units="pixels",
            pickable=False,
            id="route",
        )

    @staticmethod
    def _tooltip_config() -> dict[str, Any]:
        return {
            "html": "<b>{name}</b>",
            "style": {
                "backgroundColor": "rgba(255, 255, 255, 0.95)",
                "color": "#333",
                "padding": "6px 10px",
                "borderRadius": "4px",
            },
        }
