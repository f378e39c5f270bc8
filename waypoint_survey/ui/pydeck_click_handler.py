"""Map click capture using streamlit-deckgl.

st_deckgl returns the full deck.gl onClick event for every click, so both
marker clicks (picked objects) and empty-map clicks (coordinate only) reach
the click handlers. st.pydeck_chart only reports picked objects.
"""

import logging
from dataclasses import dataclass
from typing import Any

import pydeck as pdk
import streamlit as st
from streamlit_deckgl import st_deckgl  # type: ignore[import-untyped]

from waypoint_survey.constants import MapConfig, MarkerConfig

logger = logging.getLogger(__name__)


@dataclass
class MapClickResult:
    """One click on the map.

    Attributes:
        marker_id: local_id of the clicked waypoint marker, or None
        coordinate: (lat, lon) of the click, or None
    """

    marker_id: str | None
    coordinate: tuple[float, float] | None

    @property
    def is_marker_click(self) -> bool:
        return self.marker_id is not None

    @property
    def is_map_click(self) -> bool:
        """True if empty map space was clicked."""
        return self.marker_id is None and self.coordinate is not None

    @property
    def is_empty(self) -> bool:
        return self.marker_id is None and self.coordinate is None

    @staticmethod
    def empty() -> "MapClickResult":
        return MapClickResult(marker_id=None, coordinate=None)


def parse_click_event(event: Any) -> MapClickResult:
    """Turn a raw st_deckgl event into a MapClickResult.

    st_deckgl spreads the picked object's properties into the event dict:
    - Map click: {coordinate: [lon, lat], eventType: "click"}
    - Marker click: {type: "waypoint", id: "WP3", position: [...], coordinate: [...], ...}
    """
    if not isinstance(event, dict) or not event:
        return MapClickResult.empty()

    coordinate = None
    coord = event.get("coordinate")
    if isinstance(coord, (list, tuple)) and len(coord) >= 2:
        # deck.gl reports [lon, lat]
        coordinate = (float(coord[1]), float(coord[0]))

    marker_id = None
    if event.get("type") == MarkerConfig.TYPE_WAYPOINT and event.get("id"):
        marker_id = str(event["id"])

    return MapClickResult(marker_id=marker_id, coordinate=coordinate)


def click_id(result: MapClickResult) -> str:
    """Deduplication key for a click."""
    if result.marker_id is not None:
        return f"marker_{result.marker_id}"
    if result.coordinate is not None:
        lat, lon = result.coordinate
        return f"coord_{lat:.6f}_{lon:.6f}"
    return ""


def render_deck_map(deck: pdk.Deck, key: str, height: int = MapConfig.MAP_HEIGHT) -> MapClickResult:
    """Render the deck and return the click made since the last render, if any.

    The same event is returned by st_deckgl on every rerun until the user
    clicks again, so the last processed click is remembered per component key.
    """
    last_click_key = f"_deckgl_last_click_{key}"
    if last_click_key not in st.session_state:
        st.session_state[last_click_key] = None

    # events=["click"] is required for st_deckgl to report clicks
    event = st_deckgl(deck, key=key, height=height, events=["click"])
    result = parse_click_event(event)
    if result.is_empty:
        return result

    cid = click_id(result)
    if cid == st.session_state.get(last_click_key):
        return MapClickResult.empty()
    st.session_state[last_click_key] = cid

    logger.debug(f"[MAP] Click marker={result.marker_id} coordinate={result.coordinate}")
    return result
