"""Waypoint Survey - map-based GPS waypoint collection.

Drop pins on a map, annotate them, save them to the survey backend, import
and export them as GeoJSON/KML/JSON/XML, and get driving directions between
them.

Run: streamlit run waypoint_survey/app.py
"""

import logging
import traceback

import streamlit as st

from waypoint_survey.constants import AppConfig
from waypoint_survey.controller import SurveyController
from waypoint_survey.ui import actions
from waypoint_survey.ui.click_handlers import dispatch_click
from waypoint_survey.ui.panels import SidebarRenderer, render_detail_panel, render_route_panel
from waypoint_survey.ui.pydeck_click_handler import render_deck_map

logging.basicConfig(level=getattr(logging, AppConfig.LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)


# =============================================================================
# SESSION STATE
# =============================================================================


def init_session_state() -> None:
    """Create the controller once per browser session and load the default location."""
    if "controller" not in st.session_state:
        st.session_state.controller = SurveyController(token_provider=lambda: st.session_state.get("auth_token") or None)
        actions.load_default_location()

    if "_upload_counter" not in st.session_state:
        st.session_state._upload_counter = 0

    if "map_version" not in st.session_state:
        st.session_state.map_version = 0


def reset_ui_state() -> None:
    """Clear the selection and remount the map after a render error.

    Waypoints and their saved identities are kept.
    """
    logger.info("Resetting UI state due to error recovery")
    controller: SurveyController = st.session_state.controller
    controller.deselect()
    controller.clear_route()
    st.session_state.map_version = st.session_state.get("map_version", 0) + 1


# =============================================================================
# MAP RENDERING
# =============================================================================


def render_map() -> None:
    try:
        _render_map_inner()
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        logger.error(f"[RENDER] Map error caught: {error_msg}\n{traceback.format_exc()}")
        st.error(f"⚠️ [RENDER] Something went wrong: {error_msg}")
        reset_ui_state()
        if st.button("🔄 Reset and Continue", type="primary"):
            st.rerun()


def _render_map_inner() -> None:
    controller: SurveyController = st.session_state.controller
    ctx = controller.context

    deck = controller.markers.render(
        center=ctx.map.center,
        zoom=ctx.map.zoom,
        selected_id=controller.sm.selected_id,
        route=ctx.route.route,
    )
    map_key = f"survey_map_{st.session_state.map_version}"
    logger.debug(f"[RENDER] state={controller.sm.get_state_name()} markers={len(controller.markers)} key={map_key}")

    click = render_deck_map(deck=deck, key=map_key)
    if not click.is_empty:
        dispatch_click(result=click)


# =============================================================================
# MAIN
# =============================================================================


def main() -> None:
    st.set_page_config(page_title=AppConfig.TITLE, page_icon=AppConfig.ICON, layout=AppConfig.LAYOUT)
    init_session_state()

    SidebarRenderer().render()
    actions.show_notices()

    col_map, col_panel = st.columns([3, 1])
    with col_map:
        render_map()
    with col_panel:
        render_detail_panel()
        render_route_panel()


if __name__ == "__main__":
    main()
