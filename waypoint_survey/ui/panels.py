"""Sidebar and detail panels for the survey UI.

Renders:
- Sidebar: session summary, place search, survey controls, locate-me,
  saved waypoints, import/export and the session token field
- Detail panel: edit form for the selected waypoint (name, notes, image)
- Route panel: navigate between two waypoints

All side effects go through ui/actions.py; panels only read the controller.
"""

import logging

import streamlit as st

from waypoint_survey.constants import ExportConfig, ImageConfig, ImportConfig
from waypoint_survey.core.location_watch import PositionFix
from waypoint_survey.model.message import (
    EditWaypointInstruction,
    PlacePinInstruction,
    SessionContextMessage,
)
from waypoint_survey.ui import actions
from waypoint_survey.ui.infra import bump_map_version, trigger_rerun

logger = logging.getLogger(__name__)


class SidebarRenderer:
    """Renders the sidebar and dispatches its buttons to actions."""

    def __init__(self) -> None:
        self.controller = actions.get_controller()
        self.ctx = self.controller.context

    def render(self) -> None:
        with st.sidebar:
            SessionContextMessage(
                waypoint_count=len(self.controller.collection),
                saved_count=len(self.controller.identity),
                survey_active=self.ctx.survey.active,
            ).display()
            self._render_session()
            self._render_search()
            self._render_survey()
            self._render_saved()
            self._render_import()
            self._render_export()

    def _render_session(self) -> None:
        expanded = self.ctx.prompts.login_required
        with st.expander("🔑 Session", expanded=expanded):
            if expanded:
                st.warning("Your session expired or you are not logged in.")
            token = st.text_input("Session token", value=st.session_state.get("auth_token", ""), type="password")
            if st.button("Use token", use_container_width=True):
                st.session_state.auth_token = token.strip()
                self.ctx.prompts.clear()
                trigger_rerun()

    def _render_search(self) -> None:
        with st.form("place_search"):
            query = st.text_input("Search location", placeholder="Town, address or landmark")
            submitted = st.form_submit_button("🔍 Search", use_container_width=True)
        if submitted and actions.search_location(query=query):
            bump_map_version()
            trigger_rerun()

    def _render_survey(self) -> None:
        st.subheader("Survey")
        if self.ctx.survey.active:
            if st.button("🏁 End Survey", use_container_width=True):
                actions.end_survey()
                trigger_rerun()
        elif st.button("🛰️ Start Survey", type="primary", use_container_width=True):
            actions.start_survey()
            trigger_rerun()

        with st.form("position_fix"):
            st.caption("Current position (leave empty if GPS is unavailable)")
            lat = st.text_input("Latitude")
            lon = st.text_input("Longitude")
            accuracy = st.text_input("Accuracy (m)")
            locate = st.form_submit_button("📍 Locate me")
        if locate:
            fix = _parse_fix(lat=lat, lon=lon, accuracy=accuracy)
            if self.ctx.survey.active and fix is not None and self.ctx.survey.tracked_local_id is not None:
                actions.report_position(fix=fix)
            else:
                actions.locate_me(fix=fix)
            bump_map_version()
            trigger_rerun()

    def _render_saved(self) -> None:
        st.subheader("Saved waypoints")
        if st.button("🔄 Load saved", use_container_width=True):
            actions.load_saved_waypoints()
        for row in self.controller.saved:
            if st.button(f"📌 {row.name}", key=f"saved_{row.id}", use_container_width=True):
                if actions.open_saved_waypoint(server_id=row.id) is not None:
                    bump_map_version()
                    trigger_rerun()
        if st.button("🏠 Set default location", use_container_width=True):
            if actions.set_default_location():
                bump_map_version()
                trigger_rerun()

    def _render_import(self) -> None:
        st.subheader("Import")
        counter = st.session_state.get("_upload_counter", 0)
        uploaded = st.file_uploader(
            "KML or GeoJSON",
            type=[ext.lstrip(".") for ext in ImportConfig.ALL_EXTENSIONS],
            key=f"import_{counter}",
        )
        if uploaded is not None:
            st.session_state._upload_counter = counter + 1
            if actions.import_uploaded_file(filename=uploaded.name, data=uploaded.getvalue()):
                bump_map_version()
            trigger_rerun()

    def _render_export(self) -> None:
        st.subheader("Export")
        fmt = st.selectbox("Format", options=list(ExportConfig.FORMATS), format_func=str.upper)
        source = st.radio("Waypoints", options=["On map", "All saved"], horizontal=True)
        if st.button("📤 Prepare export", use_container_width=True):
            if source == "On map":
                export = actions.export_waypoints(fmt=fmt)
            else:
                export = actions.export_saved_waypoints(fmt=fmt)
            st.session_state.pending_export = export
        export = st.session_state.get("pending_export")
        if export is not None:
            st.download_button(
                f"⬇️ {export.filename}",
                data=export.content,
                file_name=export.filename,
                mime=export.mime_type,
                use_container_width=True,
            )


def _parse_fix(lat: str, lon: str, accuracy: str) -> PositionFix | None:
    """Form values to a fix; None when no usable coordinates were entered."""
    try:
        lat_f, lon_f = float(lat), float(lon)
    except ValueError:
        return None
    try:
        accuracy_m = float(accuracy) if accuracy.strip() else None
    except ValueError:
        accuracy_m = None
    return PositionFix(lat=lat_f, lon=lon_f, accuracy_m=accuracy_m)


def render_detail_panel() -> None:
    """Edit form for the selected waypoint, or the instruction to pick one."""
    controller = actions.get_controller()
    record = controller.sm.selected_record()
    if record is None:
        PlacePinInstruction().display()
        return

    EditWaypointInstruction(name=record.display_name).display()
    buffer = controller.context.buffer
    st.caption(f"{record.lat:.6f}, {record.lon:.6f}" + (f" · id {record.server_id}" if record.is_persisted else ""))

    name = st.text_input(
        "Name",
        value=buffer.display_name,
        key=f"name_{record.local_id}",
        disabled=record.is_default_location,
    )
    notes = st.text_area("Notes", value=buffer.notes, key=f"notes_{record.local_id}")
    controller.edit_buffer(display_name=name, notes=notes)

    if buffer.image_ref:
        st.image(buffer.image_ref, use_container_width=True)
    image = st.file_uploader("Image", type=["png", "jpg", "jpeg", "gif", "webp"], key=f"image_{record.local_id}")
    if image is not None and st.button("⬆️ Upload image"):
        actions.upload_waypoint_image(data=image.getvalue(), content_type=image.type, filename=image.name)
    st.caption(f"Images up to {ImageConfig.MAX_BYTES // (1024 * 1024)} MB")

    col_save, col_delete, col_close = st.columns(3)
    with col_save:
        if st.button("💾 Save", type="primary", use_container_width=True):
            actions.save_selected_waypoint()
    with col_delete:
        if st.button("🗑️ Delete", use_container_width=True, disabled=record.is_default_location):
            if actions.delete_selected_waypoint():
                bump_map_version()
                trigger_rerun()
    with col_close:
        if st.button("✖️ Close", use_container_width=True):
            controller.deselect()
            bump_map_version()
            trigger_rerun()


def render_route_panel() -> None:
    """Pick two waypoints and request a driving route."""
    controller = actions.get_controller()
    records = controller.collection.records
    if len(records) < 2:
        return

    labels = {record.local_id: record.display_name for record in records}
    with st.expander("🧭 Navigate", expanded=controller.context.route.is_visible):
        start_id = st.selectbox("From", options=list(labels), format_func=labels.get, key="route_from")
        end_id = st.selectbox("To", options=list(labels), index=1, format_func=labels.get, key="route_to")
        if st.button("Get directions", use_container_width=True):
            if actions.navigate_between(start_id=start_id, end_id=end_id):
                bump_map_version()
                trigger_rerun()
        if controller.context.route.is_visible:
            st.info(controller.context.route.route.summary)
            if st.button("Clear route", use_container_width=True):
                controller.clear_route()
                bump_map_version()
                trigger_rerun()
