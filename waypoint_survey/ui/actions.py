"""UI Actions - every user action of the survey UI.

Each action fetches the controller from session state, runs the controller
method (async ones through infra.run_async) and shows exactly one toast for
the outcome. This is the UI error boundary:

- WaypointSurveyError is caught here and shown via error_message_for()
- Unauthenticated additionally raises the login prompt
- Anything else (programming errors, IdentityConflictError) propagates
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

import streamlit as st

from waypoint_survey.core.location_watch import PositionFix
from waypoint_survey.errors import Unauthenticated, WaypointSurveyError
from waypoint_survey.model.message import (
    DefaultLocationFallbackMessage,
    ExportedMessage,
    ImageUploadedMessage,
    ImportedMessage,
    LocationFoundMessage,
    NoSavedWaypointsMessage,
    RouteFoundMessage,
    SavedWaypointsLoadedMessage,
    SurveyEndedMessage,
    SurveyStartedMessage,
    WaypointDeletedMessage,
    WaypointSavedMessage,
    error_message_for,
)
from waypoint_survey.ui.infra import run_async
from waypoint_survey.ui.validators import (
    validate_has_waypoints,
    validate_image_file,
    validate_route_endpoints,
    validate_selection,
)

if TYPE_CHECKING:
    from waypoint_survey.controller import ExportFile, SurveyController

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_controller() -> "SurveyController":
    return st.session_state.controller


# =============================================================================
# ERROR BOUNDARY
# =============================================================================


def guarded(action: Callable[[], T], label: str) -> T | None:
    """Run action; on an application error show one toast and return None."""
    try:
        return action()
    except Unauthenticated as e:
        logger.warning(f"[ACTION] {label}: {e.message}")
        get_controller().context.prompts.login_required = True
        error_message_for(e).display()
    except WaypointSurveyError as e:
        logger.warning(f"[ACTION] {label} failed: {e.message} {e.context}")
        error_message_for(e).display()
    return None


def guarded_async(make_call: Callable[[], Awaitable[T]], label: str) -> T | None:
    controller = get_controller()
    return guarded(action=lambda: run_async(controller=controller, make_call=make_call), label=label)


def show_notices() -> None:
    """Display toasts queued by live-location callbacks."""
    for notice in get_controller().drain_notices():
        notice.display()


# =============================================================================
# SELECTION AND EDITING
# =============================================================================


def save_selected_waypoint() -> bool:
    controller = get_controller()
    invalid = validate_selection(selected_id=controller.sm.selected_id, action="save")
    if invalid:
        invalid.display()
        return False

    outcome = guarded_async(make_call=controller.save_selected, label="save")
    if outcome is None:
        return False
    WaypointSavedMessage(name=outcome.name, created=outcome.created).display()
    return True


def delete_selected_waypoint() -> bool:
    controller = get_controller()
    invalid = validate_selection(selected_id=controller.sm.selected_id, action="delete")
    if invalid:
        invalid.display()
        return False

    removed = guarded_async(make_call=controller.delete_selected, label="delete")
    if removed is None:
        return False
    WaypointDeletedMessage(name=removed.display_name, persisted=removed.server_id is not None).display()
    return True


def upload_waypoint_image(data: bytes, content_type: str | None, filename: str) -> str | None:
    controller = get_controller()
    invalid = validate_selection(selected_id=controller.sm.selected_id, action="attach an image") or (
        validate_image_file(content_type=content_type, size_bytes=len(data))
    )
    if invalid:
        invalid.display()
        return None

    url = guarded_async(
        make_call=lambda: controller.upload_image(data=data, content_type=content_type, filename=filename),
        label="upload",
    )
    if url is not None:
        ImageUploadedMessage().display()
    return url


# =============================================================================
# SURVEY AND LOCATION
# =============================================================================


def start_survey() -> None:
    get_controller().start_survey()
    SurveyStartedMessage().display()


def end_survey() -> None:
    controller = get_controller()
    run_async(controller=controller, make_call=controller.end_survey)
    SurveyEndedMessage().display()


def locate_me(fix: PositionFix | None) -> str | None:
    local_id = guarded(action=lambda: get_controller().locate_me(fix=fix), label="locate")
    if local_id is not None and fix is None:
        DefaultLocationFallbackMessage().display()
    show_notices()
    return local_id


def report_position(fix: PositionFix) -> bool:
    applied = bool(guarded(action=lambda: get_controller().report_fix(fix=fix), label="position"))
    show_notices()
    return applied


# =============================================================================
# SAVED WAYPOINTS
# =============================================================================


def load_default_location() -> str | None:
    controller = get_controller()
    return guarded_async(make_call=controller.load_default, label="default location")


def load_saved_waypoints() -> int | None:
    controller = get_controller()
    saved = guarded_async(make_call=controller.load_saved, label="load saved")
    if saved is None:
        return None
    if not saved:
        NoSavedWaypointsMessage().display()
    else:
        SavedWaypointsLoadedMessage(count=len(saved)).display()
    return len(saved)


def open_saved_waypoint(server_id: int | str) -> str | None:
    controller = get_controller()
    return guarded_async(make_call=lambda: controller.open_saved(server_id=server_id), label="open saved")


def set_default_location() -> bool:
    controller = get_controller()
    outcome = guarded_async(make_call=controller.set_default_location, label="set default")
    if outcome is None:
        return False
    WaypointSavedMessage(name=outcome.name, created=outcome.created).display()
    return True


# =============================================================================
# IMPORT / EXPORT
# =============================================================================


def import_uploaded_file(filename: str, data: bytes) -> list[str] | None:
    local_ids = guarded(action=lambda: get_controller().import_upload(filename=filename, data=data), label="import")
    if local_ids is not None:
        ImportedMessage(count=len(local_ids), filename=filename).display()
    return local_ids


def export_waypoints(fmt: str) -> "ExportFile | None":
    controller = get_controller()
    invalid = validate_has_waypoints(count=len(controller.collection))
    if invalid:
        invalid.display()
        return None

    export = guarded(action=lambda: controller.export(fmt=fmt), label="export")
    if export is not None:
        ExportedMessage(count=export.count, filename=export.filename).display()
    return export


def export_saved_waypoints(fmt: str) -> "ExportFile | None":
    controller = get_controller()
    export = guarded_async(make_call=lambda: controller.export_saved(fmt=fmt), label="export saved")
    if export is not None:
        ExportedMessage(count=export.count, filename=export.filename).display()
    return export


# =============================================================================
# ROUTING
# =============================================================================


def navigate_between(start_id: str | None, end_id: str | None) -> bool:
    invalid = validate_route_endpoints(start_id=start_id, end_id=end_id)
    if invalid:
        invalid.display()
        return False

    controller = get_controller()
    route = guarded_async(make_call=lambda: controller.navigate(start_id=start_id, end_id=end_id), label="navigate")
    if route is None:
        return False
    RouteFoundMessage(summary=route.summary).display()
    return True


# =============================================================================
# PLACE SEARCH
# =============================================================================


def search_location(query: str) -> bool:
    controller = get_controller()
    place = guarded_async(make_call=lambda: controller.search_location(query=query), label="search")
    if place is None:
        return False
    LocationFoundMessage(display_name=place.display_name).display()
    return True
