"""Validators - Input validation for the waypoint survey UI.

Validators return Optional[ToastMessage]:
- None if valid
- A ToastMessage if invalid (caller displays it)

Expected UI validation failures never raise; the caller controls when and
how the message is shown.
"""

from waypoint_survey.core.image_host import validate_image
from waypoint_survey.errors import ValidationRejected
from waypoint_survey.model.message import (
    NoSelectionMessage,
    NothingToExportMessage,
    SameWaypointRouteMessage,
    SurveyInactiveMessage,
    ToastMessage,
    error_message_for,
)


def validate_survey_active(survey_active: bool) -> ToastMessage | None:
    """Map clicks only drop pins while a survey is running.

    Returns:
        None if valid, SurveyInactiveMessage otherwise.
    """
    if not survey_active:
        return SurveyInactiveMessage()
    return None


def validate_selection(selected_id: str | None, action: str) -> ToastMessage | None:
    """Save, delete and image upload need a selected waypoint."""
    if selected_id is None:
        return NoSelectionMessage(action=action)
    return None


def validate_route_endpoints(start_id: str | None, end_id: str | None) -> ToastMessage | None:
    """Route endpoints must be two different waypoints.

    Returns:
        None if valid, SameWaypointRouteMessage if either is missing or both are equal.
    """
    if start_id is None or end_id is None or start_id == end_id:
        return SameWaypointRouteMessage()
    return None


def validate_image_file(content_type: str | None, size_bytes: int) -> ToastMessage | None:
    """Type and size check before any upload request.

    Returns:
        None if valid, an error toast naming the problem otherwise.
    """
    try:
        validate_image(content_type=content_type, size_bytes=size_bytes)
    except ValidationRejected as e:
        return error_message_for(e)
    return None


def validate_has_waypoints(count: int) -> ToastMessage | None:
    """Exports need at least one waypoint."""
    if count == 0:
        return NothingToExportMessage()
    return None
