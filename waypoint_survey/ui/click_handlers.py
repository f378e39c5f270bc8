"""Click handlers for the survey map.

Dispatches a MapClickResult by current selection state. Both states react
the same way to a marker click (select it); a map click drops a pin only
while a survey is running.
"""

import logging

from waypoint_survey.ui.actions import get_controller, guarded
from waypoint_survey.ui.infra import bump_map_version, trigger_rerun
from waypoint_survey.ui.pydeck_click_handler import MapClickResult
from waypoint_survey.ui.validators import validate_survey_active

logger = logging.getLogger(__name__)


def handle_marker_click(local_id: str) -> None:
    controller = get_controller()
    guarded(action=lambda: controller.select(local_id=local_id), label="select")


def handle_map_click(lat: float, lon: float) -> None:
    controller = get_controller()
    invalid = validate_survey_active(survey_active=controller.context.survey.active)
    if invalid:
        invalid.display()
        return
    guarded(action=lambda: controller.place_pin(lat=lat, lon=lon), label="place pin")


def dispatch_click(result: MapClickResult) -> None:
    """Handle one click, then rerun with a fresh map component.

    Raises:
        RuntimeError: For an empty click result (caller must filter those)
    """
    if result.is_empty:
        raise RuntimeError("dispatch_click called without a click")

    state_name = get_controller().sm.get_state_name()
    logger.info(f"[CLICK] marker={result.marker_id} coordinate={result.coordinate} in state {state_name}")

    if result.is_marker_click:
        handle_marker_click(local_id=result.marker_id)
    else:
        lat, lon = result.coordinate
        handle_map_click(lat=lat, lon=lon)

    bump_map_version()
    trigger_rerun()
