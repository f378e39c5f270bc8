"""User interface components for the waypoint survey.

Core Components:
- state_machine.py: SelectionStateMachine (2 states) + SurveyContext
- marker_surface.py: Event-driven pydeck projection of the collection
- actions.py: Every user action, with the toast error boundary
- click_handlers.py: Map and marker click processing
- validators.py: Input validation with Optional[ToastMessage] returns
- panels.py: Sidebar, detail and route panels
- pydeck_click_handler.py: Click capture through streamlit-deckgl

Only the Streamlit-free pieces are re-exported here; the controller imports
them, and the Streamlit modules import the controller.
"""

from waypoint_survey.ui.marker_surface import MarkerSurface
from waypoint_survey.ui.state_machine import (
    EditBuffer,
    SelectionStateMachine,
    SurveyContext,
    TransitionLogListener,
)

__all__ = [
    "SelectionStateMachine",
    "SurveyContext",
    "EditBuffer",
    "TransitionLogListener",
    "MarkerSurface",
]
