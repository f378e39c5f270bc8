"""Selection state machine for the waypoint survey UI.

Uses python-statemachine with the model pattern: SurveyContext is the model
and holds every piece of transient UI state (edit buffer, map view, survey
tracking, route overlay, login prompt).

States (2 states):
    UNSELECTED: No waypoint is active (initial)
    SELECTED: One waypoint is active and its edit buffer is loaded

Transitions:
    UNSELECTED -> SELECTED: select (click a pin, open a saved record, import)
    SELECTED -> SELECTED: select (switch; previous buffer is discarded unsaved)
    SELECTED -> UNSELECTED: deselect (close, delete, or record removed)
    UNSELECTED -> UNSELECTED: deselect (no-op, buffer stays empty)

The machine subscribes to collection events: when the selected record is
removed it deselects itself, so the buffer never outlives its record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from waypoint_survey.constants import MapConfig
from waypoint_survey.model.collection import EventKind, WaypointEvent

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from waypoint_survey.core.routing import Route
    from waypoint_survey.model.collection import WaypointCollection
    from waypoint_survey.model.waypoint import Waypoint


# Pydeck view state uses (lat, lon) for center like the rest of the UI
LatLon = tuple[float, float]

# Fields the edit form exposes
BUFFER_FIELDS = ("display_name", "notes", "image_ref")


@dataclass
class EditBuffer:
    """Unsaved edits for the selected waypoint.

    Loaded from the record on select. changes() reports only fields the user
    touched that still differ from the stored record, so renumbering or a
    completed save never turns an untouched field into a pending change.
    """

    display_name: str = ""
    notes: str = ""
    image_ref: str | None = None
    _loaded: dict[str, Any] = field(default_factory=dict, repr=False)

    def load(self, record: Waypoint) -> None:
        self.display_name = record.display_name
        self.notes = record.notes
        self.image_ref = record.image_ref
        self._loaded = {name: getattr(self, name) for name in BUFFER_FIELDS}

    def clear(self) -> None:
        self.display_name = ""
        self.notes = ""
        self.image_ref = None
        self._loaded = {}

    def changes(self, record: Waypoint) -> dict[str, Any]:
        """Fields to hand to WaypointCollection.save(changes=...)."""
        pending = {}
        for name in BUFFER_FIELDS:
            value = getattr(self, name)
            if value != self._loaded.get(name) and value != getattr(record, name):
                pending[name] = value
        return pending

    def is_dirty(self, record: Waypoint) -> bool:
        return bool(self.changes(record=record))


@dataclass
class SelectionContext:
    """Which waypoint is active."""

    local_id: str | None = None

    def clear(self) -> None:
        self.local_id = None


@dataclass
class MapContext:
    """Map view state."""

    center: LatLon = (MapConfig.START_CENTER_LAT, MapConfig.START_CENTER_LON)
    zoom: int = MapConfig.DEFAULT_ZOOM

    def fly_to(self, lat: float, lon: float, zoom: int | None = None) -> None:
        self.center = (lat, lon)
        if zoom is not None:
            self.zoom = zoom


@dataclass
class SurveyTrackingContext:
    """Live-location survey state."""

    active: bool = False
    tracked_local_id: str | None = None
    last_accuracy_m: float | None = None

    def clear(self) -> None:
        self.active = False
        self.tracked_local_id = None
        self.last_accuracy_m = None


@dataclass
class RouteContext:
    """Route overlay between two waypoints."""

    route: Route | None = None
    start_local_id: str | None = None
    end_local_id: str | None = None

    def clear(self) -> None:
        self.route = None
        self.start_local_id = None
        self.end_local_id = None

    @property
    def is_visible(self) -> bool:
        return self.route is not None


@dataclass
class PromptContext:
    """Dialogs the UI must show on the next render."""

    login_required: bool = False

    def clear(self) -> None:
        self.login_required = False


@dataclass
class SurveyContext:
    """Shared context/model for the selection machine.

    Note: The 'state' field is managed by python-statemachine when this
    object is passed as the model.
    """

    state: str | None = None

    selection: SelectionContext = field(default_factory=SelectionContext)
    buffer: EditBuffer = field(default_factory=EditBuffer)
    map: MapContext = field(default_factory=MapContext)
    survey: SurveyTrackingContext = field(default_factory=SurveyTrackingContext)
    route: RouteContext = field(default_factory=RouteContext)
    prompts: PromptContext = field(default_factory=PromptContext)

    def clear_selection(self) -> None:
        self.selection.clear()
        self.buffer.clear()

    def __repr__(self) -> str:
        return (
            f"SurveyContext(state={self.state}, "
            f"selected={self.selection.local_id}, "
            f"survey_active={self.survey.active}, "
            f"route={self.route.is_visible})"
        )


class TransitionLogListener:
    """Logs every selection transition.

    Reruns are left to the click handlers so that toasts raised in the same
    action are shown before the page refreshes.
    """

    def after_transition(self, event: str, source: State, target: State) -> None:
        logger.info(f"[STATE] {source.name} --({event})--> {target.name}")


class SelectionStateMachine(StateMachine):
    """Tracks the single active waypoint.

    States:
        unselected: No active waypoint
        selected: context.selection.local_id is set and the buffer is loaded
    """

    unselected = State("Unselected", initial=True)
    selected = State("Selected")

    select = unselected.to(selected) | selected.to(selected)
    deselect = selected.to(unselected) | unselected.to(unselected)

    def __init__(
        self,
        collection: WaypointCollection,
        context: SurveyContext | None = None,
        start_value: str | None = None,
    ) -> None:
        """Initialize with model pattern and subscribe to collection events.

        Args:
            collection: Source of the records being selected
            context: Shared context/model (creates new if None)
            start_value: Optional initial state value (for restoring state)
        """
        self.collection = collection
        model = context or SurveyContext()
        super().__init__(model=model, start_value=start_value)
        collection.subscribe(self.handle_collection_event)

    @property
    def context(self) -> SurveyContext:
        """Alias for model."""
        return self.model

    # ==========================================================================
    # State Check Properties
    # ==========================================================================

    @property
    def is_selected(self) -> bool:
        return self.selected.is_active

    @property
    def selected_id(self) -> str | None:
        return self.context.selection.local_id

    def selected_record(self) -> Waypoint | None:
        local_id = self.context.selection.local_id
        if local_id is None or local_id not in self.collection:
            return None
        return self.collection.get(local_id=local_id)

    # ==========================================================================
    # Transition Actions
    # ==========================================================================

    def before_select(self, local_id: str) -> None:
        record = self.collection.get(local_id=local_id)
        previous = self.context.selection.local_id
        if previous is not None and previous != local_id:
            logger.info(f"[STATE] Discarding unsaved edits for {previous}")
        self.context.selection.local_id = local_id
        self.context.buffer.load(record=record)

    def on_enter_unselected(self) -> None:
        self.context.clear_selection()

    # ==========================================================================
    # Entry Points
    # ==========================================================================

    def select_waypoint(self, local_id: str) -> None:
        """Select local_id, loading its edit buffer.

        Raises:
            NotFound: local_id is not in the collection (state unchanged)
        """
        self.collection.get(local_id=local_id)
        self.send("select", local_id=local_id)

    def clear(self) -> None:
        """Deselect, discarding the edit buffer."""
        self.send("deselect")

    def pending_changes(self) -> dict[str, Any]:
        """Buffer changes for the selected record (empty if none selected)."""
        record = self.selected_record()
        if record is None:
            return {}
        return self.context.buffer.changes(record=record)

    def handle_collection_event(self, event: WaypointEvent) -> None:
        """Force deselect when the selected record disappears."""
        if event.kind is EventKind.REMOVED and event.local_id == self.context.selection.local_id:
            logger.info(f"[STATE] Selected waypoint {event.local_id} was removed")
            self.send("deselect")

    # ==========================================================================
    # Utility Methods
    # ==========================================================================

    def get_state_name(self) -> str:
        return self.current_state.name

    def try_transition(self, event: str, **kwargs: Any) -> bool:
        """Attempt a transition, returning success/failure."""
        try:
            self.send(event, **kwargs)
            return True
        except TransitionNotAllowed:
            logger.warning(f"Transition '{event}' not allowed from {self.get_state_name()}")
            return False

    def __repr__(self) -> str:
        return f"SelectionStateMachine(state={self.get_state_name()}, model={self.context!r})"

    @staticmethod
    def create(
        collection: WaypointCollection,
        add_log_listener: bool = True,
    ) -> tuple[SelectionStateMachine, SurveyContext]:
        """Factory: machine plus its context, optionally with the transition logger."""
        context = SurveyContext()
        sm = SelectionStateMachine(collection=collection, context=context)
        if add_log_listener:
            sm.add_listener(TransitionLogListener())
        return sm, context
