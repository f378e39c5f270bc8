"""Selection state machine tests.

Tests the 2-state machine (Unselected/Selected) against the transition
table, plus the edit buffer it loads and the auto-deselect it performs when
the selected record is removed.

Transition table:
    | from       | event    | to         |
    |------------|----------|------------|
    | Unselected | select   | Selected   |
    | Selected   | select   | Selected   |
    | Selected   | deselect | Unselected |
    | Unselected | deselect | Unselected |
"""

import pytest

from conftest import point
from waypoint_survey.errors import NotFound
from waypoint_survey.model.collection import WaypointCollection
from waypoint_survey.ui.state_machine import (
    EditBuffer,
    SelectionStateMachine,
    SurveyContext,
    TransitionLogListener,
)


class TestTransitionTable:
    """Every (state, event) pair lands where the table says."""

    @pytest.mark.parametrize(
        "start_selected,event,expected",
        [
            (False, "select", "Selected"),
            (True, "select", "Selected"),
            (True, "deselect", "Unselected"),
            (False, "deselect", "Unselected"),
        ],
    )
    def test_transition(
        self,
        collection: WaypointCollection,
        state_machine: SelectionStateMachine,
        start_selected: bool,
        event: str,
        expected: str,
    ) -> None:
        """Transition reaches the expected state."""
        first = collection.add(*point(0))
        second = collection.add(*point(1))
        if start_selected:
            state_machine.select_waypoint(local_id=first)

        if event == "select":
            state_machine.select_waypoint(local_id=second)
        else:
            state_machine.clear()

        assert state_machine.get_state_name() == expected
        assert state_machine.is_selected == (expected == "Selected")
        assert state_machine.selected_id == (second if expected == "Selected" else None)

    def test_initial_state_is_unselected(self, state_machine: SelectionStateMachine) -> None:
        """A new machine has nothing selected."""
        assert state_machine.get_state_name() == "Unselected"
        assert state_machine.selected_record() is None
        assert state_machine.pending_changes() == {}

    def test_try_transition_reports_success(
        self, collection: WaypointCollection, state_machine: SelectionStateMachine
    ) -> None:
        """try_transition sends the event and returns True."""
        local_id = collection.add(*point(0))
        assert state_machine.try_transition("select", local_id=local_id)
        assert state_machine.selected_id == local_id

    def test_factory_shares_context(self, collection: WaypointCollection) -> None:
        """create() returns the machine and the model it drives."""
        sm, ctx = SelectionStateMachine.create(collection=collection)
        assert isinstance(ctx, SurveyContext)
        assert sm.context is ctx
        assert ctx.state == sm.current_state.id

    def test_log_listener_does_not_interfere(self, collection: WaypointCollection) -> None:
        """Transitions work with the logging listener attached."""
        sm, ctx = SelectionStateMachine.create(collection=collection, add_log_listener=True)
        local_id = collection.add(*point(0))
        sm.select_waypoint(local_id=local_id)
        assert ctx.selection.local_id == local_id
        assert isinstance(TransitionLogListener(), TransitionLogListener)


class TestSelection:
    """Selecting loads the buffer; errors leave state unchanged."""

    def test_select_loads_buffer(self, collection: WaypointCollection, state_machine: SelectionStateMachine) -> None:
        """The edit buffer mirrors the selected record."""
        local_id = collection.add(*point(0), name="Well A", notes="deep")
        state_machine.select_waypoint(local_id=local_id)
        buffer = state_machine.context.buffer
        assert buffer.display_name == "Well A"
        assert buffer.notes == "deep"
        assert buffer.image_ref is None

    def test_switching_discards_unsaved_edits(
        self, collection: WaypointCollection, state_machine: SelectionStateMachine
    ) -> None:
        """Selecting another record reloads the buffer from that record."""
        first = collection.add(*point(0))
        second = collection.add(*point(1), notes="second")
        state_machine.select_waypoint(local_id=first)
        state_machine.context.buffer.notes = "typed but not saved"

        state_machine.select_waypoint(local_id=second)
        assert state_machine.context.buffer.notes == "second"
        assert collection.get(local_id=first).notes == ""

    def test_select_unknown_raises_and_keeps_state(
        self, collection: WaypointCollection, state_machine: SelectionStateMachine
    ) -> None:
        """NotFound leaves the current selection and buffer untouched."""
        local_id = collection.add(*point(0), notes="kept")
        state_machine.select_waypoint(local_id=local_id)

        with pytest.raises(NotFound):
            state_machine.select_waypoint(local_id="WP404")
        assert state_machine.selected_id == local_id
        assert state_machine.context.buffer.notes == "kept"

    def test_select_unknown_from_unselected(self, state_machine: SelectionStateMachine) -> None:
        """NotFound from Unselected stays Unselected."""
        with pytest.raises(NotFound):
            state_machine.select_waypoint(local_id="WP404")
        assert state_machine.get_state_name() == "Unselected"

    def test_deselect_clears_buffer(self, collection: WaypointCollection, state_machine: SelectionStateMachine) -> None:
        """Leaving Selected empties the buffer."""
        local_id = collection.add(*point(0), notes="x")
        state_machine.select_waypoint(local_id=local_id)
        state_machine.clear()
        assert state_machine.context.buffer.notes == ""
        assert state_machine.context.selection.local_id is None


class TestCollectionEvents:
    """The machine reacts to records disappearing."""

    def test_removing_selected_record_deselects(
        self, collection: WaypointCollection, state_machine: SelectionStateMachine
    ) -> None:
        """The buffer never outlives its record."""
        local_id = collection.add(*point(0))
        state_machine.select_waypoint(local_id=local_id)
        collection.remove(local_id=local_id)
        assert state_machine.get_state_name() == "Unselected"
        assert state_machine.context.buffer.display_name == ""

    def test_removing_other_record_keeps_selection(
        self, collection: WaypointCollection, state_machine: SelectionStateMachine
    ) -> None:
        """Only removal of the selected id forces a deselect."""
        first = collection.add(*point(0))
        second = collection.add(*point(1))
        state_machine.select_waypoint(local_id=second)
        collection.remove(local_id=first)
        assert state_machine.selected_id == second


class TestEditBuffer:
    """Pending changes reported by the buffer."""

    def test_untouched_buffer_has_no_changes(
        self, collection: WaypointCollection, state_machine: SelectionStateMachine
    ) -> None:
        """Nothing typed, nothing pending."""
        local_id = collection.add(*point(0))
        state_machine.select_waypoint(local_id=local_id)
        assert state_machine.pending_changes() == {}

    def test_typed_fields_are_pending(
        self, collection: WaypointCollection, state_machine: SelectionStateMachine
    ) -> None:
        """Only the edited fields are reported."""
        local_id = collection.add(*point(0))
        state_machine.select_waypoint(local_id=local_id)
        state_machine.context.buffer.notes = "Sandy"
        assert state_machine.pending_changes() == {"notes": "Sandy"}

    def test_relabel_does_not_create_pending_name(
        self, collection: WaypointCollection, state_machine: SelectionStateMachine
    ) -> None:
        """A renumbered label is not mistaken for a rename."""
        first = collection.add(*point(0))
        second = collection.add(*point(1))
        state_machine.select_waypoint(local_id=second)
        collection.remove(local_id=first)

        assert collection.get(local_id=second).display_name == "Point 1"
        assert state_machine.context.buffer.display_name == "Point 2"
        assert state_machine.pending_changes() == {}

    def test_clear_resets_everything(self) -> None:
        """clear() forgets values and the loaded snapshot."""
        buffer = EditBuffer(display_name="A", notes="B", image_ref="http://img")
        buffer.clear()
        assert (buffer.display_name, buffer.notes, buffer.image_ref) == ("", "", None)
