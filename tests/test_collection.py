"""Unit tests for WaypointCollection: labels, protection, events, import and adopt.

Remote reconciliation (save/delete) lives in test_save_reconciliation.py.
"""

import pytest

from conftest import point
from waypoint_survey.core.remote_store import RemoteWaypoint
from waypoint_survey.errors import NotFound, Protected, ValidationRejected
from waypoint_survey.model.collection import EventKind, WaypointCollection, WaypointEvent
from waypoint_survey.model.waypoint import WaypointDraft


def names(collection: WaypointCollection) -> list[str]:
    return [record.display_name for record in collection]


def remote(server_id: int, name: str, n: int = 0, notes: str = "") -> RemoteWaypoint:
    lat, lon = point(n)
    return RemoteWaypoint(id=server_id, name=name, latitude=lat, longitude=lon, notes=notes)


class TestPositionalLabels:
    """Positional labels follow display order; custom names stay put."""

    def test_pins_are_numbered_in_order(self, collection: WaypointCollection) -> None:
        """Three unnamed pins become Point 1..3."""
        for n in range(3):
            collection.add(*point(n))
        assert names(collection) == ["Point 1", "Point 2", "Point 3"]

    def test_local_ids_are_unique_and_never_reused(self, collection: WaypointCollection) -> None:
        """Removing a record does not free its local id."""
        first = collection.add(*point(0))
        collection.remove(local_id=first)
        second = collection.add(*point(1))
        assert first != second

    def test_removal_renumbers_remaining(self, collection: WaypointCollection) -> None:
        """Deleting Point 2 of 3 turns Point 3 into Point 2."""
        ids = [collection.add(*point(n)) for n in range(3)]
        collection.remove(local_id=ids[1])
        assert names(collection) == ["Point 1", "Point 2"]
        assert collection.get(local_id=ids[2]).display_name == "Point 2"

    def test_custom_name_survives_renumbering(self, collection: WaypointCollection) -> None:
        """A custom name keeps its text while positional neighbours shift."""
        first = collection.add(*point(0))
        collection.add(*point(1), name="Well A")
        collection.add(*point(2))
        collection.remove(local_id=first)
        assert names(collection) == ["Well A", "Point 2"]

    def test_default_ish_name_is_positional(self, collection: WaypointCollection) -> None:
        """A "Point 9" name on the first pin is shown as Point 1."""
        local_id = collection.add(*point(0), name="Point 9")
        record = collection.get(local_id=local_id)
        assert record.display_name == "Point 1"
        assert record.custom_name is False

    def test_custom_override_keeps_default_ish_name(self, collection: WaypointCollection) -> None:
        """custom=True keeps a pattern-like name as typed."""
        local_id = collection.add(*point(0), name="Point 9", custom=True)
        record = collection.get(local_id=local_id)
        assert record.display_name == "Point 9"
        assert record.custom_name is True

    def test_clearing_name_restores_positional_label(self, collection: WaypointCollection) -> None:
        """Renaming to empty turns a custom record back into Point N."""
        collection.add(*point(0))
        local_id = collection.add(*point(1), name="Well A")
        changed = collection.update(local_id, display_name="")
        record = collection.get(local_id=local_id)
        assert changed == {"display_name"}
        assert record.display_name == "Point 2"
        assert record.custom_name is False

    def test_renaming_to_custom(self, collection: WaypointCollection) -> None:
        """A positional record becomes custom when given a real name."""
        local_id = collection.add(*point(0))
        collection.update(local_id, display_name="  Spring  ")
        record = collection.get(local_id=local_id)
        assert record.display_name == "Spring"
        assert record.custom_name is True


class TestDefaultLocation:
    """The sentinel "Default Location" record."""

    def test_sentinel_name_is_canonicalized(self, collection: WaypointCollection) -> None:
        """Any casing of the sentinel name is stored canonically."""
        local_id = collection.add(*point(0), name="default location")
        assert collection.get(local_id=local_id).display_name == "Default Location"
        assert collection.sentinel_id() == local_id

    def test_sentinel_cannot_be_removed(self, collection: WaypointCollection) -> None:
        """remove() raises Protected and keeps the record."""
        local_id = collection.add(*point(0), name="Default Location")
        with pytest.raises(Protected) as exc_info:
            collection.remove(local_id=local_id)
        assert exc_info.value.action == "delete"
        assert local_id in collection

    def test_sentinel_cannot_be_renamed(self, collection: WaypointCollection) -> None:
        """Renaming raises Protected and leaves the name unchanged."""
        local_id = collection.add(*point(0), name="Default Location")
        with pytest.raises(Protected) as exc_info:
            collection.update(local_id, display_name="Home")
        assert exc_info.value.action == "rename"
        assert collection.get(local_id=local_id).display_name == "Default Location"

    def test_sentinel_notes_can_change(self, collection: WaypointCollection) -> None:
        """Only the name is protected."""
        local_id = collection.add(*point(0), name="Default Location")
        collection.update(local_id, notes="Base camp")
        assert collection.get(local_id=local_id).notes == "Base camp"

    def test_only_one_sentinel(self, collection: WaypointCollection) -> None:
        """A second "Default Location" is rejected on add and on rename."""
        collection.add(*point(0), name="Default Location")
        other = collection.add(*point(1))
        with pytest.raises(ValidationRejected):
            collection.add(*point(2), name="Default Location")
        with pytest.raises(ValidationRejected):
            collection.update(other, display_name="DEFAULT LOCATION")
        assert len(collection) == 2


class TestLookupAndValidation:
    """Unknown ids and invalid input."""

    def test_get_unknown_raises_not_found(self, collection: WaypointCollection) -> None:
        """Unknown local ids raise NotFound carrying the id."""
        with pytest.raises(NotFound) as exc_info:
            collection.get(local_id="WP404")
        assert exc_info.value.local_id == "WP404"

    def test_update_and_remove_unknown_raise_not_found(self, collection: WaypointCollection) -> None:
        """Mutations on unknown ids never succeed silently."""
        with pytest.raises(NotFound):
            collection.update("WP404", notes="x")
        with pytest.raises(NotFound):
            collection.remove(local_id="WP404")

    @pytest.mark.parametrize("lat,lon", [(91.0, 0.0), (-90.5, 0.0), (0.0, 180.1), (0.0, -181.0), ("north", 0.0)])
    def test_invalid_coordinates_rejected(self, collection: WaypointCollection, lat, lon) -> None:
        """Out-of-range or non-numeric coordinates are never stored."""
        with pytest.raises(ValidationRejected):
            collection.add(lat=lat, lon=lon)
        assert len(collection) == 0

    def test_boundary_coordinates_accepted(self, collection: WaypointCollection) -> None:
        """The poles and the antimeridian are valid."""
        collection.add(lat=90.0, lon=180.0)
        collection.add(lat=-90.0, lon=-180.0)
        assert len(collection) == 2

    def test_unknown_field_is_programming_error(self, collection: WaypointCollection) -> None:
        """Fields outside the editable set raise ValueError."""
        local_id = collection.add(*point(0))
        with pytest.raises(ValueError):
            collection.update(local_id, server_id=99)

    def test_find_near_uses_tolerance(self, collection: WaypointCollection) -> None:
        """A click within 0.0001 degrees on both axes hits the existing pin."""
        lat, lon = point(0)
        local_id = collection.add(lat, lon)
        assert collection.find_near(lat=lat + 0.00005, lon=lon - 0.00005).local_id == local_id
        assert collection.find_near(lat=lat + 0.0002, lon=lon) is None


class TestChangeEvents:
    """Every mutation emits exactly the events describing it."""

    def test_add_emits_single_added(self, collection: WaypointCollection, events: list[WaypointEvent]) -> None:
        """Appending never relabels existing records."""
        collection.add(*point(0))
        local_id = collection.add(*point(1))
        assert events[-1] == WaypointEvent(kind=EventKind.ADDED, local_id=local_id)
        assert len(events) == 2

    def test_notes_update_does_not_affect_marker(
        self, collection: WaypointCollection, events: list[WaypointEvent]
    ) -> None:
        """A notes change is one UPDATED event naming only notes."""
        local_id = collection.add(*point(0))
        events.clear()
        collection.update(local_id, notes="Sandy soil")
        assert events == [WaypointEvent(kind=EventKind.UPDATED, local_id=local_id, fields=frozenset({"notes"}))]
        assert not events[0].affects_marker

    def test_move_affects_marker(self, collection: WaypointCollection, events: list[WaypointEvent]) -> None:
        """Coordinate changes require a redraw."""
        local_id = collection.add(*point(0))
        events.clear()
        collection.update(local_id, lat=point(5)[0])
        assert events[0].fields == frozenset({"lat"})
        assert events[0].affects_marker

    def test_noop_update_emits_nothing(self, collection: WaypointCollection, events: list[WaypointEvent]) -> None:
        """Writing the current value changes nothing."""
        local_id = collection.add(*point(0), notes="same")
        revision = collection.get(local_id=local_id).revision
        events.clear()
        assert collection.update(local_id, notes="same") == set()
        assert events == []
        assert collection.get(local_id=local_id).revision == revision

    def test_update_bumps_revision(self, collection: WaypointCollection) -> None:
        """Each effective mutation increments the revision."""
        local_id = collection.add(*point(0))
        collection.update(local_id, notes="a")
        collection.update(local_id, notes="b")
        assert collection.get(local_id=local_id).revision == 2

    def test_remove_emits_removed_then_relabels(
        self, collection: WaypointCollection, events: list[WaypointEvent]
    ) -> None:
        """Removing the first of three relabels the other two."""
        ids = [collection.add(*point(n)) for n in range(3)]
        events.clear()
        collection.remove(local_id=ids[0])
        assert events == [
            WaypointEvent(kind=EventKind.REMOVED, local_id=ids[0]),
            WaypointEvent(kind=EventKind.UPDATED, local_id=ids[1], fields=frozenset({"display_name"})),
            WaypointEvent(kind=EventKind.UPDATED, local_id=ids[2], fields=frozenset({"display_name"})),
        ]

    def test_remove_last_emits_only_removed(self, collection: WaypointCollection, events: list[WaypointEvent]) -> None:
        """No label changes when the tail is removed."""
        ids = [collection.add(*point(n)) for n in range(3)]
        events.clear()
        collection.remove(local_id=ids[2])
        assert events == [WaypointEvent(kind=EventKind.REMOVED, local_id=ids[2])]


class TestImportBatch:
    """Bulk import of decoded drafts."""

    def test_imported_names_are_renumbered(self, collection: WaypointCollection) -> None:
        """Drafts named "Imported Point" take labels after the existing pins."""
        collection.add(*point(0))
        drafts = [WaypointDraft(*point(1)), WaypointDraft(*point(2), name="Creek"), WaypointDraft(*point(3))]
        ids = collection.import_batch(drafts=drafts)
        assert [collection.get(local_id=i).display_name for i in ids] == ["Point 2", "Creek", "Point 4"]

    def test_one_added_event_per_record(self, collection: WaypointCollection, events: list[WaypointEvent]) -> None:
        """Import emits ADDED for each new record and nothing else."""
        ids = collection.import_batch(drafts=[WaypointDraft(*point(n)) for n in range(4)])
        assert [e.kind for e in events] == [EventKind.ADDED] * 4
        assert [e.local_id for e in events] == ids

    def test_invalid_draft_adds_nothing(self, collection: WaypointCollection) -> None:
        """Drafts are validated before any is added."""
        drafts = [WaypointDraft(*point(0)), WaypointDraft(lat=95.0, lon=0.0)]
        with pytest.raises(ValidationRejected):
            collection.import_batch(drafts=drafts)
        assert len(collection) == 0

    def test_duplicate_sentinel_is_renamed(self, collection: WaypointCollection) -> None:
        """A second "Default Location" imports under a plain custom name."""
        collection.add(*point(0), name="Default Location")
        ids = collection.import_batch(drafts=[WaypointDraft(*point(1), name="Default Location")])
        record = collection.get(local_id=ids[0])
        assert record.display_name == "Default Location (imported)"
        assert not record.is_default_location
        assert record.custom_name is True

    def test_first_sentinel_in_batch_is_kept(self, collection: WaypointCollection) -> None:
        """Without a local sentinel, the first imported one becomes it."""
        drafts = [WaypointDraft(*point(0), name="Default Location"), WaypointDraft(*point(1), name="default location")]
        ids = collection.import_batch(drafts=drafts)
        assert collection.sentinel_id() == ids[0]
        assert collection.get(local_id=ids[1]).display_name == "Default Location (imported)"


class TestAdopt:
    """Showing persisted records on the map."""

    def test_adopt_adds_with_server_name_and_identity(self, collection: WaypointCollection) -> None:
        """The server's name is kept verbatim and its id recorded."""
        local_id = collection.adopt(remote=remote(server_id=7, name="Point 12"))
        record = collection.get(local_id=local_id)
        assert record.display_name == "Point 12"
        assert record.custom_name is True
        assert record.server_id == 7
        assert collection.identity.lookup(local_id=local_id) == 7

    def test_adopt_twice_refreshes_same_record(self, collection: WaypointCollection) -> None:
        """Opening the same saved record again never duplicates it."""
        first = collection.adopt(remote=remote(server_id=7, name="Well", notes="old"))
        second = collection.adopt(remote=remote(server_id=7, name="Well", notes="new"))
        assert first == second
        assert len(collection) == 1
        assert collection.get(local_id=first).notes == "new"

    def test_adopt_default_maps_onto_unsaved_sentinel(self, collection: WaypointCollection) -> None:
        """The server's Default Location takes over the local unsaved sentinel."""
        sentinel = collection.add(*point(0), name="Default Location")
        local_id = collection.adopt(remote=remote(server_id=3, name="Default Location", n=1))
        assert local_id == sentinel
        assert len(collection) == 1
        assert collection.identity.lookup(local_id=sentinel) == 3
        assert collection.get(local_id=sentinel).lat_lon == point(1)
