"""Message - User-facing messages for the waypoint survey UI.

Architecture:
- SIDEBAR: ONE blue info message with session context (waypoints, saved, survey state)
- CONTROL PANEL: ONE yellow instruction for what to do NOW
- TOASTS: transient feedback for every action outcome and every error

Every failure reaching the UI boundary is turned into exactly one toast via
error_message_for().
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from waypoint_survey.errors import (
    ConfigurationError,
    FormatError,
    InvalidFileType,
    LocationNotFound,
    NotFound,
    Protected,
    RouteNotFound,
    TransportFailure,
    Unauthenticated,
    ValidationRejected,
    WaypointSurveyError,
)

logger = logging.getLogger(__name__)


class MessageLevel(Enum):
    """Display level for UI messages."""

    INFO = "info"  # Blue - context/status
    WARNING = "warning"  # Yellow - action instructions
    ERROR = "error"  # Red - failures


@dataclass(frozen=True)
class Message(ABC):
    """Abstract base class for messages displayed inline (sidebar/panels).

    Rendered as st.info/st.warning/st.error blocks that persist until replaced.
    """

    @property
    @abstractmethod
    def message(self) -> str:
        """Formatted message for display in Streamlit."""
        raise NotImplementedError

    @property
    @abstractmethod
    def level(self) -> MessageLevel:
        """Display level."""
        raise NotImplementedError

    def display(self) -> None:
        """Render this message using the appropriate Streamlit function."""
        import streamlit as st

        render_fn = {
            MessageLevel.INFO: st.info,
            MessageLevel.WARNING: st.warning,
            MessageLevel.ERROR: st.error,
        }[self.level]
        render_fn(self.message)


@dataclass(frozen=True)
class ToastMessage(ABC):
    """Abstract base class for transient popup notifications.

    Good for: action confirmations, validation failures, network errors
    Bad for: context messages, status displays, instruction panels
    """

    @property
    @abstractmethod
    def message(self) -> str:
        """Formatted message for the toast notification."""
        raise NotImplementedError

    @property
    @abstractmethod
    def icon(self) -> str:
        """Icon to show in toast. Override in subclasses."""
        raise NotImplementedError

    def display(self) -> None:
        """Show this message as a toast notification and log it."""
        import streamlit as st

        logger.info(f"[TOAST] {self.icon} {self.message}")
        st.toast(f"{self.icon} {self.message}")


# =============================================================================
# TOAST MESSAGES - Action outcomes
# =============================================================================


@dataclass(frozen=True)
class WaypointSavedMessage(ToastMessage):
    """A waypoint was created or updated in the Remote Store."""

    name: str
    created: bool

    @property
    def icon(self) -> str:
        return "💾"

    @property
    def message(self) -> str:
        verb = "saved" if self.created else "updated"
        return f'Waypoint "{self.name}" {verb} successfully'


@dataclass(frozen=True)
class WaypointDeletedMessage(ToastMessage):
    """A waypoint was removed, from the store if it had been saved."""

    name: str
    persisted: bool

    @property
    def icon(self) -> str:
        return "🗑️"

    @property
    def message(self) -> str:
        if self.persisted:
            return f'Waypoint "{self.name}" deleted successfully'
        return f'Waypoint "{self.name}" removed from map'


@dataclass(frozen=True)
class ImportedMessage(ToastMessage):
    """Waypoints were imported from a file."""

    count: int
    filename: str

    @property
    def icon(self) -> str:
        return "📥"

    @property
    def message(self) -> str:
        noun = "waypoint" if self.count == 1 else "waypoints"
        return f"Imported {self.count} {noun} from {self.filename}"


@dataclass(frozen=True)
class ExportedMessage(ToastMessage):
    """An export document was produced."""

    count: int
    filename: str

    @property
    def icon(self) -> str:
        return "📤"

    @property
    def message(self) -> str:
        return f"Exported {self.count} waypoint(s) to {self.filename}"


@dataclass(frozen=True)
class NothingToExportMessage(ToastMessage):
    """Export requested with no waypoints."""

    @property
    def icon(self) -> str:
        return "ℹ️"

    @property
    def message(self) -> str:
        return "No waypoints to export"


@dataclass(frozen=True)
class NoSavedWaypointsMessage(ToastMessage):
    """The store holds no waypoints for this user."""

    @property
    def icon(self) -> str:
        return "ℹ️"

    @property
    def message(self) -> str:
        return "No saved waypoints found"


@dataclass(frozen=True)
class SavedWaypointsLoadedMessage(ToastMessage):
    """Persisted waypoints were shown on the map."""

    count: int

    @property
    def icon(self) -> str:
        return "🗺️"

    @property
    def message(self) -> str:
        return f"Loaded {self.count} saved waypoint(s)"


@dataclass(frozen=True)
class ImageUploadedMessage(ToastMessage):
    """An image was uploaded and attached to the edit buffer."""

    @property
    def icon(self) -> str:
        return "🖼️"

    @property
    def message(self) -> str:
        return "Image uploaded - save the waypoint to keep it"


@dataclass(frozen=True)
class RouteFoundMessage(ToastMessage):
    """A driving route was computed."""

    summary: str

    @property
    def icon(self) -> str:
        return "🧭"

    @property
    def message(self) -> str:
        return f"Route found - {self.summary}"


@dataclass(frozen=True)
class LocationFoundMessage(ToastMessage):
    """A place search moved the map."""

    display_name: str

    @property
    def icon(self) -> str:
        return "🔍"

    @property
    def message(self) -> str:
        return f"Found: {self.display_name}"


@dataclass(frozen=True)
class LowAccuracyMessage(ToastMessage):
    """The device reported a poor position fix."""

    accuracy_m: float

    @property
    def icon(self) -> str:
        return "📡"

    @property
    def message(self) -> str:
        return f"Low GPS accuracy ({self.accuracy_m:.0f}m) - position may be off"


@dataclass(frozen=True)
class DefaultLocationFallbackMessage(ToastMessage):
    """No position fix; the default location was used instead."""

    @property
    def icon(self) -> str:
        return "📍"

    @property
    def message(self) -> str:
        return "GPS unavailable - using default location"


@dataclass(frozen=True)
class SurveyStartedMessage(ToastMessage):
    """Live tracking began."""

    @property
    def icon(self) -> str:
        return "🛰️"

    @property
    def message(self) -> str:
        return "Survey started - tracking your location"


@dataclass(frozen=True)
class SurveyEndedMessage(ToastMessage):
    """Live tracking stopped."""

    @property
    def icon(self) -> str:
        return "🏁"

    @property
    def message(self) -> str:
        return "Survey ended"


# =============================================================================
# TOAST MESSAGES - Errors
# =============================================================================


@dataclass(frozen=True)
class ErrorMessage(ToastMessage):
    """Any recoverable failure, shown with its user-facing text."""

    text: str
    error_icon: str = "❌"

    @property
    def icon(self) -> str:
        return self.error_icon

    @property
    def message(self) -> str:
        return self.text


@dataclass(frozen=True)
class SurveyInactiveMessage(ToastMessage):
    """Map clicked while no survey is running."""

    @property
    def icon(self) -> str:
        return "⚠️"

    @property
    def message(self) -> str:
        return "Start a survey to drop pins on the map"


@dataclass(frozen=True)
class NoSelectionMessage(ToastMessage):
    """Action needs a selected waypoint."""

    action: str

    @property
    def icon(self) -> str:
        return "⚠️"

    @property
    def message(self) -> str:
        return f"Select a waypoint to {self.action}"


@dataclass(frozen=True)
class SameWaypointRouteMessage(ToastMessage):
    """Route start and destination are the same waypoint."""

    @property
    def icon(self) -> str:
        return "🧭"

    @property
    def message(self) -> str:
        return "Choose two different waypoints to navigate between"


@dataclass(frozen=True)
class LoginRequiredMessage(ToastMessage):
    """The store answered 401."""

    @property
    def icon(self) -> str:
        return "🔒"

    @property
    def message(self) -> str:
        return "Please log in to continue"


def error_message_for(exc: WaypointSurveyError) -> ToastMessage:
    """Map an application error to the one toast shown for it."""
    if isinstance(exc, Unauthenticated):
        return LoginRequiredMessage()
    if isinstance(exc, TransportFailure):
        return ErrorMessage(text=exc.message, error_icon="🌐")
    if isinstance(exc, (FormatError, InvalidFileType)):
        return ErrorMessage(text=exc.message, error_icon="📄")
    if isinstance(exc, Protected):
        return ErrorMessage(text=exc.message, error_icon="🛡️")
    if isinstance(exc, (ValidationRejected, NotFound)):
        return ErrorMessage(text=exc.message, error_icon="⚠️")
    if isinstance(exc, (ConfigurationError, RouteNotFound, LocationNotFound)):
        return ErrorMessage(text=exc.message, error_icon="🧭")
    return ErrorMessage(text=exc.message)


# =============================================================================
# PANEL MESSAGES - Persistent context and instructions
# =============================================================================


@dataclass(frozen=True)
class SessionContextMessage(Message):
    """Sidebar summary of the session."""

    waypoint_count: int
    saved_count: int
    survey_active: bool

    @property
    def level(self) -> MessageLevel:
        return MessageLevel.INFO

    @property
    def message(self) -> str:
        survey = "Survey active" if self.survey_active else "Survey idle"
        return f"**{self.waypoint_count}** waypoint(s) on map, **{self.saved_count}** saved. {survey}."


@dataclass(frozen=True)
class PlacePinInstruction(Message):
    """Nothing selected: tell the user how to start."""

    @property
    def level(self) -> MessageLevel:
        return MessageLevel.WARNING

    @property
    def message(self) -> str:
        return "Click the map to drop a pin, or click a pin to edit it."


@dataclass(frozen=True)
class EditWaypointInstruction(Message):
    """A waypoint is selected."""

    name: str

    @property
    def level(self) -> MessageLevel:
        return MessageLevel.WARNING

    @property
    def message(self) -> str:
        return f"Editing **{self.name}**. Save to persist your changes."
