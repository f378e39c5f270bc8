"""Exception hierarchy for Waypoint Survey.

Every recoverable failure is a WaypointSurveyError subclass carrying a
user-facing message plus a context dict for logging. The UI boundary
(ui/actions.py) catches the base class and shows exactly one toast.

Hierarchy:
    WaypointSurveyError
    ├── NotFound              unknown local identifier
    ├── Protected             mutation attempted on the sentinel default location
    ├── Unauthenticated       Remote Store rejected for lack of session (401)
    ├── ValidationRejected    payload rejected (by the store or client-side checks)
    ├── TransportFailure      network/connectivity or server failure
    ├── FormatError           import document unparseable or wrong shape
    ├── InvalidFileType       import file extension not supported
    ├── ConfigurationError    missing configuration (routing API key)
    ├── RouteNotFound         routing API returned no route
    └── LocationNotFound      place search returned no match

IdentityConflictError is an AssertionError: it marks a programming error and
is never handled by the UI boundary.
"""

from typing import Any, Optional


class WaypointSurveyError(Exception):
    """Base exception for all recoverable application errors.

    Attributes:
        message: User-facing description (safe to show in a toast)
        context: Additional debug info (logged, not shown)
    """

    def __init__(self, message: str = "Something went wrong", context: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class NotFound(WaypointSurveyError):
    """Raised when a local identifier is not in the collection."""

    def __init__(self, local_id: str) -> None:
        super().__init__(message=f"Waypoint '{local_id}' was not found", context={"local_id": local_id})
        self.local_id = local_id


class Protected(WaypointSurveyError):
    """Raised when deleting or renaming the sentinel default location."""

    def __init__(self, local_id: str, action: str) -> None:
        super().__init__(
            message=f'Cannot {action} "Default Location"',
            context={"local_id": local_id, "action": action},
        )
        self.local_id = local_id
        self.action = action


class Unauthenticated(WaypointSurveyError):
    """Raised when the Remote Store answers 401."""

    def __init__(self, message: str = "Authentication required", context: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message=message, context=context)


class ValidationRejected(WaypointSurveyError):
    """Raised when a payload is rejected, by the store or by client-side checks."""

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        status_code: Optional[int] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        if field:
            ctx["field"] = field
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message=message, context=ctx)
        self.field = field
        self.status_code = status_code


class TransportFailure(WaypointSurveyError):
    """Raised on network errors, timeouts and server-side failures."""

    def __init__(
        self,
        message: str = "Network error: unable to reach the server",
        status_code: Optional[int] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message=message, context=ctx)
        self.status_code = status_code


class FormatError(WaypointSurveyError):
    """Raised when an import document cannot be decoded.

    Attributes:
        format_name: "GeoJSON" or "KML", whichever decoder was attempted
    """

    def __init__(self, format_name: str, detail: str) -> None:
        super().__init__(
            message=f"Invalid {format_name} file format: {detail}",
            context={"format": format_name, "detail": detail},
        )
        self.format_name = format_name
        self.detail = detail


class InvalidFileType(WaypointSurveyError):
    """Raised when an import file has an unsupported extension."""

    def __init__(self, filename: str) -> None:
        super().__init__(
            message="Invalid file type. Please select KML or GeoJSON files",
            context={"filename": filename},
        )
        self.filename = filename


class ConfigurationError(WaypointSurveyError):
    """Raised when required configuration is missing. Never retried."""


class RouteNotFound(WaypointSurveyError):
    """Raised when the routing API returns no route."""

    def __init__(self) -> None:
        super().__init__(message="No route found")


class LocationNotFound(WaypointSurveyError):
    """Raised when a place search has no match."""

    def __init__(self, query: str) -> None:
        super().__init__(message="Location not found. Please try a different search term.", context={"query": query})
        self.query = query


class IdentityConflictError(AssertionError):
    """A local record was mapped to two different server identifiers."""

    def __init__(self, local_id: str, existing: object, new: object) -> None:
        super().__init__(f"Local id {local_id} already maps to server id {existing!r}, refusing {new!r}")
        self.local_id = local_id
        self.existing = existing
        self.new = new
