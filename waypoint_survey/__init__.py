"""Waypoint Survey - collect, annotate and sync GPS waypoints.

A map-centric survey client featuring:
- Local/remote identity reconciliation so retried saves never duplicate records
- Event-driven marker rendering that redraws only what changed
- GeoJSON and KML import, JSON/XML/GeoJSON/KML export
- Driving directions and a cancellable live-location watch

Modules:
    core: Outside-world clients (remote store, image host, routing, location watch)
    model: Session data (Waypoint, IdentityMap, WaypointCollection, messages)
    formats: Import/export codecs
    ui: Streamlit interface components (selection machine, marker surface, panels)

Example:
    from waypoint_survey.controller import SurveyController
    controller = SurveyController(token_provider=lambda: token)
"""
