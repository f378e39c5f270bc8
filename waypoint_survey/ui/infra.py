"""Infrastructure utilities for Streamlit UI operations.

Abstracts Streamlit-specific infrastructure (st.rerun, st.session_state) and
the bridge from Streamlit's synchronous script to the async controller, so
tests can patch these functions instead of Streamlit itself.

IMPORTANT: Only infrastructure belongs here (rerun, map version, event loop).
- Session state object access (controller) stays in actions.py
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

import streamlit as st

if TYPE_CHECKING:
    from waypoint_survey.controller import SurveyController

logger = logging.getLogger(__name__)

T = TypeVar("T")


def trigger_rerun(scope: str = "app") -> None:
    """Trigger Streamlit rerun.

    In tests, patch 'waypoint_survey.ui.infra.trigger_rerun' to prevent
    actual reruns (which raise StopExecution).
    """
    st.rerun(scope=scope)


def bump_map_version() -> None:
    """Increment map_version to create a fresh deck component.

    A new component instance has no memory of previous click events, so a
    rerun cannot replay the click that caused it.
    """
    old_version = st.session_state.get("map_version", 0)
    new_version = old_version + 1
    st.session_state.map_version = new_version
    logger.info(f"[MAP] Bumped map_version: {old_version} -> {new_version}")


def run_async(controller: "SurveyController", make_call: Callable[[], Awaitable[T]]) -> T:
    """Run one controller coroutine to completion on a fresh event loop.

    Each Streamlit rerun gets its own loop, so the controller's HTTP clients
    are closed at the end of every call and recreated lazily on the next.
    """

    async def _run() -> T:
        try:
            return await make_call()
        finally:
            await controller.aclose()

    return asyncio.run(_run())
