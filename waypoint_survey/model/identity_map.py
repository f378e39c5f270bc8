"""IdentityMap - local identifier to server identifier reconciliation.

Answers "has this local record been persisted, and under which id?". The
collection consults it on every save to choose between create (POST) and
update (PUT); recording the server id after the first successful create is
what keeps retried saves from creating duplicates.
"""

import logging

from waypoint_survey.errors import IdentityConflictError
from waypoint_survey.model.waypoint import ServerId

logger = logging.getLogger(__name__)


class IdentityMap:
    """Mapping local_id -> server_id.

    Example:
        ids = IdentityMap()
        ids.record(local_id="WP1", server_id=7)
        ids.lookup(local_id="WP1")  # 7
    """

    def __init__(self) -> None:
        self._server_ids: dict[str, ServerId] = {}

    def lookup(self, local_id: str) -> ServerId | None:
        """Server id for local_id, or None if the record exists only client-side."""
        return self._server_ids.get(local_id)

    def record(self, local_id: str, server_id: ServerId) -> None:
        """Record the server id assigned on first successful save.

        Recording the same pair again is a no-op.

        Raises:
            IdentityConflictError: local_id is already mapped to a different id.
        """
        existing = self._server_ids.get(local_id)
        if existing is not None and existing != server_id:
            raise IdentityConflictError(local_id=local_id, existing=existing, new=server_id)
        self._server_ids[local_id] = server_id
        logger.debug(f"[IDS] {local_id} -> {server_id}")

    def remove(self, local_id: str) -> None:
        """Forget local_id. Idempotent."""
        self._server_ids.pop(local_id, None)

    def find_local(self, server_id: ServerId) -> str | None:
        """Reverse lookup: the local id mapped to server_id, if any."""
        for local_id, sid in self._server_ids.items():
            if str(sid) == str(server_id):
                return local_id
        return None

    def __contains__(self, local_id: object) -> bool:
        return local_id in self._server_ids

    def __len__(self) -> int:
        return len(self._server_ids)

    def __repr__(self) -> str:
        return f"IdentityMap({self._server_ids!r})"
