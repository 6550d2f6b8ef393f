"""Session and user context attached to every emitted event."""

import logging
import random
import string
import time

from telemetripy.core.models import UserIdentity
from telemetripy.core.ports import Clock, ErrorTrackerPort, KeyValueStoragePort

logger = logging.getLogger(__name__)

SESSION_KEY = "monitoring_session_id"

_ALPHABET = string.digits + string.ascii_lowercase


def random_suffix(length: int = 9) -> str:
    """Random lowercase base36 string."""
    return "".join(random.choices(_ALPHABET, k=length))


class SessionContext:
    """Stable session identifier plus optional authenticated user.

    Args:
        storage: Session-scoped key-value storage holding the session id.
        tracker: Optional error tracker kept in sync with the user identity.
        clock: Returns the current Unix time in seconds.
    """

    def __init__(
        self,
        storage: KeyValueStoragePort,
        tracker: ErrorTrackerPort | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._storage = storage
        self._tracker = tracker
        self._clock = clock or time.time
        self._user: UserIdentity | None = None
        self._fallback_id: str | None = None

    def _new_session_id(self) -> str:
        return f"session_{int(self._clock() * 1000)}_{random_suffix()}"

    def session_id(self) -> str:
        """Return the session id, creating and persisting it on first use.

        When the storage fails the id is kept in memory instead, so callers
        always get a stable id.
        """
        session_id = None
        try:
            session_id = self._storage.get(SESSION_KEY)
            if not session_id:
                session_id = self._fallback_id or self._new_session_id()
                self._storage.set(SESSION_KEY, session_id)
        except Exception:
            if self._fallback_id is None:
                logger.warning(
                    "Session storage failed, keeping the session id in memory",
                    exc_info=True,
                )
                self._fallback_id = session_id or self._new_session_id()
            return self._fallback_id
        return session_id

    @property
    def user(self) -> UserIdentity | None:
        return self._user

    def set_user(self, user_id: str, attributes: dict[str, str] | None = None) -> None:
        """Attach an identity to all subsequently emitted events."""
        self._user = UserIdentity(id=user_id, attributes=dict(attributes or {}))
        if self._tracker is not None:
            self._tracker.set_user(self._user)

    def clear_user(self) -> None:
        """Detach the identity entirely, including tracker context."""
        self._user = None
        if self._tracker is not None:
            self._tracker.set_user(None)

    def as_properties(self) -> dict[str, str | None]:
        """Properties merged into every analytics event."""
        return {
            "session_id": self.session_id(),
            "user_id": self._user.id if self._user else None,
        }
