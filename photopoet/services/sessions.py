"""
Session store.

Keeps one InteractionController per UI session, in memory only. Nothing is persisted;
the least recently used session is evicted once max_sessions is exceeded.
"""

from __future__ import annotations
import logging
import uuid
from collections import OrderedDict
from typing import Callable, Optional

from ..core.errors import SessionNotFound
from .controller import InteractionController

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(
        self,
        max_sessions: int = 500,
        controller_factory: Optional[Callable[[], InteractionController]] = None,
    ):
        """
        :param max_sessions: cap on live sessions
        :param controller_factory: builds a controller for each new session
        """
        self._max_sessions = max(1, max_sessions)
        self._factory = controller_factory or InteractionController
        self._sessions: "OrderedDict[str, InteractionController]" = OrderedDict()

    def create(self) -> tuple[str, InteractionController]:
        session_id = uuid.uuid4().hex
        controller = self._factory()
        self._sessions[session_id] = controller
        while len(self._sessions) > self._max_sessions:
            evicted, old = self._sessions.popitem(last=False)
            # drop any in-flight answer aimed at the evicted session
            old.clear()
            logger.info("Evicted session %s", evicted)
        logger.info("Created session %s (%d live)", session_id, len(self._sessions))
        return session_id, controller

    def get(self, session_id: str) -> InteractionController:
        try:
            controller = self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(f"Unknown session: {session_id}") from None
        self._sessions.move_to_end(session_id)
        return controller

    def delete(self, session_id: str) -> None:
        controller = self._sessions.pop(session_id, None)
        if controller is None:
            raise SessionNotFound(f"Unknown session: {session_id}")
        controller.clear()
        logger.info("Ended session %s", session_id)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions
