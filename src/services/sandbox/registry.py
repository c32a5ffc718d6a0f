"""In-memory session registry.

The registry is the only shared mutable structure in the orchestrator. Every
mutation is a single synchronous step, so interleaved coroutines on one event
loop never observe a half-applied update.
"""

import asyncio
from typing import Dict, List, Optional

import structlog

from ...config import settings
from ...models.errors import SandboxNotReadyError, SessionNotFoundError
from ...models.session import Session

logger = structlog.get_logger(__name__)


class SessionRegistry:
    """Maps session id -> Session for every live sandbox."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def put(self, session: Session) -> None:
        """Create or replace the record for session.id."""
        self._sessions[session.id] = session

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def delete(self, session_id: str) -> Optional[Session]:
        return self._sessions.pop(session_id, None)

    def ids(self) -> List[str]:
        return list(self._sessions.keys())

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    async def wait_for_session(
        self, session_id: str, retries: int, backoff: float
    ) -> Session:
        """Poll until session_id is registered.

        Raises:
            SessionNotFoundError: still unknown after all retries
        """
        for attempt in range(retries + 1):
            session = self.get(session_id)
            if session is not None:
                return session
            if attempt < retries:
                await asyncio.sleep(backoff)
        raise SessionNotFoundError(session_id)

    async def wait_until_ready(
        self, session_id: str, retries: int, backoff: float
    ) -> Session:
        """Poll until the session's container ref leaves the placeholder state.

        Raises:
            SessionNotFoundError: the session disappeared while waiting
            SandboxNotReadyError: still pending after all retries
        """
        for attempt in range(retries + 1):
            session = self.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            if not session.is_pending:
                return session
            if attempt < retries:
                await asyncio.sleep(backoff)
        logger.warning("Sandbox still pending after wait", session_id=session_id)
        raise SandboxNotReadyError(session_id)


# Outside production the registry is kept across importlib.reload() of this
# module so live sessions are not lost on a development hot reload.
_registry: Optional[SessionRegistry] = (
    globals().get("_registry") if not settings.is_production else None
)


def get_session_registry() -> SessionRegistry:
    """Get the process-wide session registry."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry
