from typing import Awaitable, Callable, Dict, List, Optional
import asyncio
import time

import structlog

from .core.pipeline_orchestrator import PipelineOrchestrator

logger = structlog.get_logger(__name__)

OrchestratorFactory = Callable[[], Awaitable[PipelineOrchestrator]]


class SessionRegistry:
    """Orchestrators keyed by external session id, with idle reaping"""

    def __init__(
        self,
        factory: OrchestratorFactory,
        idle_timeout_s: float = 30 * 60,
        clock: Callable[[], float] = time.monotonic
    ):
        self.factory = factory
        self.idle_timeout_s = idle_timeout_s
        self.clock = clock
        self.sessions: Dict[str, PipelineOrchestrator] = {}
        self.last_access: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    async def initialize(self, session_id: str) -> PipelineOrchestrator:
        """Create a fresh orchestrator, replacing any existing one"""

        async with self._lock:
            previous = self.sessions.pop(session_id, None)
            if previous is not None:
                await previous.dispose()

            orchestrator = await self.factory()
            self.sessions[session_id] = orchestrator
            self.last_access[session_id] = self.clock()

        logger.info("Session initialized", session_id=session_id)
        return orchestrator

    async def get_or_create(self, session_id: str) -> PipelineOrchestrator:
        """Look up a session, creating it lazily"""

        async with self._lock:
            orchestrator = self.sessions.get(session_id)
            if orchestrator is None:
                orchestrator = await self.factory()
                self.sessions[session_id] = orchestrator
                logger.info("Session created on first use", session_id=session_id)
            self.last_access[session_id] = self.clock()
            return orchestrator

    async def get(self, session_id: str) -> Optional[PipelineOrchestrator]:
        """Existing session or None; touches last access"""

        async with self._lock:
            orchestrator = self.sessions.get(session_id)
            if orchestrator is not None:
                self.last_access[session_id] = self.clock()
            return orchestrator

    async def reset(self, session_id: str) -> bool:
        """Dispose and forget a session"""

        async with self._lock:
            orchestrator = self.sessions.pop(session_id, None)
            self.last_access.pop(session_id, None)

        if orchestrator is None:
            return False

        await orchestrator.dispose()
        logger.info("Session reset", session_id=session_id)
        return True

    async def reap_idle(self, max_idle_s: Optional[float] = None) -> List[str]:
        """Dispose sessions idle for longer than max_idle_s; the caller decides when to run this"""

        max_idle_s = self.idle_timeout_s if max_idle_s is None else max_idle_s
        now = self.clock()

        async with self._lock:
            expired = [
                session_id for session_id, last in self.last_access.items()
                if now - last > max_idle_s
            ]
            reaped = [(session_id, self.sessions.pop(session_id, None)) for session_id in expired]
            for session_id in expired:
                self.last_access.pop(session_id, None)

        for session_id, orchestrator in reaped:
            if orchestrator is not None:
                await orchestrator.dispose()

        if expired:
            logger.info("Reaped idle sessions", sessions=expired)
        return expired

    async def dispose_all(self):
        async with self._lock:
            sessions = list(self.sessions.values())
            self.sessions.clear()
            self.last_access.clear()

        for orchestrator in sessions:
            await orchestrator.dispose()

    def active_sessions(self) -> List[str]:
        return list(self.sessions.keys())

    def __contains__(self, session_id: str) -> bool:
        return session_id in self.sessions

    def __len__(self) -> int:
        return len(self.sessions)
