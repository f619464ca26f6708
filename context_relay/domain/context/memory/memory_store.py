from typing import Dict, Any, List, Optional, Sequence
from datetime import datetime, timedelta

import structlog

from context_relay.domain.models.pipeline_state import (
    Message, MemoryEntry, MemorySearchResult, utc_now
)
from .session_memory import SessionMemory
from .long_term_memory import LongTermMemory
from .working_memory import WorkingMemory

logger = structlog.get_logger(__name__)


DEMO_MEMORIES = [
    ("User discussed implementing a caching strategy for API responses", ["caching", "api", "performance"], 2),
    ("User asked about best practices for error handling in TypeScript", ["typescript", "error-handling", "best-practices"], 5),
    ("User mentioned they are building a voice-first AI assistant", ["voice", "ai", "assistant", "project"], 7),
    ("User prefers functional programming patterns over OOP", ["programming", "functional", "preferences"], 10),
]


class MemoryStore:
    """Session history, long-term memories and keyed working memory for one pipeline"""

    def __init__(
        self,
        max_session_messages: int = 50,
        max_long_term_entries: Optional[int] = None
    ):
        self.session = SessionMemory(max_messages=max_session_messages)
        self.long_term = LongTermMemory(max_entries=max_long_term_entries)
        self.working = WorkingMemory()

    # Session (short-term) history

    async def add_to_session(self, message: Message):
        await self.session.add_message(message)

    async def get_session_history(self) -> List[Message]:
        return await self.session.get_history()

    async def get_recent_history(self, count: int = 10) -> List[Message]:
        return await self.session.get_recent(count)

    async def clear_session(self):
        await self.session.clear()

    # Long-term memory

    async def add_to_long_term_memory(
        self,
        content: str,
        topics: Optional[Sequence[str]] = None,
        timestamp: Optional[datetime] = None
    ) -> MemoryEntry:
        """Store a topic-tagged memory"""

        entry = await self.long_term.add(content, topics, timestamp=timestamp)
        logger.info("Stored long-term memory", memory_id=entry.id, topics=entry.topics)
        return entry

    async def search(
        self,
        query: str,
        timeframe: Optional[str] = None,
        keywords: Optional[Sequence[str]] = None,
        max_results: int = 5
    ) -> MemorySearchResult:
        """Keyword and time-windowed search over long-term memory"""

        return await self.long_term.search(
            query,
            timeframe=timeframe,
            keywords=keywords,
            max_results=max_results
        )

    async def seed_demo_memories(self) -> List[MemoryEntry]:
        """Load the demonstration memories, dated a few days back"""

        now = utc_now()
        seeded = []
        for content, topics, days_ago in DEMO_MEMORIES:
            seeded.append(
                await self.long_term.add(content, topics, timestamp=now - timedelta(days=days_ago))
            )

        logger.info("Seeded long-term memory", count=len(seeded))
        return seeded

    @property
    def long_term_count(self) -> int:
        return len(self.long_term)

    # Working memory

    async def set_value(self, key: str, value: Any, ttl: Optional[float] = None):
        await self.working.set(key, value, ttl=ttl)

    async def get_value(self, key: str) -> Optional[Any]:
        return await self.working.get(key)

    async def has_value(self, key: str) -> bool:
        return await self.working.contains(key)

    async def delete_value(self, key: str) -> bool:
        return await self.working.delete(key)

    async def all_values(self) -> Dict[str, Any]:
        return await self.working.all_values()

    # Lifecycle and presentation

    async def clear(self):
        """Drop session history, working memory and long-term memories"""

        await self.session.clear()
        await self.working.clear()
        await self.long_term.clear()

    @staticmethod
    def format_memory_for_context(memories: Sequence[MemoryEntry]) -> str:
        """Render memories one per line for the context builder"""

        if not memories:
            return "No relevant memories found."

        lines = []
        for memory in memories:
            date = memory.timestamp.strftime("%Y-%m-%d")
            relevance = (
                f" (relevance: {memory.relevance_score * 100:.0f}%)"
                if memory.relevance_score else ""
            )
            lines.append(f"[{date}]{relevance}: {memory.content}")

        return "\n".join(lines)

    async def get_summary(self, session_id: str) -> str:
        """Short human-readable description of what is stored"""

        history = await self.session.get_history()

        summary = f"Session ID: {session_id}\n"
        summary += f"Messages in session: {len(history)}\n"
        summary += f"Long-term memories: {self.long_term_count}\n"

        recent = history[-3:]
        if recent:
            summary += "\nRecent conversation:\n"
            for message in recent:
                summary += f"- [{message.role.value}]: {message.content[:100]}...\n"

        return summary
