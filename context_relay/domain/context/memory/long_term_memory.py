from typing import Dict, List, Optional, Sequence
from datetime import datetime, timedelta, timezone
import asyncio

import structlog

from context_relay.domain.models.pipeline_state import MemoryEntry, MemorySearchResult, utc_now
from ..keyword_ranker import MEMORY_STOP_WORDS, extract_keywords, merge_keywords, score_memory

logger = structlog.get_logger(__name__)


TIMEFRAME_WINDOWS: Dict[str, timedelta] = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}


def _as_utc(timestamp: datetime) -> datetime:
    # Naive timestamps are taken to be UTC
    return timestamp if timestamp.tzinfo else timestamp.replace(tzinfo=timezone.utc)


class LongTermMemory:
    """Topic-tagged memories with keyword and time-windowed search"""

    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max_entries
        self.entries: List[MemoryEntry] = []
        self._lock = asyncio.Lock()

    async def add(
        self,
        content: str,
        topics: Optional[Sequence[str]] = None,
        timestamp: Optional[datetime] = None
    ) -> MemoryEntry:
        """Store a new memory entry"""

        entry = MemoryEntry(
            content=content,
            topics=list(topics or []),
            timestamp=_as_utc(timestamp) if timestamp else utc_now()
        )

        async with self._lock:
            self.entries.append(entry)

            # Only bounded when explicitly configured; oldest go first
            if self.max_entries is not None and len(self.entries) > self.max_entries:
                evicted = len(self.entries) - self.max_entries
                self.entries = self.entries[-self.max_entries:]
                logger.info("Evicted long-term memories", evicted=evicted, remaining=len(self.entries))

        return entry

    async def search(
        self,
        query: str,
        timeframe: Optional[str] = None,
        keywords: Optional[Sequence[str]] = None,
        max_results: int = 5
    ) -> MemorySearchResult:
        """Rank entries against the query and supplied keywords"""

        async with self._lock:
            candidates = self._filter_by_timeframe(timeframe)

        all_keywords = merge_keywords(extract_keywords(query, MEMORY_STOP_WORDS), keywords or [])

        scored = [
            entry.model_copy(update={
                "relevance_score": score_memory(entry.content, entry.topics, all_keywords)
            })
            for entry in candidates
        ]

        # sorted() is stable, so equal scores keep insertion order
        relevant = sorted(
            (entry for entry in scored if entry.relevance_score > 0),
            key=lambda entry: entry.relevance_score,
            reverse=True
        )[:max_results]

        logger.debug(
            "Long-term memory searched",
            query=query[:50],
            timeframe=timeframe,
            keywords=all_keywords,
            found=len(relevant)
        )

        return MemorySearchResult(
            entries=relevant,
            total_found=len(relevant),
            search_query=query
        )

    def _filter_by_timeframe(self, timeframe: Optional[str]) -> List[MemoryEntry]:
        window = TIMEFRAME_WINDOWS.get(timeframe) if timeframe else None
        if window is None:
            return list(self.entries)

        cutoff = utc_now() - window
        return [entry for entry in self.entries if entry.timestamp >= cutoff]

    async def clear(self):
        """Drop every entry"""

        async with self._lock:
            self.entries = []

    def __len__(self) -> int:
        return len(self.entries)
