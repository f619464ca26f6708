from typing import List
import asyncio

from context_relay.domain.models.pipeline_state import Message


class SessionMemory:
    """Bounded, ordered message history for the active session"""

    def __init__(self, max_messages: int = 50):
        self.max_messages = max_messages
        self.messages: List[Message] = []
        self._lock = asyncio.Lock()

    async def add_message(self, message: Message):
        """Append a message, evicting the oldest ones on overflow"""

        async with self._lock:
            self.messages.append(message)

            if len(self.messages) > self.max_messages:
                self.messages = self.messages[-self.max_messages:]

    async def get_history(self) -> List[Message]:
        """Get a copy of the session history"""

        async with self._lock:
            return list(self.messages)

    async def get_recent(self, count: int = 10) -> List[Message]:
        """Get the last `count` messages"""

        async with self._lock:
            return self.messages[-count:] if count > 0 else []

    async def clear(self):
        """Drop every message"""

        async with self._lock:
            self.messages = []

    def __len__(self) -> int:
        return len(self.messages)
