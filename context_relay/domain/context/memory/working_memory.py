from typing import Dict, Any, Optional
import asyncio
from datetime import datetime, timedelta

from context_relay.domain.models.pipeline_state import utc_now


class WorkingMemory:
    """Keyed session values with optional TTL"""

    def __init__(self):
        self.values: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Set a value; ttl is in seconds, None never expires"""

        async with self._lock:
            expires_at = utc_now() + timedelta(seconds=ttl) if ttl else None

            self.values[key] = {
                "value": value,
                "stored_at": utc_now(),
                "expires_at": expires_at
            }

    async def get(self, key: str) -> Optional[Any]:
        """Get value if present and not expired"""

        async with self._lock:
            entry = self._live_entry(key)
            return entry["value"] if entry else None

    async def contains(self, key: str) -> bool:
        async with self._lock:
            return self._live_entry(key) is not None

    async def delete(self, key: str) -> bool:
        """Delete a key"""

        async with self._lock:
            if key in self.values:
                del self.values[key]
                return True
            return False

    async def all_values(self) -> Dict[str, Any]:
        """Every live key/value pair"""

        async with self._lock:
            self._clear_expired()
            return {key: entry["value"] for key, entry in self.values.items()}

    async def clear(self) -> None:
        async with self._lock:
            self.values = {}

    def _live_entry(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self.values.get(key)
        if entry is None:
            return None

        if self._is_expired(entry, utc_now()):
            del self.values[key]
            return None

        return entry

    def _clear_expired(self) -> int:
        now = utc_now()
        expired_keys = [key for key, entry in self.values.items() if self._is_expired(entry, now)]

        for key in expired_keys:
            del self.values[key]

        return len(expired_keys)

    @staticmethod
    def _is_expired(entry: Dict[str, Any], now: datetime) -> bool:
        return entry["expires_at"] is not None and now > entry["expires_at"]
