from typing import Dict, Any

from context_relay.domain.context.memory.memory_store import MemoryStore
from context_relay.domain.models.pipeline_state import ToolInput, ToolResult, utc_now
from ..base_tool import BaseTool


SESSION_START_KEY = "session_start"
INTERACTION_COUNT_KEY = "interaction_count"
PREFERENCES_KEY = "user_preferences"


class UserContextTool(BaseTool):
    """Reports session duration, interaction count and stored preferences"""

    def __init__(self, memory: MemoryStore):
        super().__init__(
            name="get_user_context",
            description="Get contextual information about the current user session, including session duration, interaction count, and preferences"
        )
        self.memory = memory

    async def run(self, tool_input: ToolInput) -> Dict[str, Any]:
        now = utc_now()

        session_start = await self.memory.get_value(SESSION_START_KEY)
        if session_start is None:
            session_start = now
            await self.memory.set_value(SESSION_START_KEY, session_start)

        interaction_count = (await self.memory.get_value(INTERACTION_COUNT_KEY) or 0) + 1
        await self.memory.set_value(INTERACTION_COUNT_KEY, interaction_count)

        return {
            "session_duration_s": (now - session_start).total_seconds(),
            "interaction_count": interaction_count,
            "preferences": await self.memory.get_value(PREFERENCES_KEY) or {},
            "last_interaction": now.isoformat()
        }

    def format_output(self, result: ToolResult) -> str:
        if not result.success:
            return f"User context unavailable: {result.error}"

        data = result.data
        output = f"Session duration: {data['session_duration_s']:.0f}s\n"
        output += f"Interactions: {data['interaction_count']}\n"
        if data["preferences"]:
            output += "Preferences:\n"
            for key, value in data["preferences"].items():
                output += f"- {key}: {value}\n"
        return output
