from typing import Dict, Any

from context_relay.domain.context.memory.memory_store import MemoryStore
from context_relay.domain.models.pipeline_state import ToolInput, ToolResult, MemorySearchResult
from ..base_tool import BaseTool


class MemoryRecallTool(BaseTool):
    """Searches long-term memory for entries related to the query"""

    def __init__(self, memory: MemoryStore, max_results: int = 5):
        super().__init__(
            name="memory_recall",
            description="Retrieves relevant information from past conversations and long-term memory"
        )
        self.memory = memory
        self.max_results = max_results

    async def run(self, tool_input: ToolInput) -> MemorySearchResult:
        return await self.memory.search(
            tool_input.query or "",
            timeframe=tool_input.timeframe,
            keywords=tool_input.keywords,
            max_results=self.max_results
        )

    def metadata_for(self, payload: MemorySearchResult, tool_input: ToolInput) -> Dict[str, Any]:
        return {
            "entries_found": payload.total_found,
            "timeframe": tool_input.timeframe
        }

    def format_output(self, result: ToolResult) -> str:
        if not result.success:
            return f"Memory recall failed: {result.error}"

        search_result: MemorySearchResult = result.data
        if search_result.total_found == 0:
            return "No relevant memories found for this query."

        formatted = MemoryStore.format_memory_for_context(search_result.entries)
        return f"Found {search_result.total_found} relevant memories:\n{formatted}"
