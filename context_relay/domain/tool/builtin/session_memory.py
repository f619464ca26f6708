"""
Keyed working-memory tools: get_memory and set_memory
"""

from typing import Dict, Any, Optional
import json

from context_relay.domain.context.memory.memory_store import MemoryStore
from context_relay.domain.models.pipeline_state import ToolInput, ToolResult
from ..base_tool import BaseTool


class GetMemoryTool(BaseTool):
    """Reads one key, several keys, or everything from working memory"""

    parameters_schema = {
        "type": "object",
        "properties": {
            "key": {"type": "string"},
            "keys": {"type": "array", "items": {"type": "string"}}
        }
    }

    def __init__(self, memory: MemoryStore):
        super().__init__(
            name="get_memory",
            description="Retrieve stored information from session memory, such as preferences or facts mentioned earlier"
        )
        self.memory = memory

    async def run(self, tool_input: ToolInput) -> Dict[str, Any]:
        key = tool_input.parameters.get("key")
        keys = tool_input.parameters.get("keys")

        if key:
            value = await self.memory.get_value(key)
            return {"key": key, "found": value is not None, "value": value}

        if keys:
            return {"values": {name: await self.memory.get_value(name) for name in keys}}

        return {"all_memory": await self.memory.all_values()}

    def format_output(self, result: ToolResult) -> str:
        if not result.success:
            return f"Memory lookup failed: {result.error}"

        data = result.data
        if "key" in data:
            if not data["found"]:
                return f"Nothing stored under '{data['key']}'."
            return f"{data['key']}: {_render(data['value'])}"

        values = data.get("values", data.get("all_memory", {}))
        if not values:
            return "Session memory is empty."
        return "\n".join(f"{name}: {_render(value)}" for name, value in values.items())


class SetMemoryTool(BaseTool):
    """Stores a value in working memory, optionally expiring"""

    parameters_schema = {
        "type": "object",
        "properties": {
            "key": {"type": "string", "minLength": 1},
            "ttl": {"type": ["number", "string", "null"]}
        },
        "required": ["key", "value"]
    }

    def __init__(self, memory: MemoryStore):
        super().__init__(
            name="set_memory",
            description="Store information in session memory for later retrieval, such as user preferences or important facts"
        )
        self.memory = memory

    async def run(self, tool_input: ToolInput) -> Dict[str, Any]:
        key = tool_input.parameters.get("key")
        if not isinstance(key, str) or not key:
            raise ValueError("set_memory requires a 'key'")
        if "value" not in tool_input.parameters:
            raise ValueError("set_memory requires a 'value'")

        raw_ttl = tool_input.parameters.get("ttl")
        ttl: Optional[float] = float(raw_ttl) if raw_ttl is not None else None
        await self.memory.set_value(key, tool_input.parameters["value"], ttl=ttl)

        return {
            "key": key,
            "stored": True,
            "ttl": f"Expires in {ttl:g}s" if ttl else "No expiration"
        }

    def format_output(self, result: ToolResult) -> str:
        if not result.success:
            return f"Memory storage failed: {result.error}"
        return f"Stored '{result.data['key']}' ({result.data['ttl']})"


def _render(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)
