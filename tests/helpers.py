import asyncio
from typing import Any, List

from context_relay.domain.models.pipeline_state import Message, MessageRole, ToolInput
from context_relay.domain.tool.base_tool import BaseTool


def run(coro):
    return asyncio.run(coro)


def user(content: str) -> Message:
    return Message(role=MessageRole.USER, content=content)


def assistant(content: str) -> Message:
    return Message(role=MessageRole.ASSISTANT, content=content)


class EchoTool(BaseTool):
    """Returns its query, optionally after a delay"""

    def __init__(self, name: str = "echo", delay_s: float = 0.0):
        super().__init__(name=name, description="Echoes the query back")
        self.delay_s = delay_s
        self.calls: List[ToolInput] = []

    async def run(self, tool_input: ToolInput) -> Any:
        self.calls.append(tool_input)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        return {"echo": tool_input.query}

    def format_output(self, result) -> str:
        if not result.success:
            return f"Echo failed: {result.error}"
        return f"Echo: {result.data['echo']}"


class FailingTool(BaseTool):
    """Always raises"""

    def __init__(self, name: str = "broken"):
        super().__init__(name=name, description="Always fails")

    async def run(self, tool_input: ToolInput) -> Any:
        raise RuntimeError("backend unavailable")

    def format_output(self, result) -> str:
        return f"Broken: {result.error}"
