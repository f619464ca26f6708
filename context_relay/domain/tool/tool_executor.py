"""
Model-driven tool execution: a chat model derives each tool's parameters
"""

from typing import Dict, Any, List, Optional, Sequence
import json

import structlog
from langchain_core.language_models import BaseChatModel

from context_relay.domain.models.pipeline_state import Message, ToolInput, ToolResult
from context_relay.infrastructure.llm.structured_output import invoke_json
from .tool_registry import ToolRegistry
from .tool_validator import ToolInputValidator

logger = structlog.get_logger(__name__)


EXECUTOR_SYSTEM_PROMPT = """You are a Tool Executor Agent. Your job is to determine the correct parameters for each tool based on the user's message and conversation context.

For each tool you need to execute, analyze the user's message and determine what parameters to pass.

Respond with a JSON object where keys are tool names and values are the parameter objects to pass to each tool.

Example:
{
  "knowledge_search": {
    "query": "caching strategies",
    "category": "data"
  },
  "get_memory": {
    "key": "user_preferences"
  }
}

If you cannot determine parameters for a tool, set its value to null."""


class ToolExecutor:
    """Derives tool parameters from free text, then runs the tools through the registry"""

    def __init__(
        self,
        registry: ToolRegistry,
        llm: BaseChatModel,
        temperature: float = 0.2,
        max_tokens: int = 1000,
        timeout_s: Optional[float] = None
    ):
        self.registry = registry
        self.llm = llm
        self.model_kwargs = {"temperature": temperature, "max_tokens": max_tokens}
        self.timeout_s = timeout_s

    async def execute_tools(
        self,
        tool_names: Sequence[str],
        user_message: str,
        history: Sequence[Message]
    ) -> List[ToolResult]:
        """Execute the registered subset of tool_names; never raises"""

        valid_names = [name for name in dict.fromkeys(tool_names) if self.registry.has(name)]
        if not valid_names:
            return []

        tool_inputs = await self.determine_tool_inputs(valid_names, user_message, history)
        return await self.registry.execute_multiple(tool_inputs)

    async def determine_tool_inputs(
        self,
        tool_names: Sequence[str],
        user_message: str,
        history: Sequence[Message]
    ) -> Dict[str, ToolInput]:
        """Ask the model for per-tool parameters; fall back to the raw message"""

        try:
            raw = await invoke_json(
                self.llm,
                EXECUTOR_SYSTEM_PROMPT,
                self._build_prompt(tool_names, user_message, history),
                model_kwargs=self.model_kwargs,
                timeout_s=self.timeout_s
            )
        except Exception as e:
            logger.warning("Tool parameter derivation failed, using message as query", error=str(e))
            raw = {}

        return {
            name: ToolInputValidator.coerce(raw.get(name), default_query=user_message)
            for name in tool_names
        }

    def _build_prompt(self, tool_names: Sequence[str], user_message: str, history: Sequence[Message]) -> str:
        descriptions = "\n\n".join(
            f"Tool: {name}\nDescription: {self.registry.get(name).description}"
            for name in tool_names
        )
        history_context = "\n".join(
            f"{message.role.value}: {message.content}" for message in list(history)[-3:]
        )

        return (
            f"Tools to execute:\n{descriptions}\n\n"
            f"Conversation context:\n{history_context or 'No previous history'}\n\n"
            f"User message: {json.dumps(user_message)}\n\n"
            "Determine the parameters for each tool."
        )
