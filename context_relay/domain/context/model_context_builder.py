"""
Model-driven context assembly: a chat model summarises tool output for the response stage
"""

from typing import Dict, Any, List, Optional, Sequence
import json

import structlog
from langchain_core.language_models import BaseChatModel
from pydantic import BaseModel

from context_relay.domain.models.pipeline_state import (
    ContextFrame, Message, ResponseStyle, RoutingDecision, ToolResult
)
from context_relay.infrastructure.llm.structured_output import invoke_json
from .context_builder import ContextBuilder

logger = structlog.get_logger(__name__)


CONTEXT_SYSTEM_PROMPT = """You are a Context Builder Agent. Your job is to synthesize tool execution results and conversation history into a well-structured context for the Response Agent.

Your responsibilities:
1. Summarize and format tool results in a clear, usable way
2. Extract key information from tool outputs
3. Identify any errors or missing information
4. Suggest an appropriate response style based on the context
5. Create a coherent narrative from multiple tool results

Respond with JSON in this format:
{
  "formattedContext": "A clear summary of all relevant information the Response Agent needs",
  "keyFacts": ["fact1", "fact2"],
  "hasErrors": true/false,
  "errorSummary": "Description of any errors if present",
  "suggestedResponseStyle": {
    "tone": "friendly|professional|empathetic|informative",
    "verbosity": "concise|detailed|balanced",
    "includeFollowUp": true/false
  }
}"""

VALID_TONES = ("friendly", "professional", "empathetic", "informative")
VALID_VERBOSITY = ("concise", "detailed", "balanced")


def _jsonable(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    return data


def fallback_formatting(tool_results: Sequence[ToolResult]) -> str:
    """One `[tool]: <json>` or `[tool]: Error - ...` line per result"""

    if not tool_results:
        return "No tool results available."

    parts: List[str] = []
    for result in tool_results:
        if result.success and result.data is not None:
            parts.append(f"[{result.tool_name}]: {json.dumps(_jsonable(result.data), default=str)}")
        elif not result.success:
            parts.append(f"[{result.tool_name}]: Error - {result.error}")

    return "\n\n".join(parts)


def validate_response_style(raw: Any) -> ResponseStyle:
    """Keep each style field the model got right, default the rest"""

    default = ResponseStyle()
    if not isinstance(raw, dict):
        return default

    tone = raw.get("tone")
    verbosity = raw.get("verbosity")
    follow_up = raw.get("includeFollowUp", raw.get("include_follow_up"))

    return ResponseStyle(
        tone=tone if tone in VALID_TONES else default.tone,
        verbosity=verbosity if verbosity in VALID_VERBOSITY else default.verbosity,
        include_follow_up=follow_up if isinstance(follow_up, bool) else default.include_follow_up
    )


class ModelContextBuilder:
    """Builds the context frame with a chat model; rule-based when no tools ran"""

    def __init__(
        self,
        llm: BaseChatModel,
        fallback: ContextBuilder,
        temperature: float = 0.4,
        max_tokens: int = 1500,
        timeout_s: Optional[float] = None,
        history_window: int = 5
    ):
        self.llm = llm
        self.fallback = fallback
        self.model_kwargs = {"temperature": temperature, "max_tokens": max_tokens}
        self.timeout_s = timeout_s
        self.history_window = history_window

    async def build(
        self,
        user_message: Message,
        history: Sequence[Message],
        decision: RoutingDecision,
        tool_results: Sequence[ToolResult]
    ) -> ContextFrame:
        if not tool_results:
            return self.fallback.build(user_message, history, decision, tool_results)

        try:
            raw = await invoke_json(
                self.llm,
                CONTEXT_SYSTEM_PROMPT,
                self._build_prompt(user_message, history, decision, tool_results),
                model_kwargs=self.model_kwargs,
                timeout_s=self.timeout_s
            )
            formatted = raw.get("formattedContext")
            if not isinstance(formatted, str) or not formatted.strip():
                formatted = fallback_formatting(tool_results)
            style = validate_response_style(raw.get("suggestedResponseStyle"))
        except Exception as e:
            logger.warning("Model context build failed, using plain tool formatting", error=str(e))
            formatted = fallback_formatting(tool_results)
            style = ResponseStyle()

        max_history = self.fallback.max_history
        return ContextFrame(
            user_message=user_message,
            conversation_history=list(history)[-max_history:] if max_history else [],
            routing_decision=decision,
            tool_results=list(tool_results),
            formatted_context=formatted,
            suggested_response_style=style
        )

    def _build_prompt(
        self,
        user_message: Message,
        history: Sequence[Message],
        decision: RoutingDecision,
        tool_results: Sequence[ToolResult]
    ) -> str:
        results: List[Dict[str, Any]] = [
            {
                "tool": result.tool_name,
                "success": result.success,
                "data": _jsonable(result.data),
                "error": getattr(result, "error", None),
                "executionTime": result.execution_time_ms
            }
            for result in tool_results
        ]
        history_context = "\n".join(
            f"{message.role.value}: {message.content}" for message in list(history)[-self.history_window:]
        )

        return (
            f"Original User Message: {json.dumps(user_message.content)}\n\n"
            f"Intent: {decision.intent.value}\n\n"
            f"Tool Execution Results:\n{json.dumps(results, indent=2, default=str)}\n\n"
            f"Recent Conversation History:\n{history_context or 'No previous history'}\n\n"
            "Analyze these results and create a formatted context for the Response Agent."
        )
