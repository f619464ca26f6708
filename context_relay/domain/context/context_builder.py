from typing import Dict, List, Sequence
import structlog

from context_relay.domain.models.pipeline_state import (
    ContextFrame, IntentType, Message, ResponseStyle, RoutingDecision, ToolResult
)
from context_relay.domain.tool.tool_registry import ToolRegistry

logger = structlog.get_logger(__name__)


SECTION_SEPARATOR = "\n\n---\n\n"

# Intents whose responses lean on the running conversation
HISTORY_INTENTS = frozenset({
    IntentType.CLARIFICATION_NEEDED,
    IntentType.CONVERSATION,
    IntentType.MEMORY_ACCESS,
})

RESPONSE_STYLES: Dict[IntentType, ResponseStyle] = {
    IntentType.KNOWLEDGE_RETRIEVAL: ResponseStyle(tone="informative", verbosity="detailed", include_follow_up=True),
    IntentType.MEMORY_ACCESS: ResponseStyle(tone="friendly", verbosity="balanced", include_follow_up=False),
    IntentType.CLARIFICATION_NEEDED: ResponseStyle(tone="professional", verbosity="concise", include_follow_up=True),
    IntentType.CONVERSATION: ResponseStyle(tone="friendly", verbosity="concise", include_follow_up=False),
    IntentType.MULTI_TOOL: ResponseStyle(tone="professional", verbosity="detailed", include_follow_up=True),
    IntentType.END_SESSION: ResponseStyle(tone="friendly", verbosity="concise", include_follow_up=False),
}


class ContextBuilder:
    """Assembles the routing decision, tool output and history into one context frame"""

    def __init__(
        self,
        registry: ToolRegistry,
        max_history: int = 10,
        preview_messages: int = 6,
        char_limit: int = 200
    ):
        self.registry = registry
        self.max_history = max_history
        self.preview_messages = preview_messages
        self.char_limit = char_limit

    def build(
        self,
        user_message: Message,
        history: Sequence[Message],
        decision: RoutingDecision,
        tool_results: Sequence[ToolResult]
    ) -> ContextFrame:
        """Build the frame handed to the response stage"""

        trimmed = list(history)[-self.max_history:] if self.max_history else []

        sections = [self._intent_section(decision, tools_ran=bool(tool_results))]

        if tool_results:
            sections.append(self._tool_results_section(tool_results))

        if trimmed and decision.intent in HISTORY_INTENTS:
            sections.append(self._history_section(trimmed))

        sections.append(f"## Current User Message\n{user_message.content}")

        frame = ContextFrame(
            user_message=user_message,
            conversation_history=trimmed,
            routing_decision=decision,
            tool_results=list(tool_results),
            formatted_context=SECTION_SEPARATOR.join(sections),
            suggested_response_style=self.suggest_response_style(decision.intent)
        )

        logger.debug(
            "Context frame built",
            history_messages=len(trimmed),
            tool_results=len(tool_results),
            sections=len(sections)
        )

        return frame

    def build_minimal(self, user_message: Message, tool_results: Sequence[ToolResult]) -> str:
        """Compact context: the message plus successful tool output only"""

        context = f"User says: {user_message.content}\n\n"

        if tool_results:
            context += "Available information:\n"
            for result in tool_results:
                if result.success:
                    context += self.registry.format_result(result.tool_name, result)
                    context += "\n\n"

        return context

    @staticmethod
    def suggest_response_style(intent: IntentType) -> ResponseStyle:
        return RESPONSE_STYLES.get(intent, ResponseStyle())

    def _intent_section(self, decision: RoutingDecision, tools_ran: bool = True) -> str:
        section = "## User Intent\n"
        section += f"- Type: {decision.intent.value}\n"
        section += f"- Confidence: {decision.confidence * 100:.0f}%\n"
        section += f"- Reasoning: {decision.reasoning}\n"

        if decision.clarification_question:
            section += f"- Suggested question: \"{decision.clarification_question}\"\n"

        if decision.selected_tools and tools_ran:
            section += f"- Tools Used: {', '.join(decision.selected_tools)}"

        return section

    def _tool_results_section(self, tool_results: Sequence[ToolResult]) -> str:
        section = "## Retrieved Information\n"

        for result in tool_results:
            section += f"\n### {_title_case(result.tool_name)}\n"
            section += self.registry.format_result(result.tool_name, result)
            section += f"\n(Execution time: {result.execution_time_ms:.2f}ms)"

        return section

    def _history_section(self, history: List[Message]) -> str:
        section = "## Recent Conversation\n"

        for message in history[-self.preview_messages:]:
            content = message.content
            if len(content) > self.char_limit:
                content = content[:self.char_limit] + "..."

            timestamp = message.timestamp.strftime("%H:%M:%S")
            section += f"\n[{timestamp}] {message.role.value.capitalize()}:\n{content}\n"

        return section


def _title_case(tool_name: str) -> str:
    return " ".join(word.capitalize() for word in tool_name.split("_"))
