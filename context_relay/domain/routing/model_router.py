from typing import Dict, Any, List, Optional, Sequence

import structlog
from langchain_core.language_models import BaseChatModel

from context_relay.domain.errors import RoutingError
from context_relay.domain.models.pipeline_state import IntentType, Message, RoutingDecision, ToolInput
from context_relay.domain.tool.tool_registry import ToolRegistry
from context_relay.infrastructure.llm.structured_output import invoke_json

logger = structlog.get_logger(__name__)


ROUTER_SYSTEM_PROMPT = """You are a Router Agent responsible for analyzing user messages and determining the appropriate intent and tools to use.

Your responsibilities:
1. Classify the user's intent into one of these categories:
   - knowledge_retrieval: User wants information from knowledge base
   - memory_access: User references past conversations or stored information
   - clarification_needed: User's request is ambiguous and needs clarification
   - conversation: General chat, greetings, or simple questions
   - multi_tool: Complex request requiring multiple tools
   - end_session: User wants to end the conversation

2. Select which tools should be executed (if any)
3. Determine if clarification is needed before proceeding
4. Provide reasoning for your decisions

Available tools will be provided in the user message.

Respond ONLY with valid JSON in this exact format:
{
  "intent": "intent_type",
  "confidence": 0.0 to 1.0,
  "selectedTools": ["tool1", "tool2"],
  "reasoning": "Brief explanation",
  "needsClarification": true/false,
  "clarificationQuestion": "Question to ask if clarification needed"
}"""


class ModelRouter:
    """Intent classification through a chat model; never raises"""

    def __init__(
        self,
        llm: BaseChatModel,
        registry: ToolRegistry,
        temperature: float = 0.3,
        max_tokens: int = 500,
        timeout_s: Optional[float] = 15.0,
        history_window: int = 5
    ):
        self.llm = llm
        self.registry = registry
        self.model_kwargs = {"temperature": temperature, "max_tokens": max_tokens}
        self.timeout_s = timeout_s
        self.history_window = history_window

    async def route(self, message: Message, history: Sequence[Message] = ()) -> RoutingDecision:
        try:
            raw = await invoke_json(
                self.llm,
                ROUTER_SYSTEM_PROMPT,
                self._build_prompt(message, history),
                model_kwargs=self.model_kwargs,
                timeout_s=self.timeout_s
            )
            decision = self._to_decision(raw, message.content)
        except Exception as e:
            error = e if isinstance(e, RoutingError) else RoutingError(str(e) or type(e).__name__)
            logger.warning("Model routing failed, falling back to conversation", error=error.message)
            return RoutingDecision(
                intent=IntentType.CONVERSATION,
                confidence=0.5,
                reasoning=f"Fallback due to routing error: {error.message}"
            )

        logger.info(
            "Message routed by model",
            intent=decision.intent.value,
            tools=decision.selected_tools,
            confidence=decision.confidence
        )
        return decision

    def _build_prompt(self, message: Message, history: Sequence[Message]) -> str:
        tool_descriptions = "\n".join(
            f"- {tool['name']}: {tool['description']}" for tool in self.registry.describe()
        )
        history_context = "\n".join(
            f"{turn.role.value}: {turn.content}" for turn in list(history)[-self.history_window:]
        )

        return (
            f"Available Tools:\n{tool_descriptions or 'None'}\n\n"
            f"Recent Conversation History:\n{history_context or 'No previous history'}\n\n"
            f"Current User Message:\n\"{message.content}\"\n\n"
            "Analyze this message and provide your routing decision."
        )

    def _to_decision(self, raw: Dict[str, Any], content: str) -> RoutingDecision:
        intent = IntentType.parse(raw.get("intent"))
        if intent is None:
            logger.debug("Invalid intent from model", intent=raw.get("intent"))
            intent = IntentType.CONVERSATION

        selected = raw.get("selectedTools", raw.get("selected_tools"))
        if not isinstance(selected, list):
            selected = []
        tools: List[str] = [
            name for name in dict.fromkeys(selected)
            if isinstance(name, str) and self.registry.has(name)
        ]

        try:
            confidence = min(1.0, max(0.0, float(raw.get("confidence", 0.5))))
        except (TypeError, ValueError):
            confidence = 0.5

        question = raw.get("clarificationQuestion", raw.get("clarification_question"))

        return RoutingDecision(
            intent=intent,
            confidence=confidence,
            selected_tools=tools,
            tool_inputs={name: ToolInput(query=content) for name in tools},
            reasoning=str(raw.get("reasoning") or ""),
            needs_clarification=bool(raw.get("needsClarification", raw.get("needs_clarification", False))),
            clarification_question=question if isinstance(question, str) and question else None
        )
