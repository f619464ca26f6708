from abc import ABC, abstractmethod
from typing import List, Optional
import re

import structlog
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from context_relay.domain.models.pipeline_state import (
    AgentResponse, ContextFrame, IntentType, ToolResult
)
from context_relay.domain.tool.builtin import CLARIFICATION_CHECK, KNOWLEDGE_SEARCH, MEMORY_RECALL

logger = structlog.get_logger(__name__)


RESPONSE_SYSTEM_PROMPT = """You are a helpful AI assistant. Your task is to generate natural, conversational responses based on the provided context.

Guidelines:
- Be concise but thorough
- Use information from tools when available
- Maintain a warm, helpful tone
- Ask clarifying questions when context suggests ambiguity
- Reference past conversations naturally when relevant
- Keep responses suitable for voice output (avoid overly long lists or complex formatting)"""

GREETING = re.compile(r"^(hello|hi|hey|greetings)", re.IGNORECASE)
THANKS = re.compile(r"^(thanks|thank you|appreciate)", re.IGNORECASE)
FAREWELL = re.compile(r"^(bye|goodbye|see you|talk later)", re.IGNORECASE)

FAREWELL_TEXT = "Goodbye! Feel free to reach out whenever you need assistance."


class BaseResponder(ABC):
    """Final pipeline stage: phrase a reply from a context frame"""

    @abstractmethod
    async def generate_response(self, frame: ContextFrame) -> AgentResponse:
        """Produce the reply; implementations must not raise"""
        pass


def _find_result(frame: ContextFrame, tool_name: str) -> Optional[ToolResult]:
    return next((result for result in frame.tool_results if result.tool_name == tool_name), None)


class ResponseAgent(BaseResponder):
    """Rule-based responder that reads tool payloads directly"""

    async def generate_response(self, frame: ContextFrame) -> AgentResponse:
        intent = frame.routing_decision.intent

        if intent == IntentType.CLARIFICATION_NEEDED:
            response = self._clarification(frame)
        elif intent == IntentType.MEMORY_ACCESS:
            response = self._memory(frame)
        elif intent == IntentType.KNOWLEDGE_RETRIEVAL:
            response = self._knowledge(frame)
        elif intent == IntentType.MULTI_TOOL:
            response = self._multi_tool(frame)
        elif intent == IntentType.END_SESSION:
            response = AgentResponse(content=FAREWELL_TEXT, reasoning="Session end requested")
        else:
            response = self._conversation(frame)

        logger.debug("Response generated", intent=intent.value, reasoning=response.reasoning)
        return response

    def _clarification(self, frame: ContextFrame) -> AgentResponse:
        result = _find_result(frame, CLARIFICATION_CHECK)

        if result is None or not result.success or result.data is None:
            question = frame.routing_decision.clarification_question
            return AgentResponse(
                content=question or (
                    "I want to make sure I understand you correctly. "
                    "Could you provide more details about what you need help with?"
                ),
                reasoning="Clarification check unavailable, using generic clarification request"
            )

        analysis = result.data
        question = (
            analysis.suggested_questions[0] if analysis.suggested_questions
            else "Could you tell me more about what you need?"
        )

        return AgentResponse(
            content=question,
            reasoning=f"Ambiguity level: {analysis.ambiguity_level}. Asking for clarification.",
            metadata={"possible_intents": analysis.possible_intents}
        )

    def _memory(self, frame: ContextFrame) -> AgentResponse:
        result = _find_result(frame, MEMORY_RECALL)

        if result is None or not result.success:
            return AgentResponse(
                content="I couldn't find any relevant information from our past conversations. Could you remind me what we discussed?",
                reasoning="Memory recall failed or returned no results"
            )

        search_result = result.data
        if search_result.total_found == 0:
            return AgentResponse(
                content="I don't have any memories related to that topic. Perhaps we haven't discussed it yet?",
                reasoning="No relevant memories found"
            )

        memories = [entry.content for entry in search_result.entries][:3]

        return AgentResponse(
            content=_synthesize_memories(memories),
            reasoning=f"Found {search_result.total_found} relevant memories",
            metadata={"memories_used": len(memories)}
        )

    def _knowledge(self, frame: ContextFrame) -> AgentResponse:
        result = _find_result(frame, KNOWLEDGE_SEARCH)

        if result is None or not result.success:
            return AgentResponse(
                content="I couldn't find specific information on that topic. Could you be more specific about what you'd like to know?",
                reasoning="Knowledge search failed"
            )

        data = result.data
        if data["total_results"] == 0:
            return AgentResponse(
                content="I don't have specific documentation on that topic, but I'd be happy to help based on general knowledge. What aspect interests you most?",
                reasoning="No knowledge base results found"
            )

        return AgentResponse(
            content=_synthesize_knowledge(data["results"]),
            reasoning=f"Found {data['total_results']} knowledge items",
            metadata={"knowledge_items_used": len(data["results"])}
        )

    def _multi_tool(self, frame: ContextFrame) -> AgentResponse:
        parts: List[str] = []
        sources: List[str] = []

        memory_result = _find_result(frame, MEMORY_RECALL)
        if memory_result is not None and memory_result.success and memory_result.data.total_found > 0:
            parts.append(f"Based on our previous discussions: {memory_result.data.entries[0].content}")
            sources.append(MEMORY_RECALL)

        knowledge_result = _find_result(frame, KNOWLEDGE_SEARCH)
        if knowledge_result is not None and knowledge_result.success and knowledge_result.data["total_results"] > 0:
            parts.append(f"Additionally, {knowledge_result.data['results'][0].lower()}")
            sources.append(KNOWLEDGE_SEARCH)

        if not parts:
            return AgentResponse(
                content="I searched both our conversation history and my knowledge base, but couldn't find relevant information. Could you provide more context?",
                reasoning="Multi-tool search returned no results"
            )

        return AgentResponse(
            content=" ".join(parts),
            reasoning=f"Combined information from multiple sources: {', '.join(sources)}"
        )

    def _conversation(self, frame: ContextFrame) -> AgentResponse:
        content = frame.user_message.content.strip()

        if GREETING.match(content):
            return AgentResponse(
                content="Hello! How can I help you today?",
                reasoning="Greeting detected, responding with greeting"
            )

        if THANKS.match(content):
            return AgentResponse(
                content="You're welcome! Is there anything else I can help with?",
                reasoning="Thanks detected, acknowledging gratitude"
            )

        if FAREWELL.match(content):
            return AgentResponse(content=FAREWELL_TEXT, reasoning="Farewell detected, saying goodbye")

        return AgentResponse(
            content=f'I understand you\'re saying: "{content}". How would you like me to help with this?',
            reasoning="General conversation, seeking clarification on how to assist"
        )


def _synthesize_memories(memories: List[str]) -> str:
    if len(memories) == 1:
        return f"Yes, I remember that. {memories[0]}."

    return (
        f"Here's what I recall from our conversations: {memories[0]}"
        f" I also remember that {memories[1].lower()}"
    )


def _synthesize_knowledge(results: List[str]) -> str:
    if len(results) == 1:
        return f"Here's what I found: {results[0]}"

    response = f"Based on best practices, {results[0].lower()}"
    response += f" Additionally, {results[1].lower()}"
    if len(results) > 2:
        response += " Would you like me to share more recommendations?"
    return response


class ChatModelResponder(BaseResponder):
    """Phrases the reply with a chat model, falling back to the rule-based agent"""

    def __init__(
        self,
        llm: BaseChatModel,
        fallback: Optional[BaseResponder] = None,
        system_prompt: str = RESPONSE_SYSTEM_PROMPT
    ):
        self.llm = llm
        self.fallback = fallback or ResponseAgent()
        self.system_prompt = system_prompt

    async def generate_response(self, frame: ContextFrame) -> AgentResponse:
        try:
            message = await self.llm.ainvoke([
                SystemMessage(content=self.system_prompt),
                HumanMessage(content=format_context_for_response(frame)),
            ])
            content = message.content if isinstance(message.content, str) else ""
            if not content.strip():
                raise ValueError("Empty response from model")
        except Exception as e:
            logger.warning("Model response failed, using rule-based response", error=str(e))
            return await self.fallback.generate_response(frame)

        return AgentResponse(
            content=content.strip(),
            reasoning=f"Model response for intent {frame.routing_decision.intent.value}",
            metadata={"responder": "chat_model"}
        )


def format_context_for_response(frame: ContextFrame) -> str:
    """Hand-off text for a voice or chat response model"""

    parts = [
        f"[USER MESSAGE]: {frame.user_message.content}",
        f"[INTENT]: {frame.routing_decision.intent.value}",
    ]

    if frame.formatted_context:
        parts.append(f"[CONTEXT FROM TOOLS]:\n{frame.formatted_context}")

    style = frame.suggested_response_style
    guidance = f"[STYLE GUIDANCE]: Use a {style.tone} tone, {style.verbosity} responses."
    if style.include_follow_up:
        guidance += " Consider asking a follow-up question."
    parts.append(guidance)

    return "\n\n".join(parts)
