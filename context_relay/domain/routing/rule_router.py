from typing import List, Sequence

import structlog

from context_relay.domain.context.keyword_ranker import extract_keywords
from context_relay.domain.models.pipeline_state import IntentType, Message, RoutingDecision, ToolInput
from context_relay.domain.tool.builtin import CLARIFICATION_CHECK, KNOWLEDGE_SEARCH, MEMORY_RECALL
from .patterns import (
    CATEGORY_PATTERNS, CLARIFICATION_PATTERNS, COMMON_VERBS, KNOWLEDGE_PATTERNS,
    MEMORY_PATTERNS, PRONOUNS, SMALL_TALK, TIMEFRAME_PATTERNS, first_label, matches_any
)

logger = structlog.get_logger(__name__)


class RuleBasedRouter:
    """Deterministic, pattern-based intent classification"""

    def __init__(self, clarification_history: int = 3):
        self.clarification_history = clarification_history

    def route(self, message: Message, history: Sequence[Message] = ()) -> RoutingDecision:
        """Classify a message; checks run in priority order"""

        content = message.content.strip()
        needs_memory = matches_any(content, MEMORY_PATTERNS)
        needs_knowledge = matches_any(content, KNOWLEDGE_PATTERNS)

        if needs_memory and needs_knowledge:
            decision = RoutingDecision(
                intent=IntentType.MULTI_TOOL,
                confidence=0.85,
                selected_tools=[MEMORY_RECALL, KNOWLEDGE_SEARCH],
                tool_inputs={
                    MEMORY_RECALL: self._memory_input(content),
                    KNOWLEDGE_SEARCH: self._knowledge_input(content),
                },
                reasoning="User query requires both memory recall and knowledge retrieval"
            )
        elif needs_memory:
            decision = RoutingDecision(
                intent=IntentType.MEMORY_ACCESS,
                confidence=0.9,
                selected_tools=[MEMORY_RECALL],
                tool_inputs={MEMORY_RECALL: self._memory_input(content)},
                reasoning="User is requesting information from past conversations"
            )
        elif needs_knowledge:
            decision = RoutingDecision(
                intent=IntentType.KNOWLEDGE_RETRIEVAL,
                confidence=0.9,
                selected_tools=[KNOWLEDGE_SEARCH],
                tool_inputs={KNOWLEDGE_SEARCH: self._knowledge_input(content)},
                reasoning="User is requesting factual information or explanations"
            )
        elif self.needs_clarification(content, history):
            decision = RoutingDecision(
                intent=IntentType.CLARIFICATION_NEEDED,
                confidence=0.85,
                selected_tools=[CLARIFICATION_CHECK],
                tool_inputs={
                    CLARIFICATION_CHECK: ToolInput(
                        query=content,
                        parameters={"last_messages": list(history)[-self.clarification_history:]}
                    )
                },
                reasoning="User message is ambiguous or lacks sufficient context",
                needs_clarification=True
            )
        else:
            decision = RoutingDecision(
                intent=IntentType.CONVERSATION,
                confidence=0.95,
                reasoning="General conversational exchange, no specific tools needed"
            )

        logger.info(
            "Message routed",
            intent=decision.intent.value,
            tools=decision.selected_tools,
            confidence=decision.confidence
        )

        return decision

    def needs_clarification(self, content: str, history: Sequence[Message]) -> bool:
        """Short, pronoun-heavy or bare replies that cannot be answered as-is"""

        text = content.lower()
        if not text or SMALL_TALK.match(text):
            return False

        if matches_any(text, CLARIFICATION_PATTERNS):
            return True

        pronoun_count = len(PRONOUNS.findall(text))
        lacks_context = not history or len(text) < 20
        if pronoun_count > 2 and lacks_context:
            return True

        return len(text.split()) <= 3 and not COMMON_VERBS.search(text)

    def _memory_input(self, content: str) -> ToolInput:
        return ToolInput(
            query=content,
            timeframe=first_label(content, TIMEFRAME_PATTERNS),
            keywords=self._keywords(content)
        )

    def _knowledge_input(self, content: str) -> ToolInput:
        return ToolInput(
            query=content,
            category=first_label(content, CATEGORY_PATTERNS),
            keywords=self._keywords(content)
        )

    @staticmethod
    def _keywords(content: str) -> List[str]:
        return extract_keywords(content)
