from typing import Dict, Any, List, Literal, Sequence, Union
import re

from pydantic import BaseModel, Field

from context_relay.domain.models.pipeline_state import Message, MessageRole, ToolInput, ToolResult
from ..base_tool import BaseTool


AmbiguityLevel = Literal["low", "medium", "high"]

PRONOUNS = re.compile(r"\b(it|this|that|they|them)\b", re.IGNORECASE)
BARE_REPLY = re.compile(r"^(yes|no|ok|sure|maybe|probably)$", re.IGNORECASE)
SINGLE_WORD_EXEMPT = re.compile(r"^(help|hello|hi|bye|thanks)$", re.IGNORECASE)

REASONING = {
    "high": "Message lacks sufficient context or specificity for a helpful response.",
    "medium": "Message could benefit from additional details but may be answerable.",
    "low": "Message is clear enough to provide a helpful response.",
}


class ClarificationAnalysis(BaseModel):
    """How ambiguous a message is and what to ask back"""
    ambiguity_level: AmbiguityLevel
    has_sufficient_context: bool
    suggested_questions: List[str] = Field(default_factory=list)
    possible_intents: List[str] = Field(default_factory=list)
    reasoning: str


def _role_and_content(message: Union[Message, Dict[str, Any]]):
    if isinstance(message, Message):
        return message.role.value, message.content
    return str(message.get("role", "")), str(message.get("content", ""))


def analyze_ambiguity(query: str, last_messages: Sequence[Union[Message, Dict[str, Any]]]) -> ClarificationAnalysis:
    """Score a message's ambiguity from its length, pronouns and bare replies"""

    query_lower = query.lower().strip()
    word_count = len(query_lower.split()) or 1

    level: AmbiguityLevel = "low"
    questions: List[str] = []
    intents: List[str] = []

    if word_count <= 2:
        level = "high"
        questions.append("Could you provide more details about what you need?")
        intents.append("Confirmation of previous topic")
        intents.append("New topic introduction")

    if PRONOUNS.search(query_lower) and not last_messages:
        level = "high"
        questions.append("What are you referring to?")

    if BARE_REPLY.match(query_lower):
        if not last_messages:
            level = "high"
            questions.append("Could you provide more context about what you mean?")
        else:
            level = "medium"
            assistant_turns = [
                content for role, content in map(_role_and_content, last_messages)
                if role == MessageRole.ASSISTANT.value
            ]
            if assistant_turns:
                intents.append(f'Responding to: "{assistant_turns[-1][:50]}..."')

    if word_count == 1 and not SINGLE_WORD_EXEMPT.match(query_lower):
        level = "high"
        questions.append(f'What would you like to know about "{query}"?')
        questions.append(f'Are you looking for information, help, or something else related to "{query}"?')
        intents.append("Topic exploration")
        intents.append("Definition request")
        intents.append("Help with specific task")

    has_sufficient_context = len(last_messages) >= 2 or level == "low"

    if level == "medium" and not questions:
        questions.append("Could you elaborate on what you need help with?")

    if level == "high" and len(questions) < 2:
        questions.append("What specific aspect are you interested in?")

    return ClarificationAnalysis(
        ambiguity_level=level,
        has_sufficient_context=has_sufficient_context,
        suggested_questions=questions[:3],
        possible_intents=intents[:3],
        reasoning=REASONING[level]
    )


class ClarificationCheckTool(BaseTool):
    """Analyzes ambiguous messages and suggests clarification questions"""

    def __init__(self):
        super().__init__(
            name="clarification_check",
            description="Analyzes ambiguous user messages and suggests clarification questions"
        )

    async def run(self, tool_input: ToolInput) -> ClarificationAnalysis:
        last_messages = tool_input.parameters.get("last_messages") or []
        return analyze_ambiguity(tool_input.query or "", last_messages)

    def metadata_for(self, payload: ClarificationAnalysis, tool_input: ToolInput) -> Dict[str, Any]:
        return {
            "ambiguity_level": payload.ambiguity_level,
            "has_sufficient_context": payload.has_sufficient_context
        }

    def format_output(self, result: ToolResult) -> str:
        if not result.success:
            return f"Clarification check failed: {result.error}"

        analysis: ClarificationAnalysis = result.data

        output = f"Ambiguity Level: {analysis.ambiguity_level}\n"
        output += f"Context Available: {'Yes' if analysis.has_sufficient_context else 'No'}\n\n"

        if analysis.suggested_questions:
            output += "Suggested clarification questions:\n"
            for index, question in enumerate(analysis.suggested_questions, start=1):
                output += f"{index}. {question}\n"

        if analysis.possible_intents:
            output += "\nPossible user intents:\n"
            for intent in analysis.possible_intents:
                output += f"- {intent}\n"

        return output
