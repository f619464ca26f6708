from langchain_core.language_models import FakeListChatModel

from context_relay.domain.context.context_builder import ContextBuilder
from context_relay.domain.models.pipeline_state import (
    IntentType, MemoryEntry, MemorySearchResult, RoutingDecision, ToolInput, ToolSuccess
)
from context_relay.domain.orchestration.subagent.response_agent import (
    FAREWELL_TEXT, ChatModelResponder, ResponseAgent, format_context_for_response
)
from context_relay.domain.tool.builtin import register_default_tools
from context_relay.domain.context.memory.memory_store import MemoryStore
from context_relay.domain.tool.tool_registry import ToolRegistry
from helpers import run, user


def frame_for(text, intent=IntentType.CONVERSATION, tool_results=(), **decision_fields):
    registry = ToolRegistry()
    register_default_tools(registry, MemoryStore())
    tools = [result.tool_name for result in tool_results]
    decision = RoutingDecision(
        intent=intent,
        confidence=0.9,
        selected_tools=tools,
        tool_inputs={name: ToolInput(query=text) for name in tools},
        reasoning="test",
        **decision_fields
    )
    return ContextBuilder(registry).build(user(text), [], decision, list(tool_results))


class TestResponseAgent:
    def test_conversation_patterns(self):
        agent = ResponseAgent()

        thanks = run(agent.generate_response(frame_for("Thanks a lot")))
        bye = run(agent.generate_response(frame_for("bye for now")))
        other = run(agent.generate_response(frame_for("The weather is nice")))

        assert thanks.content == "You're welcome! Is there anything else I can help with?"
        assert bye.content == FAREWELL_TEXT
        assert other.content == 'I understand you\'re saying: "The weather is nice". How would you like me to help with this?'

    def test_end_session_says_farewell(self):
        response = run(ResponseAgent().generate_response(frame_for("stop", IntentType.END_SESSION)))

        assert response.content == FAREWELL_TEXT

    def test_memory_synthesis_uses_first_two_entries(self):
        result = ToolSuccess(tool_name="memory_recall", data=MemorySearchResult(
            entries=[MemoryEntry(content="We chose Redis"), MemoryEntry(content="Caching TTL is five minutes")],
            total_found=2,
            search_query="caching"
        ))

        response = run(ResponseAgent().generate_response(
            frame_for("what did we say about caching", IntentType.MEMORY_ACCESS, [result])
        ))

        assert response.content == (
            "Here's what I recall from our conversations: We chose Redis"
            " I also remember that caching ttl is five minutes"
        )
        assert response.metadata == {"memories_used": 2}

    def test_missing_clarification_check_uses_router_question(self):
        frame = frame_for(
            "fix it",
            IntentType.CLARIFICATION_NEEDED,
            needs_clarification=True,
            clarification_question="Which service is failing?"
        )

        response = run(ResponseAgent().generate_response(frame))

        assert response.content == "Which service is failing?"


class TestChatModelResponder:
    def test_uses_model_text(self):
        responder = ChatModelResponder(FakeListChatModel(responses=["  Sure, happy to help.  "]))

        response = run(responder.generate_response(frame_for("Hello!")))

        assert response.content == "Sure, happy to help."
        assert response.metadata == {"responder": "chat_model"}

    def test_empty_model_output_falls_back(self):
        responder = ChatModelResponder(FakeListChatModel(responses=["   "]))

        response = run(responder.generate_response(frame_for("Hello!")))

        assert response.content == "Hello! How can I help you today?"


def test_format_context_for_response():
    text = format_context_for_response(frame_for("Explain indexes", IntentType.KNOWLEDGE_RETRIEVAL))

    assert text.startswith("[USER MESSAGE]: Explain indexes\n\n[INTENT]: knowledge_retrieval")
    assert "[CONTEXT FROM TOOLS]:\n## User Intent" in text
    assert text.endswith(
        "[STYLE GUIDANCE]: Use a informative tone, detailed responses. Consider asking a follow-up question."
    )
