from context_relay.domain.context.context_builder import SECTION_SEPARATOR, ContextBuilder
from context_relay.domain.models.pipeline_state import (
    IntentType, RoutingDecision, ToolFailure, ToolInput, ToolSuccess
)
from context_relay.domain.tool.tool_registry import ToolRegistry
from helpers import EchoTool, FailingTool, assistant, user


def make_builder(**kwargs) -> ContextBuilder:
    registry = ToolRegistry()
    registry.register(EchoTool("echo_tool"))
    registry.register(FailingTool())
    return ContextBuilder(registry, **kwargs)


def decision(intent: IntentType, tools=()) -> RoutingDecision:
    return RoutingDecision(
        intent=intent,
        confidence=0.9,
        selected_tools=list(tools),
        tool_inputs={name: ToolInput(query="q") for name in tools},
        reasoning="test reasoning"
    )


class TestContextBuilder:
    def test_sections_in_order(self):
        builder = make_builder()
        result = ToolSuccess(tool_name="echo_tool", data={"echo": "caching"}, execution_time_ms=1.5)

        frame = builder.build(
            user("What about caching?"),
            [user("earlier"), assistant("reply")],
            decision(IntentType.MEMORY_ACCESS, ["echo_tool"]),
            [result]
        )

        sections = frame.formatted_context.split(SECTION_SEPARATOR)
        assert [section.splitlines()[0] for section in sections] == [
            "## User Intent",
            "## Retrieved Information",
            "## Recent Conversation",
            "## Current User Message",
        ]
        assert "- Type: memory_access" in sections[0]
        assert "- Confidence: 90%" in sections[0]
        assert "- Tools Used: echo_tool" in sections[0]
        assert "### Echo Tool" in sections[1]
        assert "Echo: caching" in sections[1]
        assert "(Execution time: 1.50ms)" in sections[1]
        assert sections[3] == "## Current User Message\nWhat about caching?"

    def test_no_tool_section_without_results(self):
        frame = make_builder().build(user("Hello!"), [], decision(IntentType.CONVERSATION), [])

        assert "## Retrieved Information" not in frame.formatted_context
        assert "## Recent Conversation" not in frame.formatted_context
        assert "- Tools Used" not in frame.formatted_context

    def test_clarification_question_rendered_without_tools(self):
        pending = RoutingDecision(
            intent=IntentType.CLARIFICATION_NEEDED,
            confidence=0.6,
            needs_clarification=True,
            clarification_question="Which project do you mean?"
        )
        skipped = decision(IntentType.MEMORY_ACCESS, ["echo_tool"])

        frame = make_builder().build(user("that one"), [], pending, [])
        skipped_frame = make_builder().build(user("that one"), [], skipped, [])

        assert '- Suggested question: "Which project do you mean?"' in frame.formatted_context
        assert "- Type: clarification_needed" in frame.formatted_context
        assert "- Tools Used" not in skipped_frame.formatted_context

    def test_history_omitted_for_knowledge_retrieval(self):
        frame = make_builder().build(
            user("Explain indexes"),
            [user("earlier")],
            decision(IntentType.KNOWLEDGE_RETRIEVAL),
            []
        )

        assert "## Recent Conversation" not in frame.formatted_context
        assert frame.conversation_history[0].content == "earlier"

    def test_long_history_messages_truncated(self):
        frame = make_builder().build(user("and?"), [user("x" * 250)], decision(IntentType.CONVERSATION), [])

        assert "x" * 200 + "..." in frame.formatted_context
        assert "x" * 201 not in frame.formatted_context

    def test_history_trimmed_and_previewed(self):
        history = [user(f"message {i}") for i in range(15)]

        frame = make_builder().build(user("next"), history, decision(IntentType.CONVERSATION), [])

        assert [message.content for message in frame.conversation_history] == [f"message {i}" for i in range(5, 15)]
        assert "message 8" not in frame.formatted_context
        assert "message 9" in frame.formatted_context
        assert "User:\nmessage 14" in frame.formatted_context

    def test_failed_tool_formatted_with_error(self):
        failure = ToolFailure(tool_name="broken", error="backend unavailable")

        frame = make_builder().build(user("q"), [], decision(IntentType.KNOWLEDGE_RETRIEVAL, ["broken"]), [failure])

        assert "Broken: backend unavailable" in frame.formatted_context

    def test_build_minimal_skips_failures(self):
        builder = make_builder()
        results = [
            ToolSuccess(tool_name="echo_tool", data={"echo": "hi"}),
            ToolFailure(tool_name="broken", error="backend unavailable"),
        ]

        context = builder.build_minimal(user("hi"), results)

        assert context.startswith("User says: hi\n\nAvailable information:\n")
        assert "Echo: hi" in context
        assert "Broken" not in context

    def test_response_styles(self):
        knowledge = ContextBuilder.suggest_response_style(IntentType.KNOWLEDGE_RETRIEVAL)
        clarification = ContextBuilder.suggest_response_style(IntentType.CLARIFICATION_NEEDED)

        assert (knowledge.tone, knowledge.verbosity, knowledge.include_follow_up) == ("informative", "detailed", True)
        assert (clarification.tone, clarification.verbosity) == ("professional", "concise")
