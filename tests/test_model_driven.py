import json

import pytest
from langchain_core.language_models import FakeListChatModel

from context_relay.domain.context.context_builder import ContextBuilder
from context_relay.domain.context.memory.memory_store import MemoryStore
from context_relay.domain.context.model_context_builder import ModelContextBuilder
from context_relay.domain.models.pipeline_state import (
    IntentType, RoutingDecision, ToolFailure, ToolInput, ToolSuccess
)
from context_relay.domain.routing.model_router import ModelRouter
from context_relay.domain.tool.builtin import register_default_tools
from context_relay.domain.tool.tool_executor import ToolExecutor
from context_relay.domain.tool.tool_registry import ToolRegistry
from context_relay.infrastructure.llm.structured_output import parse_json_object
from helpers import assistant, run, user


def fake_model(*responses) -> FakeListChatModel:
    return FakeListChatModel(responses=[r if isinstance(r, str) else json.dumps(r) for r in responses])


def default_registry() -> ToolRegistry:
    registry = ToolRegistry()
    register_default_tools(registry, MemoryStore())
    return registry


class TestParseJsonObject:
    def test_plain_and_fenced(self):
        assert parse_json_object('{"a": 1}') == {"a": 1}
        assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    @pytest.mark.parametrize("content", ["", "not json", "[1, 2]"])
    def test_rejects_non_objects(self, content):
        with pytest.raises(ValueError):
            parse_json_object(content)


class TestModelRouter:
    def test_alias_intent_and_unknown_tools_filtered(self):
        router = ModelRouter(fake_model({
            "intent": "general_conversation",
            "confidence": 0.7,
            "selectedTools": ["knowledge_search", "web_search"],
            "reasoning": "Chatting"
        }), default_registry())

        decision = run(router.route(user("Tell me something")))

        assert decision.intent == IntentType.CONVERSATION
        assert decision.selected_tools == ["knowledge_search"]
        assert decision.tool_inputs["knowledge_search"].query == "Tell me something"
        assert decision.confidence == 0.7
        assert decision.reasoning == "Chatting"

    def test_invalid_intent_defaults_to_conversation_and_confidence_clamped(self):
        router = ModelRouter(fake_model({"intent": "shopping", "confidence": 3}), default_registry())

        decision = run(router.route(user("Buy me shoes")))

        assert decision.intent == IntentType.CONVERSATION
        assert decision.confidence == 1.0
        assert decision.selected_tools == []

    def test_clarification_question_is_kept(self):
        router = ModelRouter(fake_model({
            "intent": "clarification_needed",
            "confidence": 0.6,
            "selectedTools": [],
            "needsClarification": True,
            "clarificationQuestion": "Which project do you mean?"
        }), default_registry())

        decision = run(router.route(user("fix it")))

        assert decision.intent == IntentType.CLARIFICATION_NEEDED
        assert decision.needs_clarification is True
        assert decision.clarification_question == "Which project do you mean?"

    def test_malformed_output_falls_back(self):
        router = ModelRouter(fake_model("I think this is a greeting"), default_registry())

        decision = run(router.route(user("Hello")))

        assert decision.intent == IntentType.CONVERSATION
        assert decision.confidence == 0.5
        assert decision.selected_tools == []
        assert decision.reasoning.startswith("Fallback due to routing error")


class TestToolExecutor:
    def test_model_parameters_are_coerced_and_executed(self):
        registry = default_registry()
        executor = ToolExecutor(registry, fake_model({
            "knowledge_search": {"query": "caching", "category": "data"}
        }))

        results = run(executor.execute_tools(["knowledge_search", "ghost_tool"], "How should I cache?", []))

        assert len(results) == 1
        assert results[0].tool_name == "knowledge_search"
        assert results[0].data["categories_searched"] == ["data"]
        assert results[0].data["results"] == ["Use caching strategies to improve query performance"]

    def test_model_failure_uses_message_as_query(self):
        registry = default_registry()
        executor = ToolExecutor(registry, fake_model("garbage"))

        inputs = run(executor.determine_tool_inputs(["knowledge_search"], "caching tips", []))

        assert inputs["knowledge_search"].query == "caching tips"

    def test_no_registered_tools_means_no_call(self):
        executor = ToolExecutor(default_registry(), fake_model("unused"))

        assert run(executor.execute_tools(["ghost_tool"], "hi", [])) == []


def knowledge_decision() -> RoutingDecision:
    return RoutingDecision(
        intent=IntentType.KNOWLEDGE_RETRIEVAL,
        confidence=0.8,
        selected_tools=["knowledge_search"],
        tool_inputs={"knowledge_search": ToolInput(query="indexes")}
    )


def context_builder(llm) -> ModelContextBuilder:
    return ModelContextBuilder(llm, ContextBuilder(default_registry()))


class TestModelContextBuilder:
    def test_model_context_and_style_are_used(self):
        builder = context_builder(fake_model({
            "formattedContext": "Indexes speed up lookups on queried columns.",
            "keyFacts": ["indexes help reads"],
            "hasErrors": False,
            "suggestedResponseStyle": {"tone": "informative", "verbosity": "detailed", "includeFollowUp": True}
        }))
        results = [ToolSuccess(tool_name="knowledge_search", data={"results": ["Use indexes"]})]

        frame = run(builder.build(
            user("Explain indexes"), [user("hi"), assistant("hello")], knowledge_decision(), results
        ))

        assert frame.formatted_context == "Indexes speed up lookups on queried columns."
        style = frame.suggested_response_style
        assert (style.tone, style.verbosity, style.include_follow_up) == ("informative", "detailed", True)
        assert [m.content for m in frame.conversation_history] == ["hi", "hello"]
        assert frame.tool_results == results

    def test_invalid_style_fields_fall_back_one_by_one(self):
        builder = context_builder(fake_model({
            "formattedContext": "",
            "suggestedResponseStyle": {"tone": "sarcastic", "verbosity": "concise", "includeFollowUp": "yes"}
        }))
        results = [ToolSuccess(tool_name="knowledge_search", data={"results": ["Use indexes"]})]

        frame = run(builder.build(user("Explain indexes"), [], knowledge_decision(), results))

        style = frame.suggested_response_style
        assert (style.tone, style.verbosity, style.include_follow_up) == ("friendly", "concise", False)
        assert frame.formatted_context == '[knowledge_search]: {"results": ["Use indexes"]}'

    def test_malformed_output_uses_plain_tool_formatting(self):
        builder = context_builder(fake_model("Here is your context!"))
        results = [
            ToolSuccess(tool_name="knowledge_search", data={"results": ["Use indexes"]}),
            ToolFailure(tool_name="broken", error="backend unavailable"),
        ]

        frame = run(builder.build(user("Explain indexes"), [], knowledge_decision(), results))

        assert frame.formatted_context == (
            '[knowledge_search]: {"results": ["Use indexes"]}\n\n'
            "[broken]: Error - backend unavailable"
        )
        style = frame.suggested_response_style
        assert (style.tone, style.verbosity, style.include_follow_up) == ("friendly", "balanced", False)

    def test_no_tool_results_skip_the_model(self):
        llm = fake_model("unused")
        conversation = RoutingDecision(intent=IntentType.CONVERSATION, confidence=0.9)

        frame = run(context_builder(llm).build(user("Hello!"), [], conversation, []))

        assert frame.formatted_context.startswith("## User Intent\n- Type: conversation")
        assert llm.i == 0
