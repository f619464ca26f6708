import pytest

from context_relay.domain.context.memory.memory_store import MemoryStore
from context_relay.domain.models.pipeline_state import ToolInput
from context_relay.domain.tool.builtin import (
    ClarificationCheckTool, KnowledgeBase, KnowledgeSearchTool, MemoryRecallTool,
    SentimentTool, GetMemoryTool, SetMemoryTool, UserContextTool, analyze_ambiguity,
    register_default_tools, register_voice_tools
)
from context_relay.domain.tool.tool_registry import ToolRegistry
from helpers import run, user, assistant


class TestKnowledgeSearch:
    def test_category_search_ranks_keyword_hits(self):
        tool = KnowledgeSearchTool()

        result = run(tool.execute(ToolInput(
            query="How do I implement caching in TypeScript?",
            category="programming",
            keywords=["implement", "caching", "typescript"]
        )))

        assert result.success
        assert result.data["categories_searched"] == ["programming"]
        assert result.data["results"][0] == "Use TypeScript for type safety in large applications"
        assert result.data["total_results"] == 2
        assert result.metadata["category"] == "programming"

    def test_terms_are_derived_from_query_when_no_keywords(self):
        result = run(KnowledgeSearchTool().execute(ToolInput(query="tell me about caching")))

        assert result.data["search_terms"] == ["caching"]
        assert result.data["results"] == ["Use caching strategies to improve query performance"]
        assert len(result.data["categories_searched"]) == 5

    def test_no_terms_returns_first_items_per_category_capped(self):
        result = run(KnowledgeSearchTool().execute(ToolInput(query="")))

        data = result.data
        assert data["total_results"] == 5
        assert data["results"][:2] == KnowledgeBase().entries["programming"][:2]
        assert data["results"][2:4] == KnowledgeBase().entries["design"][:2]

    def test_unknown_category_searches_everything(self):
        result = run(KnowledgeSearchTool().execute(ToolInput(keywords=["https"], category="cooking")))

        assert result.data["results"] == ["Use HTTPS for all communications"]
        assert len(result.data["categories_searched"]) == 5

    def test_custom_knowledge_base_and_empty_format(self):
        tool = KnowledgeSearchTool(KnowledgeBase({"ops": ["Rotate logs daily"]}))

        hit = run(tool.execute(ToolInput(keywords=["logs"])))
        miss = run(tool.execute(ToolInput(keywords=["kubernetes"])))

        assert tool.format_output(hit) == "Found 1 relevant knowledge items:\n\n1. Rotate logs daily\n"
        assert tool.format_output(miss) == "No relevant knowledge found for this query."


class TestClarificationCheck:
    def test_lone_pronoun_without_history_is_high(self):
        analysis = analyze_ambiguity("it", [])

        assert analysis.ambiguity_level == "high"
        assert analysis.has_sufficient_context is False
        assert "What are you referring to?" in analysis.suggested_questions
        assert len(analysis.suggested_questions) <= 3

    def test_single_word_topic_is_high_with_topic_questions(self):
        analysis = analyze_ambiguity("Kubernetes", [])

        assert analysis.ambiguity_level == "high"
        assert 'What would you like to know about "Kubernetes"?' in analysis.suggested_questions
        assert len(analysis.possible_intents) == 3

    def test_bare_reply_with_history_points_at_last_answer(self):
        history = [user("Can you help me?"), assistant("Would you like a summary of caching options?")]

        analysis = analyze_ambiguity("yes", history)

        # Single words stay high even when they answer a question
        assert analysis.ambiguity_level == "high"
        assert any(i.startswith('Responding to: "Would you like a summary') for i in analysis.possible_intents)
        assert analysis.has_sufficient_context is True

    def test_clear_message_is_low(self):
        analysis = analyze_ambiguity("Please compare the two caching approaches we talked about", [])

        assert analysis.ambiguity_level == "low"
        assert analysis.has_sufficient_context is True
        assert analysis.suggested_questions == []
        assert analysis.reasoning == "Message is clear enough to provide a helpful response."

    def test_tool_reads_last_messages_parameter(self):
        tool = ClarificationCheckTool()

        result = run(tool.execute(ToolInput(query="it", parameters={"last_messages": [user("a"), assistant("b")]})))

        assert result.success
        assert result.metadata == {"ambiguity_level": "high", "has_sufficient_context": True}
        assert "Ambiguity Level: high" in tool.format_output(result)


class TestMemoryRecall:
    def test_recall_searches_memory_store(self):
        async def scenario():
            memory = MemoryStore()
            await memory.add_to_long_term_memory("Chose Redis for caching", ["caching"])
            tool = MemoryRecallTool(memory)
            result = await tool.execute(ToolInput(query="what about caching", timeframe="week"))
            return tool, result

        tool, result = run(scenario())

        assert result.success
        assert result.data.total_found == 1
        assert result.metadata == {"entries_found": 1, "timeframe": "week"}
        assert tool.format_output(result).startswith("Found 1 relevant memories:\n[")


class TestVoiceTools:
    def test_sentiment(self):
        result = run(SentimentTool().execute(ToolInput(query="This is terrible and urgent, I am frustrated")))

        assert result.data["sentiment"] == "negative"
        assert result.data["urgency"] == "high"
        assert result.data["confidence"] == pytest.approx(2 / 3)

    def test_sentiment_matches_whole_words_only(self):
        farewell = run(SentimentTool().execute(ToolInput(query="Goodbye, see you tomorrow")))
        grateful = run(SentimentTool().execute(ToolInput(query="Thank you, that was great")))

        assert farewell.data["sentiment"] == "neutral"
        assert farewell.data["confidence"] == 0
        assert grateful.data["sentiment"] == "positive"
        assert grateful.data["confidence"] == pytest.approx(2 / 3)

    def test_sentiment_without_text_fails(self):
        result = run(SentimentTool().execute(ToolInput()))

        assert result.success is False
        assert result.data is None

    def test_set_then_get_memory(self):
        async def scenario():
            memory = MemoryStore()
            stored = await SetMemoryTool(memory).execute(
                ToolInput(parameters={"key": "user_preferences", "value": {"tone": "casual"}})
            )
            fetched = await GetMemoryTool(memory).execute(ToolInput(parameters={"key": "user_preferences"}))
            missing = await GetMemoryTool(memory).execute(ToolInput(parameters={"key": "nope"}))
            return stored, fetched, missing

        stored, fetched, missing = run(scenario())

        assert stored.data == {"key": "user_preferences", "stored": True, "ttl": "No expiration"}
        assert fetched.data == {"key": "user_preferences", "found": True, "value": {"tone": "casual"}}
        assert missing.data["found"] is False

    def test_set_memory_requires_key(self):
        result = run(SetMemoryTool(MemoryStore()).execute(ToolInput(parameters={"value": 1})))

        assert result.success is False
        assert "key" in result.error

    def test_user_context_counts_interactions(self):
        async def scenario():
            memory = MemoryStore()
            await memory.set_value("user_preferences", {"units": "metric"})
            tool = UserContextTool(memory)
            await tool.execute(ToolInput())
            return await tool.execute(ToolInput())

        result = run(scenario())

        assert result.data["interaction_count"] == 2
        assert result.data["preferences"] == {"units": "metric"}
        assert result.data["session_duration_s"] >= 0


class TestRegistrationHelpers:
    def test_default_and_voice_sets(self):
        registry = ToolRegistry()
        memory = MemoryStore()

        register_default_tools(registry, memory)
        assert registry.list() == ["memory_recall", "knowledge_search", "clarification_check"]

        register_voice_tools(registry, memory)
        assert registry.list(category="voice") == [
            "analyze_sentiment", "get_user_context", "get_memory", "set_memory"
        ]
