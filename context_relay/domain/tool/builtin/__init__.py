from typing import List, Optional

from context_relay.domain.context.memory.memory_store import MemoryStore
from ..base_tool import BaseTool
from ..tool_registry import ToolRegistry
from .clarification_check import ClarificationCheckTool, ClarificationAnalysis, analyze_ambiguity
from .knowledge_base import KnowledgeBase
from .knowledge_search import KnowledgeSearchTool
from .memory_recall import MemoryRecallTool
from .sentiment import SentimentTool
from .session_memory import GetMemoryTool, SetMemoryTool
from .user_context import UserContextTool

MEMORY_RECALL = "memory_recall"
KNOWLEDGE_SEARCH = "knowledge_search"
CLARIFICATION_CHECK = "clarification_check"


def register_default_tools(
    registry: ToolRegistry,
    memory: MemoryStore,
    knowledge_base: Optional[KnowledgeBase] = None,
    memory_max_results: int = 5,
    knowledge_max_results: int = 5
) -> List[BaseTool]:
    """Register the three core tools the rule-based router selects"""

    tools = [
        MemoryRecallTool(memory, max_results=memory_max_results),
        KnowledgeSearchTool(knowledge_base, max_results=knowledge_max_results),
        ClarificationCheckTool(),
    ]
    registry.register_many(tools, category="core")
    return tools


def register_voice_tools(registry: ToolRegistry, memory: MemoryStore) -> List[BaseTool]:
    """Register the session-oriented tools used by the voice assistant"""

    tools = [
        SentimentTool(),
        UserContextTool(memory),
        GetMemoryTool(memory),
        SetMemoryTool(memory),
    ]
    registry.register_many(tools, category="voice")
    return tools


__all__ = [
    "MEMORY_RECALL",
    "KNOWLEDGE_SEARCH",
    "CLARIFICATION_CHECK",
    "ClarificationAnalysis",
    "ClarificationCheckTool",
    "GetMemoryTool",
    "KnowledgeBase",
    "KnowledgeSearchTool",
    "MemoryRecallTool",
    "SentimentTool",
    "SetMemoryTool",
    "UserContextTool",
    "analyze_ambiguity",
    "register_default_tools",
    "register_voice_tools",
]
