from typing import Dict, Any, Optional

from context_relay.domain.context.keyword_ranker import SEARCH_STOP_WORDS, extract_keywords
from context_relay.domain.models.pipeline_state import ToolInput, ToolResult
from ..base_tool import BaseTool
from .knowledge_base import KnowledgeBase


class KnowledgeSearchTool(BaseTool):
    """Looks up best practices in the knowledge base"""

    def __init__(self, knowledge_base: Optional[KnowledgeBase] = None, max_results: int = 5):
        super().__init__(
            name="knowledge_search",
            description="Searches the knowledge base for relevant information, best practices, and documentation"
        )
        self.knowledge_base = knowledge_base or KnowledgeBase()
        self.max_results = max_results

    async def run(self, tool_input: ToolInput) -> Dict[str, Any]:
        query = tool_input.query or ""
        # Router keywords win; otherwise derive terms from the query
        search_terms = list(tool_input.keywords) or extract_keywords(query, SEARCH_STOP_WORDS)

        found = self.knowledge_base.search(
            search_terms,
            category=tool_input.category,
            max_results=self.max_results
        )

        return {
            "results": found["results"],
            "search_terms": search_terms,
            "categories_searched": found["categories_searched"],
            "total_results": len(found["results"])
        }

    def metadata_for(self, payload: Dict[str, Any], tool_input: ToolInput) -> Dict[str, Any]:
        return {
            "category": tool_input.category,
            "query_length": len(tool_input.query or "")
        }

    def format_output(self, result: ToolResult) -> str:
        if not result.success:
            return f"Knowledge search failed: {result.error}"

        data = result.data
        if data["total_results"] == 0:
            return "No relevant knowledge found for this query."

        output = f"Found {data['total_results']} relevant knowledge items:\n\n"
        for index, item in enumerate(data["results"], start=1):
            output += f"{index}. {item}\n"

        return output
