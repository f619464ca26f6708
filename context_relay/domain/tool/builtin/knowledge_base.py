"""
In-process knowledge table, searched by keyword hits per category
"""

from typing import Dict, List, Optional, Sequence

from context_relay.domain.context.keyword_ranker import count_term_hits


DEFAULT_KNOWLEDGE: Dict[str, List[str]] = {
    "programming": [
        "Use TypeScript for type safety in large applications",
        "Prefer functional programming patterns for better testability",
        "Implement proper error handling with try-catch and custom error types",
        "Use dependency injection for better code modularity",
        "Follow SOLID principles for maintainable code",
    ],
    "design": [
        "Prioritize user experience over visual aesthetics",
        "Use consistent spacing and typography throughout the UI",
        "Implement responsive design for multi-device support",
        "Follow accessibility guidelines (WCAG) for inclusive design",
        "Use design systems for consistency across the application",
    ],
    "data": [
        "Normalize database schemas to reduce redundancy",
        "Use indexes on frequently queried columns",
        "Implement proper data validation at both client and server",
        "Consider eventual consistency for distributed systems",
        "Use caching strategies to improve query performance",
    ],
    "performance": [
        "Lazy load components that are not immediately visible",
        "Implement code splitting to reduce initial bundle size",
        "Use memoization for expensive computations",
        "Optimize images and assets for faster loading",
        "Profile and measure before optimizing",
    ],
    "security": [
        "Never store sensitive data in plain text",
        "Implement proper authentication and authorization",
        "Sanitize all user inputs to prevent injection attacks",
        "Use HTTPS for all communications",
        "Follow the principle of least privilege",
    ],
}


class KnowledgeBase:
    """Categorized knowledge items"""

    def __init__(self, entries: Optional[Dict[str, List[str]]] = None, fallback_items: int = 2):
        source = DEFAULT_KNOWLEDGE if entries is None else entries
        self.entries: Dict[str, List[str]] = {category: list(items) for category, items in source.items()}
        self.fallback_items = fallback_items

    @property
    def categories(self) -> List[str]:
        return list(self.entries.keys())

    def add(self, category: str, item: str):
        self.entries.setdefault(category, []).append(item)

    def search_category(self, category: str, terms: Sequence[str]) -> List[str]:
        """Items of one category with at least one term hit, best first"""

        items = self.entries.get(category, [])

        if not terms:
            return items[:self.fallback_items]

        scored = [(item, count_term_hits(item, terms)) for item in items]
        # Stable sort keeps table order between equal scores
        scored.sort(key=lambda pair: pair[1], reverse=True)

        return [item for item, score in scored if score > 0]

    def search(self, terms: Sequence[str], category: Optional[str] = None, max_results: int = 5) -> Dict[str, List[str]]:
        """Search one known category, or every category when none (or an unknown one) is given"""

        if category and category in self.entries:
            searched = [category]
        else:
            searched = self.categories

        results: List[str] = []
        for name in searched:
            for item in self.search_category(name, terms):
                if item not in results:
                    results.append(item)

        return {
            "results": results[:max_results],
            "categories_searched": searched
        }
