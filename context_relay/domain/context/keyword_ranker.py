from typing import Iterable, List, Sequence, FrozenSet
import re


# Shared base for every stop-word list
_BASE_STOP_WORDS = frozenset({
    "the", "a", "an", "is", "are", "was", "were", "be", "been",
    "have", "has", "had", "do", "does", "did", "will", "would",
    "could", "should", "can", "to", "of", "in", "for", "on",
    "with", "at", "by", "from", "about", "what", "when", "where",
    "why", "how", "i", "you", "we", "they",
})

# Router keyword extraction (tool inputs)
ROUTER_STOP_WORDS: FrozenSet[str] = _BASE_STOP_WORDS | frozenset({
    "being", "may", "might", "must", "up", "into", "through", "during",
    "before", "after", "above", "below", "between", "under", "again",
    "further", "then", "once", "here", "there", "all", "any", "both",
    "each", "few", "more", "most", "other", "some", "such", "no", "nor",
    "not", "only", "own", "same", "so", "than", "too", "very", "just",
    "he", "she", "it", "which", "who", "whom", "this", "that", "these",
    "those", "am", "and", "but", "if", "or", "because", "as", "until",
    "while",
})

# Knowledge search terms when the router supplied none
SEARCH_STOP_WORDS: FrozenSet[str] = _BASE_STOP_WORDS | frozenset({
    "me", "my", "your", "tell", "explain", "describe", "information",
    "know", "best", "practice", "practices",
})

# Long-term memory query terms
MEMORY_STOP_WORDS: FrozenSet[str] = _BASE_STOP_WORDS | frozenset({
    "me", "my", "your", "remember", "recall", "mentioned", "said",
    "discussed", "talked",
})

_PUNCTUATION = re.compile(r"[^\w\s]")


def extract_keywords(text: str, stop_words: Iterable[str] = ROUTER_STOP_WORDS, min_length: int = 3) -> List[str]:
    """Lower-case, strip punctuation, drop stop words and short words; unique, in order of appearance"""

    stop = stop_words if isinstance(stop_words, (set, frozenset)) else set(stop_words)
    cleaned = _PUNCTUATION.sub("", (text or "").lower())

    return merge_keywords(
        word for word in cleaned.split()
        if len(word) >= min_length and word not in stop
    )


def merge_keywords(*groups: Iterable[str]) -> List[str]:
    """Order-preserving union of keyword groups"""

    seen = set()
    merged = []
    for group in groups:
        for keyword in group:
            keyword = keyword.strip().lower()
            if keyword and keyword not in seen:
                seen.add(keyword)
                merged.append(keyword)
    return merged


def count_term_hits(text: str, terms: Sequence[str]) -> int:
    """Number of terms that occur as substrings of text"""

    text_lower = text.lower()
    return sum(1 for term in terms if term.lower() in text_lower)


def score_memory(content: str, topics: Sequence[str], keywords: Sequence[str], base_score: float = 0.1) -> float:
    """Content hits count once, topic hits twice, normalised by keyword count"""

    if not keywords:
        return base_score

    content_lower = content.lower()
    topics_lower = [topic.lower() for topic in topics]

    score = 0
    for keyword in keywords:
        keyword_lower = keyword.lower()
        if keyword_lower in content_lower:
            score += 1
        # Topic match carries more weight
        if any(keyword_lower in topic for topic in topics_lower):
            score += 2

    return score / len(keywords)


def count_word_hits(text: str, terms: Sequence[str]) -> int:
    """Number of terms that occur as whole words or phrases of text"""

    return sum(
        1 for term in terms
        if re.search(rf"\b{re.escape(term)}\b", text, re.IGNORECASE)
    )
