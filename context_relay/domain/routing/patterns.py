"""
Regular expressions the rule-based router classifies with
"""

from typing import Iterable, Optional, Pattern, Sequence, Tuple
import re

MEMORY_PATTERNS = [
    re.compile(r"remember|recall|last time|previously|earlier|you said|we discussed|mentioned", re.IGNORECASE),
    re.compile(r"what did (i|you|we) (say|discuss|talk about)", re.IGNORECASE),
    re.compile(r"history|past conversation", re.IGNORECASE),
]

KNOWLEDGE_PATTERNS = [
    re.compile(r"how (do|does|to|can)|what is|explain|tell me about|describe", re.IGNORECASE),
    re.compile(r"best practice|documentation|guide|tutorial", re.IGNORECASE),
    re.compile(r"information (on|about)|learn about", re.IGNORECASE),
]

CLARIFICATION_PATTERNS = [
    re.compile(r"^(it|this|that|the thing|something)$", re.IGNORECASE),
    re.compile(r"^.{1,15}$"),
    re.compile(r"^(yes|no|ok|sure|maybe)$", re.IGNORECASE),
]

# Greetings, thanks and farewells are never ambiguous
SMALL_TALK = re.compile(
    r"^(hello|hi|hey|good (morning|afternoon|evening)|thanks|thank you|bye|goodbye|see you)\b",
    re.IGNORECASE
)

PRONOUNS = re.compile(r"\b(it|this|that|they)\b", re.IGNORECASE)

COMMON_VERBS = re.compile(
    r"\b(is|are|was|were|do|does|did|have|has|had|can|could|will|would|should|get|make"
    r"|know|think|want|need|see|find|tell|ask|use|try)\b",
    re.IGNORECASE
)

# First match wins
TIMEFRAME_PATTERNS: Sequence[Tuple[Pattern, str]] = (
    (re.compile(r"last week|past week", re.IGNORECASE), "week"),
    (re.compile(r"yesterday|last day", re.IGNORECASE), "day"),
    (re.compile(r"last month|past month", re.IGNORECASE), "month"),
)

CATEGORY_PATTERNS: Sequence[Tuple[Pattern, str]] = (
    (re.compile(r"code|programming|function|\bapi\b|typescript|javascript|python", re.IGNORECASE), "programming"),
    (re.compile(r"design|\bui\b|\bux\b|interface", re.IGNORECASE), "design"),
    (re.compile(r"database|\bsql\b|query|data", re.IGNORECASE), "data"),
)


def matches_any(text: str, patterns: Iterable[Pattern]) -> bool:
    return any(pattern.search(text) for pattern in patterns)


def first_label(text: str, labelled: Sequence[Tuple[Pattern, str]]) -> Optional[str]:
    """Label of the first pattern that matches, if any"""

    for pattern, label in labelled:
        if pattern.search(text):
            return label
    return None
