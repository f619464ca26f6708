from typing import Dict, Any

from context_relay.domain.context.keyword_ranker import count_word_hits
from context_relay.domain.models.pipeline_state import ToolInput, ToolResult
from ..base_tool import BaseTool


POSITIVE_WORDS = ["happy", "great", "love", "excellent", "wonderful", "good", "thanks", "thank you", "awesome", "perfect"]
NEGATIVE_WORDS = ["sad", "bad", "hate", "terrible", "awful", "wrong", "problem", "issue", "frustrated", "angry"]
URGENT_WORDS = ["urgent", "asap", "immediately", "help", "emergency", "critical", "important"]


def analyze_sentiment(text: str) -> Dict[str, Any]:
    """Word-list sentiment with urgency and intensity"""

    positive = count_word_hits(text, POSITIVE_WORDS)
    negative = count_word_hits(text, NEGATIVE_WORDS)
    urgent = count_word_hits(text, URGENT_WORDS)

    balance = positive - negative
    if balance > 0:
        sentiment = "positive"
    elif balance < 0:
        sentiment = "negative"
    else:
        sentiment = "neutral"

    return {
        "sentiment": sentiment,
        "confidence": min(1.0, (positive + negative) / 3),
        "urgency": "high" if urgent > 0 else "normal",
        "emotional_intensity": min(1.0, (positive + negative) / 5)
    }


class SentimentTool(BaseTool):
    """Estimates the emotional tone of a message"""

    parameters_schema = {
        "type": "object",
        "properties": {"text": {"type": ["string", "null"]}}
    }

    def __init__(self):
        super().__init__(
            name="analyze_sentiment",
            description="Analyze the sentiment and emotional tone of a user message"
        )

    async def run(self, tool_input: ToolInput) -> Dict[str, Any]:
        text = tool_input.parameters.get("text") or tool_input.query
        if not isinstance(text, str) or not text:
            raise ValueError("No text to analyze")
        return analyze_sentiment(text)

    def format_output(self, result: ToolResult) -> str:
        if not result.success:
            return f"Sentiment analysis failed: {result.error}"

        data = result.data
        return (
            f"Sentiment: {data['sentiment']} (confidence: {data['confidence'] * 100:.0f}%)\n"
            f"Urgency: {data['urgency']}\n"
            f"Emotional intensity: {data['emotional_intensity']:.1f}"
        )
