from typing import Dict, Any, List, Optional, Literal, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import datetime, timezone
from enum import Enum
import uuid


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class MessageRole(str, Enum):
    """Speaker of a message"""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class IntentType(str, Enum):
    """What a user message is trying to accomplish"""
    KNOWLEDGE_RETRIEVAL = "knowledge_retrieval"
    MEMORY_ACCESS = "memory_access"
    CLARIFICATION_NEEDED = "clarification_needed"
    CONVERSATION = "conversation"
    MULTI_TOOL = "multi_tool"
    END_SESSION = "end_session"

    @classmethod
    def parse(cls, value: Any) -> Optional["IntentType"]:
        """Map a raw label (including model aliases) onto the canonical vocabulary"""

        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        label = value.strip().lower()
        label = INTENT_ALIASES.get(label, label)
        try:
            return cls(label)
        except ValueError:
            return None


INTENT_ALIASES: Dict[str, str] = {
    "general_conversation": IntentType.CONVERSATION.value,
    "multi_step_task": IntentType.MULTI_TOOL.value,
}


class Message(BaseModel):
    """A single conversation turn; immutable once created"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("msg"))
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ToolInput(BaseModel):
    """Structured tool input; each tool reads only the fields it understands"""
    model_config = ConfigDict(extra="ignore")

    query: Optional[str] = None
    timeframe: Optional[str] = None
    category: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ToolSuccess(BaseModel):
    """Tool finished and produced a payload"""
    success: Literal[True] = True
    tool_name: str
    data: Any = None
    execution_time_ms: float = 0.0
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ToolFailure(BaseModel):
    """Tool failed, timed out or was missing; never carries data"""
    success: Literal[False] = False
    tool_name: str
    data: None = None
    error: str
    execution_time_ms: float = 0.0
    metadata: Dict[str, Any] = Field(default_factory=dict)


ToolResult = Union[ToolSuccess, ToolFailure]


class RoutingDecision(BaseModel):
    """Router output: one intent plus the tool plan for a message"""
    intent: IntentType
    confidence: float = Field(ge=0.0, le=1.0)
    selected_tools: List[str] = Field(default_factory=list)
    tool_inputs: Dict[str, ToolInput] = Field(default_factory=dict)
    reasoning: str = ""
    needs_clarification: bool = False
    clarification_question: Optional[str] = None

    @model_validator(mode="after")
    def _inputs_cover_selected_tools(self) -> "RoutingDecision":
        missing = [name for name in self.selected_tools if name not in self.tool_inputs]
        if missing:
            raise ValueError(f"selected tools without inputs: {', '.join(missing)}")
        if len(set(self.selected_tools)) != len(self.selected_tools):
            raise ValueError("selected tools must be unique")
        return self


class ResponseStyle(BaseModel):
    """Style hints for the response stage"""
    tone: Literal["friendly", "professional", "empathetic", "informative"] = "friendly"
    verbosity: Literal["concise", "detailed", "balanced"] = "balanced"
    include_follow_up: bool = False


class ContextFrame(BaseModel):
    """Everything the response stage needs for one message"""
    model_config = ConfigDict(frozen=True)

    user_message: Message
    conversation_history: List[Message] = Field(default_factory=list)
    routing_decision: RoutingDecision
    tool_results: List[ToolResult] = Field(default_factory=list)
    formatted_context: str
    suggested_response_style: ResponseStyle = Field(default_factory=ResponseStyle)
    timestamp: datetime = Field(default_factory=utc_now)


class AgentResponse(BaseModel):
    """Response stage output"""
    content: str
    reasoning: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PipelineResult(BaseModel):
    """Final result of processing one message"""
    success: bool
    response: AgentResponse
    routing_decision: RoutingDecision
    tool_results: List[ToolResult] = Field(default_factory=list)
    total_execution_time_ms: float = 0.0
    error: Optional[str] = None
    formatted_context: Optional[str] = None


class MemoryEntry(BaseModel):
    """Long-term, topic-tagged memory; never mutated once stored"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("mem"))
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    topics: List[str] = Field(default_factory=list)
    relevance_score: Optional[float] = None


class MemorySearchResult(BaseModel):
    """Ranked long-term memory hits for a query"""
    entries: List[MemoryEntry] = Field(default_factory=list)
    total_found: int = 0
    search_query: str = ""


class SessionInfo(BaseModel):
    """Snapshot of an orchestrator session"""
    session_id: str
    start_time: datetime
    uptime_seconds: float
    message_count: int
    long_term_memories: int
    tools: List[str] = Field(default_factory=list)
