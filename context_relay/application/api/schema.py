from typing import Dict, Any, Optional, List, Literal
from pydantic import BaseModel, Field
from enum import Enum

from context_relay.domain.models.pipeline_state import Message, PipelineResult, SessionInfo


class OrchestrateAction(str, Enum):
    """Session actions accepted by /api/orchestrate"""
    INITIALIZE = "initialize"
    PROCESS = "process"
    RESET = "reset"
    GET_HISTORY = "get_history"

    @classmethod
    def _missing_(cls, value):
        # camelCase spelling used by existing clients
        if value == "getHistory":
            return cls.GET_HISTORY
        return None


class MessageRequest(BaseModel):
    """Single-pipeline request"""
    message: Optional[str] = None


class OrchestrateRequest(BaseModel):
    """Session-scoped request"""
    action: Optional[str] = None
    session_id: Optional[str] = None
    message: Optional[str] = None


class PipelineResponse(BaseModel):
    """Flattened view of a pipeline result"""
    success: bool
    response: str
    intent: str
    reasoning: Optional[str] = None
    tools_used: List[str] = Field(default_factory=list)
    execution_time_ms: float
    error: Optional[str] = None
    formatted_context: Optional[str] = None

    @classmethod
    def from_result(cls, result: PipelineResult, include_context: bool = False) -> "PipelineResponse":
        return cls(
            success=result.success,
            response=result.response.content,
            intent=result.routing_decision.intent.value,
            reasoning=result.response.reasoning,
            tools_used=result.routing_decision.selected_tools,
            execution_time_ms=result.total_execution_time_ms,
            error=result.error,
            formatted_context=result.formatted_context if include_context else None
        )


class SessionResponse(BaseModel):
    """Result of an orchestrate action"""
    success: bool = True
    session_id: str
    message: Optional[str] = None
    result: Optional[PipelineResponse] = None
    history: Optional[List[Message]] = None
    session_info: Optional[SessionInfo] = None


class HealthResponse(BaseModel):
    status: Literal["healthy"] = "healthy"
    active_sessions: int
    tools: List[str] = Field(default_factory=list)
    metrics: Dict[str, Any] = Field(default_factory=dict)
