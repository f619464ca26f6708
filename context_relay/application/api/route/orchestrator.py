from fastapi import APIRouter, HTTPException, Request
import structlog

from context_relay.domain.orchestration.core.pipeline_orchestrator import PipelineOrchestrator
from context_relay.domain.orchestration.session_registry import SessionRegistry
from context_relay.infrastructure.config import PipelineConfig
from context_relay.infrastructure.observability.logging import metrics
from ..schema import (
    HealthResponse, MessageRequest, OrchestrateAction, OrchestrateRequest,
    PipelineResponse, SessionResponse
)

logger = structlog.get_logger(__name__)

router = APIRouter()


def _pipeline(request: Request) -> PipelineOrchestrator:
    return request.app.state.pipeline


def _sessions(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def _config(request: Request) -> PipelineConfig:
    return request.app.state.config


@router.post("/api/orchestrator", response_model=PipelineResponse, response_model_exclude_none=True)
async def process_message(body: MessageRequest, request: Request):
    """Run a message through the process-wide pipeline"""

    if not body.message or not body.message.strip():
        raise HTTPException(status_code=400, detail="Message is required and must be a non-empty string")

    logger.info("Received orchestrator request", message=body.message[:100])

    result = await _pipeline(request).process_message(body.message)
    return PipelineResponse.from_result(result, include_context=_config(request).debug_mode)


@router.post("/api/orchestrate", response_model=SessionResponse, response_model_exclude_none=True)
async def orchestrate(body: OrchestrateRequest, request: Request):
    """Session-scoped actions: initialize, process, reset, get_history"""

    if not body.session_id:
        raise HTTPException(status_code=400, detail="session_id is required")

    try:
        action = OrchestrateAction(body.action)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown action: {body.action}")

    sessions = _sessions(request)
    session_id = body.session_id
    await sessions.reap_idle()

    if action == OrchestrateAction.INITIALIZE:
        await sessions.initialize(session_id)
        return SessionResponse(session_id=session_id, message="Orchestrator initialized")

    if action == OrchestrateAction.PROCESS:
        if not body.message or not body.message.strip():
            raise HTTPException(status_code=400, detail="message is required for process action")

        orchestrator = await sessions.get_or_create(session_id)
        result = await orchestrator.process_message(body.message)
        return SessionResponse(
            success=result.success,
            session_id=session_id,
            result=PipelineResponse.from_result(result, include_context=_config(request).debug_mode),
            session_info=await orchestrator.get_session_info()
        )

    if action == OrchestrateAction.RESET:
        await sessions.reset(session_id)
        return SessionResponse(session_id=session_id, message="Session reset")

    orchestrator = await sessions.get(session_id)
    if orchestrator is None:
        raise HTTPException(status_code=404, detail="Session not found")

    return SessionResponse(
        session_id=session_id,
        history=await orchestrator.get_conversation_history(),
        session_info=await orchestrator.get_session_info()
    )


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    return HealthResponse(
        active_sessions=len(_sessions(request)),
        tools=_pipeline(request).registry.list(),
        metrics=metrics.get_metrics_summary()
    )
