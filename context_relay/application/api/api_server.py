from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from langchain_core.language_models import BaseChatModel
import structlog

from context_relay.domain.orchestration.core.pipeline_orchestrator import PipelineOrchestrator
from context_relay.domain.orchestration.session_registry import SessionRegistry
from context_relay.infrastructure.config import PipelineConfig
from context_relay.infrastructure.observability.logging import setup_logging
from .route.orchestrator import router

logger = structlog.get_logger(__name__)


def create_app(config: Optional[PipelineConfig] = None, llm: Optional[BaseChatModel] = None) -> FastAPI:
    """Build the HTTP surface around one shared pipeline and a per-session registry"""

    config = config or PipelineConfig.from_env()
    setup_logging(log_level=config.log_level, log_format=config.log_format)

    async def new_orchestrator() -> PipelineOrchestrator:
        return await PipelineOrchestrator.create(config, llm=llm)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.pipeline = await new_orchestrator()
        app.state.sessions = SessionRegistry(new_orchestrator, idle_timeout_s=config.session_idle_timeout_s)
        logger.info("API server started")

        yield

        await app.state.sessions.dispose_all()
        await app.state.pipeline.dispose()
        logger.info("API server shutdown")

    app = FastAPI(title="Context Relay", lifespan=lifespan)
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
