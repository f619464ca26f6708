"""
Pipeline configuration - defaults plus environment overrides
"""

from typing import Dict, Any, Optional
import os

from pydantic import BaseModel, Field


ENV_PREFIX = "CONTEXT_RELAY_"


class PipelineConfig(BaseModel):
    """Tunables for one orchestrator instance"""

    # Tool execution
    max_tool_execution_time_s: float = Field(default=30.0, gt=0, description="Per-tool timeout")
    enable_parallel_tool_execution: bool = Field(default=True)

    # History and context
    max_conversation_history: int = Field(default=50, ge=1, description="Session messages kept before eviction")
    max_context_history: int = Field(default=10, ge=0, description="History messages handed to the context builder")
    history_preview_messages: int = Field(default=6, ge=0)
    history_char_limit: int = Field(default=200, ge=1)

    # Retrieval
    memory_max_results: int = Field(default=5, ge=1)
    knowledge_max_results: int = Field(default=5, ge=1)
    long_term_memory_limit: Optional[int] = Field(default=None, ge=1, description="None keeps every entry")
    seed_demo_memories: bool = Field(default=True)

    # Model-driven variants
    router_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    router_max_tokens: int = Field(default=500, ge=1)
    router_timeout_s: float = Field(default=15.0, gt=0)
    executor_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    executor_max_tokens: int = Field(default=1000, ge=1)
    context_temperature: float = Field(default=0.4, ge=0.0, le=2.0)
    context_max_tokens: int = Field(default=1500, ge=1)

    # Sessions
    session_idle_timeout_s: float = Field(default=30 * 60, gt=0)
    disconnect_timeout_s: float = Field(default=10.0, gt=0)
    disconnect_settle_s: float = Field(default=1.0, ge=0)

    # Observability
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    debug_mode: bool = Field(default=False)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "PipelineConfig":
        """Build a config from CONTEXT_RELAY_* variables, e.g. CONTEXT_RELAY_MAX_TOOL_EXECUTION_TIME_S=5"""

        environ = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}

        for field_name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{field_name.upper()}")
            if raw is None:
                continue
            # Empty string means "unset" for optional fields
            if raw == "" and field_name == "long_term_memory_limit":
                overrides[field_name] = None
            else:
                overrides[field_name] = raw

        # Pydantic coerces the raw strings ("true", "5", "0.3")
        return cls.model_validate(overrides)
