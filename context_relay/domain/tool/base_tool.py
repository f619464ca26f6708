from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
from datetime import datetime
import time

from context_relay.domain.models.pipeline_state import (
    ToolInput, ToolResult, ToolSuccess, ToolFailure, utc_now
)


class BaseTool(ABC):
    """Base class for tools the router can select"""

    # JSON schema for ToolInput.parameters, checked by the registry
    parameters_schema: Optional[Dict[str, Any]] = None

    def __init__(self, name: str, description: str):
        self.name = name
        self.description = description
        self.created_at: datetime = utc_now()
        self.last_active: datetime = utc_now()

    @abstractmethod
    async def run(self, tool_input: ToolInput) -> Any:
        """Do the work and return the payload; raise on failure"""
        pass

    @abstractmethod
    def format_output(self, result: ToolResult) -> str:
        """Render a result as text for the context builder"""
        pass

    def metadata_for(self, payload: Any, tool_input: ToolInput) -> Dict[str, Any]:
        """Extra metadata attached to a successful result"""
        return {}

    async def execute(self, tool_input: ToolInput) -> ToolResult:
        """Run the tool, timing it and turning exceptions into a failure result"""

        self.update_activity()
        start = time.perf_counter()

        try:
            payload = await self.run(tool_input)
        except Exception as e:
            return ToolFailure(
                tool_name=self.name,
                error=str(e) or f"{self.name} failed",
                execution_time_ms=_elapsed_ms(start)
            )

        return ToolSuccess(
            tool_name=self.name,
            data=payload,
            execution_time_ms=_elapsed_ms(start),
            metadata=self.metadata_for(payload, tool_input)
        )

    def update_activity(self):
        """Update last activity timestamp"""
        self.last_active = utc_now()

    def get_info(self) -> Dict[str, Any]:
        """Get tool information"""
        return {
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at.isoformat(),
            "last_active": self.last_active.isoformat()
        }


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
