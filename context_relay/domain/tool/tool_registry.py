from typing import Dict, Any, List, Iterable, Mapping, Optional
import asyncio
import time

import structlog

from context_relay.domain.errors import ToolTimeoutError
from context_relay.domain.models.pipeline_state import ToolInput, ToolResult, ToolFailure
from context_relay.infrastructure.observability.logging import pipeline_logger, metrics
from .base_tool import BaseTool
from .tool_validator import ToolInputValidator

logger = structlog.get_logger(__name__)


class ToolRegistry:
    """Registry mapping tool names to executable tools"""

    def __init__(self, timeout_s: Optional[float] = 30.0, parallel: bool = True):
        self.tools: Dict[str, BaseTool] = {}
        self.tool_categories: Dict[str, List[str]] = {}
        self.timeout_s = timeout_s
        self.parallel = parallel

    def register(self, tool: BaseTool, category: str = "core"):
        """Register a tool, replacing any tool with the same name"""

        if tool.name in self.tools:
            logger.warning("Replacing registered tool", tool_name=tool.name)
            self._drop_from_categories(tool.name)

        self.tools[tool.name] = tool
        self.tool_categories.setdefault(category, []).append(tool.name)

        logger.info("Registered tool", tool_name=tool.name, category=category)

    def register_many(self, tools: Iterable[BaseTool], category: str = "core"):
        for tool in tools:
            self.register(tool, category=category)

    def get(self, name: str) -> Optional[BaseTool]:
        return self.tools.get(name)

    def has(self, name: str) -> bool:
        return name in self.tools

    def list(self, category: Optional[str] = None) -> List[str]:
        """Registered tool names, optionally for one category"""

        if category is None:
            return list(self.tools.keys())
        return [name for name in self.tool_categories.get(category, []) if name in self.tools]

    def describe(self) -> List[Dict[str, Any]]:
        """Name, description and activity timestamps of every tool"""

        return [tool.get_info() for tool in self.tools.values()]

    def clear(self):
        self.tools.clear()
        self.tool_categories.clear()

    async def execute_single(self, name: str, tool_input: Optional[ToolInput] = None) -> ToolResult:
        """Execute one tool; never raises"""

        tool_input = tool_input or ToolInput()
        tool = self.tools.get(name)

        if tool is None:
            logger.error("Tool not found", tool_name=name)
            return ToolFailure(
                tool_name=name,
                error=f"Tool '{name}' not found in registry",
                execution_time_ms=0.0
            )

        errors = ToolInputValidator.validate_parameters(tool, tool_input.parameters)
        if errors:
            logger.warning("Rejected tool parameters", tool_name=name, errors=errors)
            return ToolFailure(
                tool_name=name,
                error=f"Invalid parameters for tool '{name}': {'; '.join(errors)}",
                execution_time_ms=0.0
            )

        start = time.perf_counter()
        try:
            if self.timeout_s is None:
                result = await tool.execute(tool_input)
            else:
                result = await asyncio.wait_for(tool.execute(tool_input), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            result = ToolFailure(
                tool_name=name,
                error=ToolTimeoutError(name, self.timeout_s).message,
                execution_time_ms=(time.perf_counter() - start) * 1000
            )
        except Exception as e:
            result = ToolFailure(
                tool_name=name,
                error=str(e) or "Unknown error",
                execution_time_ms=(time.perf_counter() - start) * 1000
            )

        pipeline_logger.log_tool_execution(
            tool_name=name,
            input_data=tool_input.model_dump(exclude_defaults=True),
            duration_ms=result.execution_time_ms,
            success=result.success,
            error=getattr(result, "error", None)
        )
        metrics.record_latency(f"tool.{name}", result.execution_time_ms)

        return result

    async def execute_multiple(self, tool_inputs: Mapping[str, ToolInput]) -> List[ToolResult]:
        """Execute several tools, concurrently unless parallel execution is off; results keep mapping order"""

        names = list(tool_inputs.keys())
        if not names:
            logger.debug("No tools to execute")
            return []

        logger.info("Executing tools", tools=names, parallel=self.parallel)

        if self.parallel:
            # execute_single absorbs every failure, so siblings never see one
            results = await asyncio.gather(
                *(self.execute_single(name, tool_inputs[name]) for name in names)
            )
        else:
            results = []
            for name in names:
                results.append(await self.execute_single(name, tool_inputs[name]))

        logger.info(
            "Tools completed",
            results={result.tool_name: result.success for result in results}
        )

        return list(results)

    def format_result(self, name: str, result: ToolResult) -> str:
        """Render a result with its own tool's presenter"""

        tool = self.tools.get(name)
        if tool is None:
            return f"[{name}] Error: Tool not found"
        return tool.format_output(result)

    def _drop_from_categories(self, name: str):
        for tool_names in self.tool_categories.values():
            if name in tool_names:
                tool_names.remove(name)
