from typing import Optional


class PipelineError(Exception):
    """Base error for the message pipeline"""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage


class RoutingError(PipelineError):
    """Classification call failed or returned unusable output"""

    def __init__(self, message: str):
        super().__init__(message, stage="route")


class ToolExecutionError(PipelineError):
    """A tool raised while running"""

    def __init__(self, tool_name: str, message: str):
        super().__init__(message, stage="execute_tools")
        self.tool_name = tool_name


class ToolTimeoutError(ToolExecutionError):
    """A tool did not finish inside its time limit"""

    def __init__(self, tool_name: str, timeout_s: float):
        super().__init__(tool_name, f"Tool '{tool_name}' execution timeout after {timeout_s:g}s")
        self.timeout_s = timeout_s


class OrchestratorDisposedError(PipelineError):
    """The orchestrator was used after dispose()"""

    def __init__(self):
        super().__init__("Orchestrator has been disposed")
