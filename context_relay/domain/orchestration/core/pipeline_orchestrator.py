from typing import TypedDict, Annotated, Dict, List, Optional, Literal, Union
from datetime import datetime
import inspect
import operator
import re
import time

from langgraph.graph import StateGraph, END
from langchain_core.language_models import BaseChatModel
import structlog

from context_relay.domain.context.context_builder import ContextBuilder
from context_relay.domain.context.model_context_builder import ModelContextBuilder
from context_relay.domain.context.memory.memory_store import MemoryStore
from context_relay.domain.errors import OrchestratorDisposedError
from context_relay.domain.models.pipeline_state import (
    AgentResponse, ContextFrame, IntentType, Message, MessageRole, PipelineResult,
    RoutingDecision, SessionInfo, ToolResult, new_id, utc_now
)
from context_relay.domain.orchestration.subagent.response_agent import (
    BaseResponder, ChatModelResponder, ResponseAgent
)
from context_relay.domain.routing import Router
from context_relay.domain.routing.model_router import ModelRouter
from context_relay.domain.routing.rule_router import RuleBasedRouter
from context_relay.domain.tool.builtin import register_default_tools, register_voice_tools
from context_relay.domain.tool.tool_executor import ToolExecutor
from context_relay.domain.tool.tool_registry import ToolRegistry
from context_relay.infrastructure.config import PipelineConfig
from context_relay.infrastructure.observability.logging import pipeline_logger, metrics

logger = structlog.get_logger(__name__)


APOLOGY = "I apologize, but I encountered an issue processing your request. Could you try rephrasing that?"

# Only substantive exchanges are worth remembering
PROMOTED_INTENTS = frozenset({
    IntentType.KNOWLEDGE_RETRIEVAL,
    IntentType.MEMORY_ACCESS,
    IntentType.MULTI_TOOL,
})

TOPIC_PATTERNS: Dict[str, re.Pattern] = {
    "programming": re.compile(r"code|programming|function|\bapi\b|typescript|javascript", re.IGNORECASE),
    "design": re.compile(r"design|\bui\b|\bux\b|interface|layout", re.IGNORECASE),
    "data": re.compile(r"database|data|query|storage", re.IGNORECASE),
    "performance": re.compile(r"performance|speed|optimi[sz]e|cach", re.IGNORECASE),
    "security": re.compile(r"security|auth|encrypt|protect", re.IGNORECASE),
    "ai": re.compile(r"\bai\b|machine learning|\bmodel|neural", re.IGNORECASE),
    "architecture": re.compile(r"architecture|pattern|system|structure", re.IGNORECASE),
}
MAX_TOPICS = 3


class PipelineState(TypedDict, total=False):
    """State carried through the four pipeline stages"""
    user_message: Message
    history: List[Message]
    routing_decision: RoutingDecision
    tool_results: List[ToolResult]
    context_frame: ContextFrame
    response: AgentResponse
    stage_trace: Annotated[List[str], operator.add]


def extract_topics(*texts: str) -> List[str]:
    """Up to three topic tags from the closed topic vocabulary"""

    combined = " ".join(texts)
    return [topic for topic, pattern in TOPIC_PATTERNS.items() if pattern.search(combined)][:MAX_TOPICS]


class PipelineOrchestrator:
    """Routes, runs tools, builds context and responds for one session"""

    def __init__(
        self,
        memory: MemoryStore,
        registry: ToolRegistry,
        router: Router,
        context_builder: Union[ContextBuilder, ModelContextBuilder],
        responder: BaseResponder,
        tool_executor: Optional[ToolExecutor] = None
    ):
        self.memory = memory
        self.registry = registry
        self.router = router
        self.context_builder = context_builder
        self.responder = responder
        self.tool_executor = tool_executor

        self.session_id = new_id("session")
        self.start_time: datetime = utc_now()
        self.disposed = False

        self.workflow = self._create_workflow()

    @classmethod
    async def create(
        cls,
        config: Optional[PipelineConfig] = None,
        llm: Optional[BaseChatModel] = None,
        voice_tools: bool = False
    ) -> "PipelineOrchestrator":
        """Default wiring: rule-based routing and responses, or model-driven ones when llm is given"""

        config = config or PipelineConfig()

        memory = MemoryStore(
            max_session_messages=config.max_conversation_history,
            max_long_term_entries=config.long_term_memory_limit
        )
        if config.seed_demo_memories:
            await memory.seed_demo_memories()

        registry = ToolRegistry(
            timeout_s=config.max_tool_execution_time_s,
            parallel=config.enable_parallel_tool_execution
        )
        register_default_tools(
            registry,
            memory,
            memory_max_results=config.memory_max_results,
            knowledge_max_results=config.knowledge_max_results
        )
        if voice_tools:
            register_voice_tools(registry, memory)

        rule_context = ContextBuilder(
            registry,
            max_history=config.max_context_history,
            preview_messages=config.history_preview_messages,
            char_limit=config.history_char_limit
        )

        if llm is None:
            router: Router = RuleBasedRouter()
            responder: BaseResponder = ResponseAgent()
            tool_executor = None
            context_builder: Union[ContextBuilder, ModelContextBuilder] = rule_context
        else:
            router = ModelRouter(
                llm,
                registry,
                temperature=config.router_temperature,
                max_tokens=config.router_max_tokens,
                timeout_s=config.router_timeout_s
            )
            responder = ChatModelResponder(llm)
            tool_executor = ToolExecutor(
                registry,
                llm,
                temperature=config.executor_temperature,
                max_tokens=config.executor_max_tokens
            )
            context_builder = ModelContextBuilder(
                llm,
                rule_context,
                temperature=config.context_temperature,
                max_tokens=config.context_max_tokens
            )

        orchestrator = cls(memory, registry, router, context_builder, responder, tool_executor)
        logger.info(
            "Pipeline initialized",
            session_id=orchestrator.session_id,
            tools=registry.list(),
            model_driven=llm is not None
        )
        return orchestrator

    def _create_workflow(self):
        """Compile the route -> tools -> context -> response graph"""

        workflow = StateGraph(PipelineState)

        workflow.add_node("route", self.route_node)
        workflow.add_node("execute_tools", self.tool_execution_node)
        workflow.add_node("build_context", self.context_node)
        workflow.add_node("generate_response", self.response_node)

        workflow.set_entry_point("route")

        workflow.add_conditional_edges(
            "route",
            self.route_after_classification,
            {
                "execute_tools": "execute_tools",
                "build_context": "build_context"
            }
        )
        workflow.add_edge("execute_tools", "build_context")
        workflow.add_edge("build_context", "generate_response")
        workflow.add_edge("generate_response", END)

        return workflow.compile()

    async def route_node(self, state: PipelineState) -> Dict:
        start = time.perf_counter()

        decision = self.router.route(state["user_message"], state["history"])
        if inspect.isawaitable(decision):
            decision = await decision

        self._stage_done("route", "execute_tools", start, {"intent": decision.intent.value})
        return {"routing_decision": decision, "stage_trace": ["route"]}

    def route_after_classification(self, state: PipelineState) -> Literal["execute_tools", "build_context"]:
        """Skip tools when the router already has a clarification question to ask"""

        decision = state["routing_decision"]
        if decision.needs_clarification and decision.clarification_question:
            return "build_context"
        return "execute_tools"

    async def tool_execution_node(self, state: PipelineState) -> Dict:
        start = time.perf_counter()
        decision = state["routing_decision"]

        if self.tool_executor is not None:
            results = await self.tool_executor.execute_tools(
                decision.selected_tools,
                state["user_message"].content,
                state["history"]
            )
        else:
            tool_inputs = {
                name: decision.tool_inputs[name]
                for name in decision.selected_tools
                if self.registry.has(name)
            }
            dropped = [name for name in decision.selected_tools if name not in tool_inputs]
            if dropped:
                logger.debug("Dropping unregistered tools", tools=dropped)
            results = await self.registry.execute_multiple(tool_inputs)

        self._stage_done(
            "execute_tools", "build_context", start,
            {"results": {result.tool_name: result.success for result in results}}
        )
        return {"tool_results": results, "stage_trace": ["execute_tools"]}

    async def context_node(self, state: PipelineState) -> Dict:
        start = time.perf_counter()

        decision = state["routing_decision"]
        tool_results = state.get("tool_results", [])
        if not tool_results and decision.needs_clarification and decision.clarification_question:
            # Tools were skipped to ask a clarification question
            decision = decision.model_copy(update={
                "intent": IntentType.CLARIFICATION_NEEDED,
                "selected_tools": [],
                "tool_inputs": {}
            })

        frame = self.context_builder.build(
            state["user_message"],
            state["history"],
            decision,
            tool_results
        )
        if inspect.isawaitable(frame):
            frame = await frame

        self._stage_done("build_context", "generate_response", start)
        return {"context_frame": frame, "routing_decision": decision, "stage_trace": ["build_context"]}

    async def response_node(self, state: PipelineState) -> Dict:
        start = time.perf_counter()

        response = await self.responder.generate_response(state["context_frame"])

        self._stage_done("generate_response", "complete", start)
        return {"response": response, "stage_trace": ["generate_response"]}

    def _stage_done(self, stage: str, next_stage: str, start: float, details: Optional[Dict] = None):
        duration_ms = (time.perf_counter() - start) * 1000
        metrics.record_latency(f"stage.{stage}", duration_ms)
        pipeline_logger.log_stage_transition(
            self.session_id, stage, next_stage, {**(details or {}), "duration_ms": round(duration_ms, 2)}
        )

    async def process_message(self, text: str) -> PipelineResult:
        """Run one user message through the pipeline; never raises"""

        start = time.perf_counter()
        metrics.increment_counter("pipeline.messages")

        with structlog.contextvars.bound_contextvars(session_id=self.session_id):
            try:
                if self.disposed:
                    raise OrchestratorDisposedError()

                user_message = Message(role=MessageRole.USER, content=text)
                await self.memory.add_to_session(user_message)
                # Router sees prior turns only
                history = (await self.memory.get_session_history())[:-1]

                final_state = await self.workflow.ainvoke({
                    "user_message": user_message,
                    "history": history,
                    "tool_results": [],
                    "stage_trace": []
                })

                decision: RoutingDecision = final_state["routing_decision"]
                response: AgentResponse = final_state["response"]
                tool_results: List[ToolResult] = final_state.get("tool_results", [])

                await self.memory.add_to_session(Message(
                    role=MessageRole.ASSISTANT,
                    content=response.content,
                    metadata={
                        "reasoning": response.reasoning,
                        "tools_used": list(decision.selected_tools)
                    }
                ))

                if decision.intent in PROMOTED_INTENTS:
                    await self._promote_exchange(text, response.content)

                total_ms = (time.perf_counter() - start) * 1000
                metrics.record_latency("pipeline.total", total_ms)
                logger.info(
                    "Pipeline complete",
                    intent=decision.intent.value,
                    tools=decision.selected_tools,
                    duration_ms=round(total_ms, 2)
                )

                return PipelineResult(
                    success=True,
                    response=response,
                    routing_decision=decision,
                    tool_results=tool_results,
                    total_execution_time_ms=total_ms,
                    formatted_context=final_state["context_frame"].formatted_context
                )

            except Exception as e:
                total_ms = (time.perf_counter() - start) * 1000
                metrics.increment_counter("pipeline.failures")
                logger.error("Pipeline failed", error=str(e), duration_ms=round(total_ms, 2), exc_info=True)

                return PipelineResult(
                    success=False,
                    response=AgentResponse(content=APOLOGY, reasoning="Pipeline execution failed"),
                    routing_decision=RoutingDecision(
                        intent=IntentType.CONVERSATION,
                        confidence=0.0,
                        reasoning="Error occurred during processing"
                    ),
                    tool_results=[],
                    total_execution_time_ms=total_ms,
                    error=str(e) or type(e).__name__
                )

    async def _promote_exchange(self, user_text: str, response_text: str):
        topics = extract_topics(user_text, response_text)
        entry = await self.memory.add_to_long_term_memory(
            f"User asked about: {user_text}. Assistant discussed: {response_text[:100]}",
            topics
        )
        pipeline_logger.log_memory_update(
            self.session_id, "long_term", "promote", {"memory_id": entry.id, "topics": topics}
        )

    async def reset(self):
        """Start a fresh session; long-term memory is kept"""

        await self.memory.clear_session()
        await self.memory.working.clear()
        self.session_id = new_id("session")
        self.start_time = utc_now()
        logger.info("Session reset", session_id=self.session_id)

    async def dispose(self):
        """Release everything; later messages get a failure result"""

        if self.disposed:
            return
        await self.memory.clear()
        self.registry.clear()
        self.disposed = True
        logger.info("Pipeline disposed", session_id=self.session_id)

    async def get_conversation_history(self) -> List[Message]:
        return await self.memory.get_session_history()

    async def get_session_info(self) -> SessionInfo:
        history = await self.memory.get_session_history()
        return SessionInfo(
            session_id=self.session_id,
            start_time=self.start_time,
            uptime_seconds=(utc_now() - self.start_time).total_seconds(),
            message_count=len(history),
            long_term_memories=self.memory.long_term_count,
            tools=self.registry.list()
        )

    async def get_memory_summary(self) -> str:
        return await self.memory.get_summary(self.session_id)
