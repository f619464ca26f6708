"""
Disconnect coordination after an end-session request.

The voice session may only close once the agent has finished its farewell
and the audio has stopped playing. Both events are awaited, with a fallback
timer in case either never arrives.

    waiting_for_both --agent_end--> waiting_for_audio --audio_stopped--> both_done
    waiting_for_both --audio_stopped--> waiting_for_agent --agent_end--> both_done
    waiting_for_* --fallback timer--> timed_out
"""

from enum import Enum
from typing import Awaitable, Callable, Optional, Union
import asyncio
import inspect

import structlog

from context_relay.infrastructure.config import PipelineConfig

logger = structlog.get_logger(__name__)

DisconnectCallback = Callable[[], Union[None, Awaitable[None]]]


class SessionEndState(str, Enum):
    WAITING_FOR_BOTH = "waiting_for_both"
    WAITING_FOR_AGENT = "waiting_for_agent"
    WAITING_FOR_AUDIO = "waiting_for_audio"
    BOTH_DONE = "both_done"
    TIMED_OUT = "timed_out"


WAITING_STATES = frozenset({
    SessionEndState.WAITING_FOR_BOTH,
    SessionEndState.WAITING_FOR_AGENT,
    SessionEndState.WAITING_FOR_AUDIO,
})


class SessionEndCoordinator:
    """Calls on_disconnect exactly once, after both events or the fallback timeout"""

    def __init__(
        self,
        on_disconnect: DisconnectCallback,
        fallback_timeout_s: float = 10.0,
        settle_delay_s: float = 1.0
    ):
        self.on_disconnect = on_disconnect
        self.fallback_timeout_s = fallback_timeout_s
        self.settle_delay_s = settle_delay_s

        self.state = SessionEndState.WAITING_FOR_BOTH
        self.disconnected = False
        self._timer: Optional[asyncio.Task] = None
        self._done = asyncio.Event()

    @classmethod
    def from_config(cls, on_disconnect: DisconnectCallback, config: PipelineConfig) -> "SessionEndCoordinator":
        return cls(
            on_disconnect,
            fallback_timeout_s=config.disconnect_timeout_s,
            settle_delay_s=config.disconnect_settle_s
        )

    def start(self):
        """Arm the fallback timer; must be called from a running event loop"""

        if self._timer is None and not self.disconnected:
            self._arm(self.fallback_timeout_s)
            logger.info("Waiting for session end", timeout_s=self.fallback_timeout_s)

    def agent_end(self):
        """The agent finished its final response"""

        if self.state == SessionEndState.WAITING_FOR_BOTH:
            self._transition(SessionEndState.WAITING_FOR_AUDIO)
        elif self.state == SessionEndState.WAITING_FOR_AGENT:
            self._both_done()

    def audio_stopped(self):
        """Audio playback stopped"""

        if self.state == SessionEndState.WAITING_FOR_BOTH:
            self._transition(SessionEndState.WAITING_FOR_AGENT)
        elif self.state == SessionEndState.WAITING_FOR_AUDIO:
            self._both_done()

    def cancel(self):
        """Abandon the pending disconnect without calling back"""

        self._cancel_timer()
        self.disconnected = True
        self._done.set()

    async def wait(self):
        """Block until the disconnect has happened or was cancelled"""
        await self._done.wait()

    def _both_done(self):
        self._transition(SessionEndState.BOTH_DONE)
        # Replace the fallback with the short settle delay
        self._cancel_timer()
        self._arm(self.settle_delay_s)

    def _transition(self, new_state: SessionEndState):
        logger.debug("Session end transition", from_state=self.state.value, to_state=new_state.value)
        self.state = new_state

    def _arm(self, delay_s: float):
        self._timer = asyncio.create_task(self._fire_after(delay_s))

    def _cancel_timer(self):
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _fire_after(self, delay_s: float):
        await asyncio.sleep(delay_s)

        if self.disconnected:
            return
        if self.state in WAITING_STATES:
            logger.warning("Disconnect timeout reached, forcing disconnect", state=self.state.value)
            self.state = SessionEndState.TIMED_OUT

        self.disconnected = True
        try:
            outcome = self.on_disconnect()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            # Nobody awaits the timer task, so the failure is reported here
            logger.error("Disconnect callback failed", error=str(e), exc_info=True)
        finally:
            self._done.set()
