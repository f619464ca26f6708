import asyncio

from context_relay.domain.orchestration.session_end import SessionEndCoordinator, SessionEndState
from helpers import run


def coordinator_with_log(fallback_timeout_s=1.0, settle_delay_s=0.01):
    calls = []
    coordinator = SessionEndCoordinator(
        lambda: calls.append("disconnect"),
        fallback_timeout_s=fallback_timeout_s,
        settle_delay_s=settle_delay_s
    )
    return coordinator, calls


class TestSessionEndCoordinator:
    def test_agent_then_audio(self):
        async def scenario():
            coordinator, calls = coordinator_with_log()
            coordinator.start()
            coordinator.agent_end()
            assert coordinator.state == SessionEndState.WAITING_FOR_AUDIO
            coordinator.audio_stopped()
            await asyncio.wait_for(coordinator.wait(), 1.0)
            return coordinator, calls

        coordinator, calls = run(scenario())

        assert coordinator.state == SessionEndState.BOTH_DONE
        assert coordinator.disconnected
        assert calls == ["disconnect"]

    def test_audio_then_agent(self):
        async def scenario():
            coordinator, calls = coordinator_with_log()
            coordinator.start()
            coordinator.audio_stopped()
            assert coordinator.state == SessionEndState.WAITING_FOR_AGENT
            coordinator.agent_end()
            await asyncio.wait_for(coordinator.wait(), 1.0)
            return coordinator, calls

        coordinator, calls = run(scenario())

        assert coordinator.state == SessionEndState.BOTH_DONE
        assert calls == ["disconnect"]

    def test_fallback_timeout_forces_disconnect(self):
        async def scenario():
            coordinator, calls = coordinator_with_log(fallback_timeout_s=0.05)
            coordinator.start()
            coordinator.agent_end()
            await asyncio.wait_for(coordinator.wait(), 1.0)
            return coordinator, calls

        coordinator, calls = run(scenario())

        assert coordinator.state == SessionEndState.TIMED_OUT
        assert calls == ["disconnect"]

    def test_duplicate_events_disconnect_once(self):
        async def scenario():
            coordinator, calls = coordinator_with_log(fallback_timeout_s=0.1)
            coordinator.start()
            coordinator.agent_end()
            coordinator.agent_end()
            coordinator.audio_stopped()
            coordinator.audio_stopped()
            await asyncio.wait_for(coordinator.wait(), 1.0)
            await asyncio.sleep(0.15)
            coordinator.agent_end()
            return calls

        assert run(scenario()) == ["disconnect"]

    def test_cancel_skips_callback(self):
        async def scenario():
            coordinator, calls = coordinator_with_log(fallback_timeout_s=0.05)
            coordinator.start()
            coordinator.cancel()
            await asyncio.wait_for(coordinator.wait(), 1.0)
            await asyncio.sleep(0.1)
            return calls

        assert run(scenario()) == []

    def test_async_callback_and_callback_errors(self):
        async def scenario():
            calls = []

            async def on_disconnect():
                calls.append("disconnect")
                raise RuntimeError("socket already closed")

            coordinator = SessionEndCoordinator(on_disconnect, fallback_timeout_s=0.05)
            coordinator.start()
            await asyncio.wait_for(coordinator.wait(), 1.0)
            return coordinator, calls

        coordinator, calls = run(scenario())

        assert calls == ["disconnect"]
        assert coordinator.disconnected
        assert coordinator.state == SessionEndState.TIMED_OUT

    def test_from_config(self, config):
        config = config.model_copy(update={"disconnect_timeout_s": 0.05, "disconnect_settle_s": 0.0})

        async def scenario():
            calls = []
            coordinator = SessionEndCoordinator.from_config(lambda: calls.append("disconnect"), config)
            coordinator.start()
            await asyncio.wait_for(coordinator.wait(), 1.0)
            return coordinator, calls

        coordinator, calls = run(scenario())

        assert coordinator.fallback_timeout_s == 0.05
        assert coordinator.state == SessionEndState.TIMED_OUT
        assert calls == ["disconnect"]
