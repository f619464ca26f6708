import pytest
from pydantic import ValidationError

from context_relay.infrastructure.config import PipelineConfig


class TestPipelineConfig:
    def test_defaults(self):
        config = PipelineConfig()

        assert config.max_tool_execution_time_s == 30.0
        assert config.max_context_history == 10
        assert config.long_term_memory_limit is None
        assert config.seed_demo_memories is True

    def test_from_env_overrides(self):
        config = PipelineConfig.from_env({
            "CONTEXT_RELAY_MAX_TOOL_EXECUTION_TIME_S": "5",
            "CONTEXT_RELAY_ENABLE_PARALLEL_TOOL_EXECUTION": "false",
            "CONTEXT_RELAY_LONG_TERM_MEMORY_LIMIT": "100",
            "UNRELATED": "ignored",
        })

        assert config.max_tool_execution_time_s == 5.0
        assert config.enable_parallel_tool_execution is False
        assert config.long_term_memory_limit == 100

    def test_empty_memory_limit_means_unbounded(self):
        config = PipelineConfig.from_env({"CONTEXT_RELAY_LONG_TERM_MEMORY_LIMIT": ""})

        assert config.long_term_memory_limit is None

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            PipelineConfig.from_env({"CONTEXT_RELAY_MAX_TOOL_EXECUTION_TIME_S": "0"})
