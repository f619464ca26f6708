"""
Shared fixtures for the pipeline tests.

Async code is driven with asyncio.run inside plain tests; every object that
owns an asyncio lock is created and used inside a single asyncio.run call.
"""

import pytest

from context_relay.infrastructure.config import PipelineConfig
from context_relay.infrastructure.observability.logging import metrics


@pytest.fixture
def config() -> PipelineConfig:
    """Defaults without the demonstration memories"""
    return PipelineConfig(seed_demo_memories=False, log_format="console")


@pytest.fixture(autouse=True)
def reset_metrics():
    yield
    metrics.reset()
