import pytest

from chat_service.utils.config import Config


@pytest.fixture
def make_config():
    """Build a Config with echo defaults, overriding any field by keyword."""

    def _make(**overrides):
        overrides.setdefault("llm_provider", "echo")
        return Config(**overrides)

    return _make
