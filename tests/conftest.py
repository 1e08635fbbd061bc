import pytest

from observability.event_store import event_store
from relay_server.config import reset_config
from relay_server.session import stream_session_manager


@pytest.fixture(autouse=True)
def cleanup():
    """Reset process-wide state between tests."""
    reset_config()
    yield
    reset_config()
    stream_session_manager.clear()
    event_store.clear()
