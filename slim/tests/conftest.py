"""
Pytest configuration and fixtures for SLIM tests.
"""
import pytest

from slim import SlimClient, SlimClientConfig, SlimServer


@pytest.fixture
def slim_server():
    """Daemon-mode server on an ephemeral port, served from a background thread."""
    server = SlimServer(("127.0.0.1", 0))
    thread = server.serve_in_thread()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=1.0)


@pytest.fixture
def slim_client(slim_server):
    client = SlimClient("127.0.0.1", slim_server.port, SlimClientConfig(read_timeout=5.0))
    client.connect()
    try:
        yield client
    finally:
        client.send_bye()
        client.close()
