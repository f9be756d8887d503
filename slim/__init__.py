"""
slim - SLIM protocol engine for driving test fixtures over a socket.

    codec.py        → list serialization & frame I/O
    statements.py   → statement/result model, exception sentinels
    interaction.py  → fixture registry & invocation strategies
    executor.py     → per-connection statement interpreter
    server.py       → socket service
    client.py       → session driver used by test runners
    service.py      → slim-service command line
"""

from .codec import SlimConnectionClosed, SlimProtocolError, decode, encode, read_frame, write_frame  # noqa: F401
from .statements import (  # noqa: F401
    EXCEPTION_STOP_TEST_TAG,
    EXCEPTION_TAG,
    SLIM_VERSION,
    ResultEntry,
    SlimError,
    Statement,
    StopTestException,
    Verb,
)
from .interaction import (  # noqa: F401
    DefaultInteraction,
    FixtureAdapter,
    FixtureInteraction,
    FixtureRegistry,
    SimpleInteraction,
)
from .executor import ExecutionState, StatementExecutor  # noqa: F401
from .server import SlimServer  # noqa: F401
from .client import (  # noqa: F401
    SlimClient,
    SlimClientConfig,
    SlimClientError,
    SlimConnectionError,
    SlimVersionError,
    connect_with_retry,
)

__all__ = [
    "encode",
    "decode",
    "read_frame",
    "write_frame",
    "SlimProtocolError",
    "SlimConnectionClosed",
    "Statement",
    "ResultEntry",
    "Verb",
    "SlimError",
    "StopTestException",
    "EXCEPTION_TAG",
    "EXCEPTION_STOP_TEST_TAG",
    "SLIM_VERSION",
    "FixtureInteraction",
    "DefaultInteraction",
    "SimpleInteraction",
    "FixtureAdapter",
    "FixtureRegistry",
    "StatementExecutor",
    "ExecutionState",
    "SlimServer",
    "SlimClient",
    "SlimClientConfig",
    "SlimClientError",
    "SlimConnectionError",
    "SlimVersionError",
    "connect_with_retry",
]

__version__ = "0.1.0-dev"
