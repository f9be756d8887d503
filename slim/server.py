"""SLIM socket server: one handler thread and one executor per connection."""

from __future__ import annotations

import logging
import socketserver
import threading
from typing import Callable, Optional, Tuple, Type

from .codec import SlimConnectionClosed, SlimProtocolError, decode, encode, read_frame, write_frame
from .executor import StatementExecutor
from .interaction import DefaultInteraction, FixtureInteraction
from .statements import BYE, SLIM_VERSION, parse_statements

logger = logging.getLogger(__name__)


def version_line(version: str = SLIM_VERSION) -> bytes:
    return f"Slim -- V{version}\n".encode("ascii")


class _SlimHandler(socketserver.StreamRequestHandler):
    server: "SlimServer"

    def setup(self) -> None:
        super().setup()
        self.executor = self.server.create_executor()

    def handle(self) -> None:
        peer = self.client_address
        logger.info("session opened from %s:%s", peer[0], peer[1])
        try:
            self.wfile.write(version_line(self.server.version))
            self.wfile.flush()
            while True:
                try:
                    message = read_frame(self.rfile)
                except SlimConnectionClosed:
                    logger.info("peer %s:%s closed without bye", peer[0], peer[1])
                    break
                if message == BYE:
                    logger.info("bye from %s:%s", peer[0], peer[1])
                    break
                statements = parse_statements(decode(message))
                logger.debug("executing %d statement(s)", len(statements))
                results = self.executor.execute(statements)
                write_frame(self.wfile, encode([entry.to_list() for entry in results]))
        except SlimProtocolError as exc:
            logger.error("protocol error from %s:%s: %s", peer[0], peer[1], exc)
        except OSError as exc:
            logger.warning("transport error from %s:%s: %s", peer[0], peer[1], exc)
        finally:
            self.executor.release()
            self.server.session_finished()


class SlimServer(socketserver.ThreadingTCPServer):
    """Threading TCP server handing each connection its own executor."""

    allow_reuse_address = True
    daemon_threads = True

    def __init__(
        self,
        server_address: Tuple[str, int],
        *,
        interaction_class: Type[FixtureInteraction] = DefaultInteraction,
        executor_factory: Optional[Callable[[FixtureInteraction], StatementExecutor]] = None,
        single_session: bool = False,
        version: str = SLIM_VERSION,
    ) -> None:
        super().__init__(server_address, _SlimHandler)
        self.interaction_class = interaction_class
        self.executor_factory = executor_factory or StatementExecutor
        self.single_session = single_session
        self.version = version
        self.sessions_served = 0
        self._sessions_lock = threading.Lock()

    @property
    def port(self) -> int:
        return self.server_address[1]

    def create_executor(self) -> StatementExecutor:
        return self.executor_factory(self.interaction_class())

    def session_finished(self) -> None:
        with self._sessions_lock:
            self.sessions_served += 1
        if self.single_session:
            threading.Thread(target=self.shutdown, daemon=True).start()

    def serve_in_thread(self) -> threading.Thread:
        thread = threading.Thread(target=self.serve_forever, name="slim-server", daemon=True)
        thread.start()
        return thread

    def __repr__(self) -> str:
        host, port = self.server_address[:2]
        return f"SlimServer({host}:{port})"
