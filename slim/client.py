"""
Client-side session driver for SLIM services.

Responsibilities:
    * open the socket and check the version line the service announces,
    * send a statement batch as one frame and decode the single response,
    * tear the session down with ``bye``.

Retrying until the service accepts connections is left to the caller; see
:func:`connect_with_retry`.
"""

from __future__ import annotations

import logging
import re
import socket
import time
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable, Dict, Iterable, List, Optional, Union

from .codec import SlimProtocolError, decode, encode, read_frame, write_frame
from .statements import BYE, SLIM_VERSION, ResultEntry, Statement, coerce_statements, results_to_dict

logger = logging.getLogger(__name__)

_VERSION_LINE = re.compile(r"^Slim -- V(\d+(?:\.\d+)?)\s*$")
VERSION_TOLERANCE = 0.0001


class SlimClientError(RuntimeError):
    """Raised when the session cannot complete an operation."""


class SlimConnectionError(SlimClientError, ConnectionError):
    """Raised when the service is not accepting connections."""


class SlimVersionError(SlimClientError):
    """Raised when the service announces an unexpected protocol version."""


@dataclass
class SlimClientConfig:
    connect_timeout: float = 2.0
    read_timeout: Optional[float] = 30.0
    expected_version: float = float(SLIM_VERSION)
    retry_interval: float = 0.01
    max_retries: int = 0


@dataclass
class SlimClient:
    """Synchronous SLIM session over one TCP connection."""

    host: str = "127.0.0.1"
    port: int = 8085
    config: SlimClientConfig = field(default_factory=SlimClientConfig)

    _sock: Optional[socket.socket] = field(init=False, default=None, repr=False)
    _rfile: Optional[BinaryIO] = field(init=False, default=None, repr=False)
    _wfile: Optional[BinaryIO] = field(init=False, default=None, repr=False)
    _server_version: Optional[float] = field(init=False, default=None)

    #
    # Connection lifecycle
    #
    @property
    def is_connected(self) -> bool:
        return self._sock is not None

    @property
    def server_version(self) -> Optional[float]:
        return self._server_version

    def get_server_version(self) -> Optional[float]:
        return self._server_version

    def connect(self) -> None:
        if self._sock:
            return
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self.config.connect_timeout)
        except OSError as exc:
            raise SlimConnectionError(f"connect to {self.host}:{self.port} failed: {exc}") from exc
        sock.settimeout(self.config.read_timeout)
        self._sock = sock
        self._rfile = sock.makefile("rb")
        self._wfile = sock.makefile("wb")
        try:
            self._server_version = self._read_version()
        except SlimClientError:
            self.close()
            raise
        logger.debug("connected to %s:%s (slim %s)", self.host, self.port, self._server_version)

    def _read_version(self) -> float:
        assert self._rfile is not None
        try:
            raw = self._rfile.readline()
        except OSError as exc:
            raise SlimClientError(f"version handshake failed: {exc}") from exc
        if not raw:
            raise SlimClientError("version handshake failed: connection closed")
        line = raw.decode("utf-8", errors="replace")
        match = _VERSION_LINE.match(line)
        if not match:
            raise SlimVersionError(f"unrecognised version line: {line.strip()!r}")
        version = float(match.group(1))
        if abs(version - self.config.expected_version) > VERSION_TOLERANCE:
            raise SlimVersionError(
                f"service speaks slim {version}, expected {self.config.expected_version}"
            )
        return version

    def send_bye(self) -> None:
        if not self._wfile:
            return
        try:
            write_frame(self._wfile, BYE)
        except OSError as exc:
            logger.debug("bye not delivered: %s", exc)

    def close(self) -> None:
        for stream in (self._rfile, self._wfile):
            if stream is None:
                continue
            try:
                stream.close()
            except OSError:
                pass
        sock = self._sock
        if sock:
            try:
                sock.close()
            except OSError:
                pass
        self._sock = None
        self._rfile = None
        self._wfile = None

    def __enter__(self) -> "SlimClient":
        self.connect()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.send_bye()
        self.close()

    #
    # Statement exchange
    #
    def invoke(self, statements: Iterable[Union[Statement, list]]) -> List[ResultEntry]:
        """Send a batch and return the result entries in response order."""
        if not self._wfile or not self._rfile:
            raise SlimClientError("not connected")
        batch = [statement.to_list() for statement in coerce_statements(statements)]
        try:
            write_frame(self._wfile, encode(batch))
            payload = read_frame(self._rfile)
        except (OSError, SlimProtocolError) as exc:
            self.close()
            raise SlimClientError(f"statement exchange failed: {exc}") from exc
        try:
            return [ResultEntry.from_list(item) for item in decode(payload)]
        except SlimProtocolError as exc:
            self.close()
            raise SlimClientError(f"malformed response: {exc}") from exc

    def invoke_and_get_response(self, statements: Iterable[Union[Statement, list]]) -> Dict[str, Any]:
        """Send a batch and map each returned id to its value.

        Ids with no entry (skipped after a stop-test exception) are absent.
        """
        return results_to_dict(self.invoke(statements))


def connect_with_retry(
    client: Union[SlimClient, Callable[[], SlimClient]],
    *,
    interval: Optional[float] = None,
    max_retries: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> SlimClient:
    """Poll ``connect()`` with a fixed backoff until the service answers.

    ``max_retries`` of 0 means retry forever.  Version mismatches are not
    retried.
    """
    factory = None if isinstance(client, SlimClient) else client
    target = factory() if factory else client
    if not isinstance(target, SlimClient):
        raise TypeError(f"expected a SlimClient, got {type(target).__name__}")
    interval = target.config.retry_interval if interval is None else interval
    limit = target.config.max_retries if max_retries is None else max_retries
    attempt = 0
    while True:
        attempt += 1
        try:
            target.connect()
            return target
        except SlimConnectionError as exc:
            if limit > 0 and attempt >= limit:
                raise
            logger.debug("connect attempt %d failed: %s", attempt, exc)
            sleep(interval)
            if factory:
                target = factory()
