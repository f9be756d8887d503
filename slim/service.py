"""slim-service entry point: listen for SLIM clients and run their statements."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from typing import List, Optional, Type

from .interaction import DEFAULT_INTERACTION, DefaultInteraction, FixtureInteraction, load_interaction
from .server import SlimServer

LOG = logging.getLogger("slim.service")

DEFAULT_PORT = 8085


@dataclass
class SlimServiceConfig:
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    verbose: bool = False
    interaction_class: Type[FixtureInteraction] = DefaultInteraction
    daemon: bool = False
    log_level: str = "INFO"

    @property
    def interaction_name(self) -> str:
        cls = self.interaction_class
        return f"{cls.__module__}.{cls.__qualname__}"


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _interaction_type(value: str) -> Type[FixtureInteraction]:
    try:
        return load_interaction(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SLIM fixture service")
    parser.add_argument("port", nargs="?", type=int, default=DEFAULT_PORT, help="Listen port")
    parser.add_argument("--host", default="127.0.0.1", help="Listen host")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every statement and result")
    parser.add_argument(
        "-i",
        "--interaction",
        type=_interaction_type,
        default=DEFAULT_INTERACTION,
        help="Dotted path of the FixtureInteraction class (default %(default)s)",
    )
    parser.add_argument(
        "-d",
        "--daemon",
        action="store_true",
        help="Keep accepting sessions instead of exiting after the first one",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("SLIM_LOG", "INFO"),
        help="Logging level (default INFO)",
    )
    return parser


def parse_command_line(argv: Optional[List[str]] = None) -> SlimServiceConfig:
    args = build_arg_parser().parse_args(argv)
    return SlimServiceConfig(
        host=args.host,
        port=args.port,
        verbose=args.verbose,
        interaction_class=args.interaction,
        daemon=args.daemon,
        log_level="DEBUG" if args.verbose else args.log_level,
    )


def build_server(config: SlimServiceConfig) -> SlimServer:
    return SlimServer(
        (config.host, config.port),
        interaction_class=config.interaction_class,
        single_session=not config.daemon,
    )


def main(argv: Optional[List[str]] = None) -> int:
    config = parse_command_line(argv)
    _configure_logging(config.log_level)
    try:
        server = build_server(config)
    except OSError as exc:
        LOG.error("cannot listen on %s:%s: %s", config.host, config.port, exc)
        return 1
    LOG.info(
        "listening on %s:%s (interaction %s%s)",
        config.host,
        server.port,
        config.interaction_name,
        ", daemon" if config.daemon else "",
    )
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        LOG.info("shutting down")
    finally:
        server.server_close()
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
