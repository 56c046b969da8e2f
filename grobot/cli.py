"""
Command line entry points.

Usage:
    grobot configs/default.toml                     # simulated hardware, headless
    GROBOT_SENSOR_MODE=pi GROBOT_ACTUATOR_MODE=pi grobot configs/default.toml
    grobot configs/default.toml --http-port 8000    # also serve /api/live
    grobot-monitor --port 5757                      # log status broadcasts
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional, Sequence

from .core.config import DEFAULT_STATUS_PORT, Settings
from .core.log import configure_logging
from .domain.config import ControlConfig
from .domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

LOG_LEVELS = ["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"]


def _level(name: str) -> str:
    # TRACE kept for compatibility with older start scripts
    name = name.upper()
    return "DEBUG" if name == "TRACE" else name


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("-l", "--log-level", default="INFO", type=str.upper, choices=LOG_LEVELS,
                   help="Logging level (default: INFO)")
    p.add_argument("-p", "--port", type=int, default=DEFAULT_STATUS_PORT,
                   help=f"Status broadcast UDP port (default: {DEFAULT_STATUS_PORT})")
    p.add_argument("-L", "--listen-addr", default="0.0.0.0",
                   help="Address to bind the UDP socket to (default: 0.0.0.0)")


def _install_stop_handlers(stop) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop)


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

async def _run_headless(runtime) -> None:
    _install_stop_handlers(runtime.supervisor.request_stop)
    try:
        await runtime.supervisor.start()
        await runtime.supervisor.wait()
    finally:
        runtime.close()


def controller_main(argv: Optional[Sequence[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="grobot", description="Grow space light/fan controller")
    p.add_argument("config_file", type=Path,
                   help="Path to a configuration file in TOML format (see configs/)")
    _add_common(p)
    p.add_argument("--http-port", type=int, default=None,
                   help="Serve the HTTP status API on this port (default: disabled)")
    args = p.parse_args(argv)

    overrides = {
        "log_level": _level(args.log_level),
        "status_port": args.port,
        "listen_addr": args.listen_addr,
    }
    if args.http_port is not None:
        overrides["http_port"] = args.http_port
    settings = Settings(**overrides)

    configure_logging(settings.log_level, settings.log_file)

    try:
        config = ControlConfig.from_file(args.config_file)
    except ConfigurationError as e:
        logger.error("%s", e)
        return 2

    from .main import build_runtime, create_app

    runtime = build_runtime(settings, config)

    if settings.http_port:
        import uvicorn

        # uvicorn owns the signals; the app lifespan stops the supervisor
        uvicorn.run(create_app(runtime), host=settings.http_host, port=settings.http_port, log_config=None)
    else:
        asyncio.run(_run_headless(runtime))
    return 0


# ---------------------------------------------------------------------------
# Monitor
# ---------------------------------------------------------------------------

async def _monitor(port: int, listen_addr: str) -> None:
    from .services.status import listen

    stop = asyncio.Event()
    _install_stop_handlers(stop.set)
    protocol = await listen(port, listen_addr, stop=stop)
    logger.info("Monitor stopped (%d updates, %d rejected)", protocol.received, protocol.rejected)


def monitor_main(argv: Optional[Sequence[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="grobot-monitor", description="Log grobot status broadcasts")
    _add_common(p)
    args = p.parse_args(argv)

    configure_logging(_level(args.log_level))
    asyncio.run(_monitor(args.port, args.listen_addr))
    return 0


def main() -> None:
    raise SystemExit(controller_main())


def monitor() -> None:
    raise SystemExit(monitor_main())


if __name__ == "__main__":
    main()
