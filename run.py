#!/usr/bin/env python3
"""
fluidkeys - Piano key presses to fluid renderer motion

Listens for key press messages, turns each one into an animated motion
path and streams pointer-style commands to the renderer bridge.
"""

import argparse
import asyncio
import cProfile
import signal
import sys
from pathlib import Path

from config import Config
from config_persistence import load_config
from logging_utils import log_event, set_log_level
from orchestrator import Orchestrator
from renderer_lifecycle import ensure_renderer_engine


def _on_renderer_status(message: str, connected: bool) -> None:
    log_event("INFO" if connected else "DEBUG", "Renderer", message)


def _install_signal_handlers(orchestrator: Orchestrator) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.stop)
        except (NotImplementedError, RuntimeError):
            # Windows event loops: KeyboardInterrupt ends asyncio.run instead
            pass


async def run_service(config: Config) -> None:
    engine = await ensure_renderer_engine(
        None,
        config.connection,
        _on_renderer_status,
        dry_run_enabled=config.connection.dry_run,
    )
    orchestrator = Orchestrator(config, engine)
    _install_signal_handlers(orchestrator)
    try:
        await orchestrator.run()
    finally:
        await engine.stop()


def build_config(args: argparse.Namespace) -> Config:
    config = load_config(Path(args.config)) if args.config else load_config()

    if args.control_host:
        config.control.host = args.control_host
    if args.control_port:
        config.control.port = args.control_port
    if args.renderer_host:
        config.connection.host = args.renderer_host
    if args.renderer_port:
        config.connection.port = args.renderer_port
    if args.dry_run:
        config.connection.dry_run = True
    if args.seed is not None:
        config.random_seed = args.seed
    if args.log_level:
        config.log_level = args.log_level
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run fluidkeys")
    parser.add_argument("--config", help="Path to a config JSON file (default: ~/.fluidkeys/config.json)")
    parser.add_argument("--control-host", help="Address for inbound key press messages")
    parser.add_argument("--control-port", type=int, help="Port for inbound key press messages")
    parser.add_argument("--renderer-host", help="Renderer bridge host")
    parser.add_argument("--renderer-port", type=int, help="Renderer bridge port")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log renderer commands instead of sending them",
    )
    parser.add_argument("--seed", type=int, help="Random seed for reproducible motion")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the configured log level",
    )
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Enable cProfile and save stats to --profile-out",
    )
    parser.add_argument(
        "--profile-out",
        default="profile.prof",
        help="Path to save cProfile stats (default: profile.prof)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    config = build_config(args)
    set_log_level(config.log_level)

    exit_code = 0
    profiler = cProfile.Profile() if args.profile else None
    if profiler:
        profiler.enable()
    try:
        asyncio.run(run_service(config))
    except KeyboardInterrupt:
        log_event("INFO", "FluidKeys", "Interrupted")
    except OSError as e:
        log_event("ERROR", "FluidKeys", "Could not start", error=e)
        exit_code = 1
    finally:
        if profiler:
            profiler.disable()
            profiler.dump_stats(args.profile_out)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
