"""
Entrypoint for the Ghostli Content Engine.
Importing ``core`` builds the shared app state and registers the generation,
cancel, analytics and health routes; this module only adds the CLI and uvicorn.
"""

from __future__ import annotations

import argparse
import os
import signal

import core  # noqa: F401  # Ensure route modules are imported for side effects
from core.app_state import app, config, logger  # noqa: F401


def _force_exit(signum, frame):
    """Force immediate exit on Ctrl+C without waiting for graceful shutdown."""
    print("\nForced exit (Ctrl+C)")
    os._exit(0)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ghostli Content Engine")
    parser.add_argument(
        "--force-verbose",
        action="store_true",
        help="Force verbose phase logs for every request",
    )
    parser.add_argument(
        "--force-extra-verbose",
        action="store_true",
        help="Force verbose and extra verbose logs, including prompts and raw responses",
    )
    parser.add_argument("--host", default=None, help=f"Bind host (default {config.APP_HOST})")
    parser.add_argument("--port", type=int, default=None, help=f"Bind port (default {config.APP_PORT})")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    return parser


def apply_cli_overrides(args: argparse.Namespace) -> None:
    """Push command-line flags into the environment and the live config."""
    if args.force_extra_verbose:
        os.environ["EXTRA_VERBOSE"] = "true"
        os.environ["VERBOSE"] = "true"
        config.EXTRA_VERBOSE = True
        config.VERBOSE = True
    elif args.force_verbose:
        os.environ["VERBOSE"] = "true"
        config.VERBOSE = True

    if args.host:
        config.APP_HOST = args.host
    if args.port:
        config.APP_PORT = args.port
    if args.reload:
        config.APP_RELOAD = True


if __name__ == "__main__":
    import uvicorn

    signal.signal(signal.SIGINT, _force_exit)

    apply_cli_overrides(build_parser().parse_args())

    logger.info("Starting with uvicorn on %s:%d", config.APP_HOST, config.APP_PORT)
    uvicorn.run(
        "main:app",
        host=config.APP_HOST,
        port=config.APP_PORT,
        reload=config.APP_RELOAD,
    )
