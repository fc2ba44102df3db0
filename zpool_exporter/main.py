"""
zpool-status-exporter - FastAPI Application Entry Point

Serves ZFS pool health from `zpool status -p` as Prometheus gauges.
"""

import argparse
import logging
import os
import socket
import sys
import time
from contextlib import asynccontextmanager
from typing import List, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from zpool_exporter import __version__
from zpool_exporter.config import settings
from zpool_exporter.context import AppContext
from zpool_exporter.errors import ZpoolExporterError, error_chain
from zpool_exporter.routers import metrics, root
from zpool_exporter.services.auth import AuthRules

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

BIND_RETRY_DELAY_SECONDS = 1.0


def create_app(app_context: AppContext, auth_rules: Optional[AuthRules] = None) -> FastAPI:
    """Build the FastAPI app around a context and optional allow-list."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"zpool-status-exporter v{__version__} starting...")
        if auth_rules is not None:
            auth_rules.log_start_message()

        # fail fast: a broken zpool or an unparseable format aborts startup
        app_context.get_metrics_now(time.monotonic())

        yield

        logger.info("zpool-status-exporter shutting down...")

    app = FastAPI(
        title="zpool-status-exporter",
        description="Prometheus exporter for ZFS pool health",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )
    app.state.app_context = app_context
    app.state.auth_rules = auth_rules

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error": str(exc)}
        )

    app.include_router(root.router)
    app.include_router(metrics.router)
    return app


# =========================================================================
# Command line
# =========================================================================

def parse_listen_address(value: str) -> Tuple[str, int]:
    """Split "host:port" (IPv6 hosts in brackets) into its parts."""
    host, sep, port = value.rpartition(":")
    if not sep or not host:
        raise argparse.ArgumentTypeError(f"invalid socket address {value!r}, expected HOST:PORT")
    try:
        port_number = int(port)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port in socket address {value!r}")
    if not 0 <= port_number <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range in socket address {value!r}")
    return host.strip("[]"), port_number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zpool-status-exporter",
        description="Prometheus exporter for ZFS pool health (zpool status)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "listen_address",
        nargs="?",
        default=settings.listen_address,
        type=parse_listen_address,
        help="Bind address for the server, HOST:PORT (env LISTEN_ADDRESS)",
    )
    parser.add_argument(
        "--basic-auth-keys-file",
        default=settings.basic_auth_keys_file,
        help="File containing allowed basic authentication tokens, one user:pass per line",
    )
    parser.add_argument(
        "--oneshot-test-print",
        action="store_true",
        help="Print the metrics once and exit",
    )
    return parser


def bind_socket(host: str, port: int, max_retries: int) -> socket.socket:
    """Bind the listen socket, retrying while the address is still in use."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    attempt = 0
    while True:
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
            sock.listen(128)
            return sock
        except OSError as e:
            sock.close()
            attempt += 1
            if attempt > max_retries:
                raise
            logger.warning(
                f"Failed to bind {host}:{port} ({e}), retry {attempt}/{max_retries}"
            )
            time.sleep(BIND_RETRY_DELAY_SECONDS)


def run(argv: Optional[List[str]] = None) -> int:
    """Run the exporter with uvicorn."""
    import uvicorn

    args = build_parser().parse_args(argv)

    if hasattr(os, "geteuid") and os.geteuid() == 0:
        logger.error("refusing to run as super-user, try a non-privileged user")
        return 1

    app_context = AppContext.assume_local_is_utc() if settings.assume_utc else AppContext()

    try:
        if args.oneshot_test_print:
            sys.stdout.write(app_context.get_metrics_now())
            return 0

        auth_rules = None
        if args.basic_auth_keys_file:
            auth_rules = AuthRules.from_file(args.basic_auth_keys_file)
    except ZpoolExporterError as e:
        logger.error("Error: " + "\n  caused by: ".join(error_chain(e)))
        return 1

    host, port = args.listen_address
    sock = bind_socket(host, port, settings.max_bind_retries)
    shown_host = f"[{host}]" if ":" in host else host
    print(f"Listening at http://{shown_host}:{port}", flush=True)

    config = uvicorn.Config(
        create_app(app_context, auth_rules),
        log_level=settings.log_level.lower(),
        access_log=False,
    )
    uvicorn.Server(config).run(sockets=[sock])
    return 0


if __name__ == "__main__":
    sys.exit(run())
