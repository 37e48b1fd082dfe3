import logging
import signal
import socket
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from routes.wall_route import router as wall_router
from routes.wall_ws import router as wall_ws_router
from services.errors import BindFailure, ConfigError
from services.realtime.registry import BroadcastRegistry
from services.realtime.relay_loop import RelayLoop
from services.source.image_source import ImageSourceClient
from services.source.recent_set import RecentSet
from utils.wall_config import WallConfig, load_config

BASE_DIR = Path(__file__).resolve().parent
PUBLIC_DIR = BASE_DIR / "public"

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STARTUP_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def create_app(
    config: Optional[WallConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    `config` defaults to the WALL_* environment at startup. `transport`
    replaces the upstream HTTP transport (tests use `httpx.MockTransport`).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan manager that builds the relay and attaches it to `app.state`:
          - the broadcast registry shared by every viewer socket
          - the upstream HTTP client and image source
          - the relay loop, started here and stopped on shutdown
        """
        wall_config = config or load_config()
        registry = BroadcastRegistry()
        http_client = httpx.AsyncClient(timeout=wall_config.upstream_timeout, transport=transport)
        image_source = ImageSourceClient(
            http_client,
            wall_config.upstream_url,
            RecentSet(wall_config.recent_capacity),
            url_template=wall_config.url_template,
            auth_header=wall_config.upstream_auth,
        )
        relay = RelayLoop(
            image_source,
            registry,
            wall_config.poll_interval,
            announce_viewers=wall_config.announce_viewers,
        )

        app.state.config = wall_config
        app.state.registry = registry
        app.state.image_source = image_source
        app.state.relay = relay

        relay.start()
        try:
            yield
        finally:
            # Stop producing before closing viewers so nothing lands in a dead queue.
            await relay.stop()
            registry.close_all()
            await http_client.aclose()

    app = FastAPI(lifespan=lifespan)

    # Serve static assets from the public directory, if it exists.
    if PUBLIC_DIR.exists():
        app.mount("/public", StaticFiles(directory=PUBLIC_DIR), name="public")

    @app.get("/", include_in_schema=False)
    async def serve_index():
        """
        Serve the wall page from the public directory.
        """
        index_path = PUBLIC_DIR / "index.html"
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="Frontend not found")
        return FileResponse(index_path)

    @app.get("/health")
    async def health(request: Request):
        """
        Report whether the relay loop is running and how many viewers are connected.
        """
        relay = getattr(request.app.state, "relay", None)
        registry = getattr(request.app.state, "registry", None)
        return {
            "ok": relay is not None and relay.running,
            "viewers": registry.count if registry is not None else 0,
        }

    app.include_router(wall_router)
    app.include_router(wall_ws_router)

    return app


def bind_listener(host: str, port: int) -> socket.socket:
    """Bind (but do not listen on) a TCP socket for uvicorn to serve on.

    Raises:
        BindFailure: If the address is unavailable or cannot be resolved.
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
    except OSError as exc:
        sock.close()
        raise BindFailure(f"Cannot bind {host}:{port}: {exc}") from exc
    sock.set_inheritable(True)
    return sock


def _ignore_signal(signum, frame) -> None:
    LOGGER.debug("Received signal %d after shutdown", signum)


def main() -> int:
    """Run the relay server; returns the process exit code."""
    load_dotenv()  # Load environment variables from .env file if present

    try:
        config = load_config()
    except ConfigError as exc:
        logging.basicConfig(level=logging.INFO)
        LOGGER.error("Invalid configuration: %s", exc)
        return EXIT_CONFIG_ERROR

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        sock = bind_listener(config.host, config.port)
    except BindFailure as exc:
        LOGGER.error("%s", exc)
        return EXIT_STARTUP_FAILURE

    server = uvicorn.Server(
        uvicorn.Config(create_app(config), log_level=config.log_level.lower(), log_config=None)
    )
    LOGGER.info("Image wall listening on %s:%d", config.host, config.port)
    # uvicorn re-raises the caught signal after a graceful shutdown.
    signal.signal(signal.SIGTERM, _ignore_signal)
    try:
        server.run(sockets=[sock])
    except KeyboardInterrupt:
        LOGGER.info("Interrupted; shutdown complete")
    finally:
        sock.close()
    if not server.started:
        return EXIT_STARTUP_FAILURE
    return EXIT_OK


app = create_app()


if __name__ == "__main__":
    sys.exit(main())
