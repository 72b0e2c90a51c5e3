"""
Disk Protocol Server.

FastAPI application exposing the disk repository to hosts:

    GET  /list-plugins            -> 200 [ {id, manifest, files, enabled:false}, ... ]
    POST /upload-plugin           -> 200 {success:true} | 500 {error}
    POST /destroy-plugin?id=<id>  -> 200 {status:"halting"}

Destroying a plugin is two-phase. The request is acknowledged first; a
background task then releases held file locks, deletes the package directory
and halts the serving process. An external supervisor is expected to restart
it.
"""

import asyncio
import logging
import os
import signal
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from fastapi import BackgroundTasks, FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from plugbay import __version__
from plugbay.disk.repository import DiskRepository, sanitize_id
from plugbay.errors import PluginError, ServerIOError
from plugbay.plugin.package import Package

logger = logging.getLogger(__name__)


class ServerState(str, Enum):
    SERVING = "serving"
    HALTING = "halting"
    STOPPED = "stopped"


def terminate_process() -> None:
    """Ask the serving process to shut down (uvicorn handles SIGTERM gracefully)."""
    os.kill(os.getpid(), signal.SIGTERM)


class Halter:
    """
    Runs the server side of a two-phase destroy.

    Attributes:
        state: Current server state
        pending: Sanitized ids awaiting deletion
        release_hooks: Callables closing handles that pin package files
    """

    def __init__(
        self,
        repository: DiskRepository,
        delay: float = 0.5,
        halt: Callable[[], None] = terminate_process,
    ):
        self.repository = repository
        self.delay = delay
        self.state = ServerState.SERVING
        self.pending: list[str] = []
        self.release_hooks: list[Callable[[], None]] = []
        self._halt = halt

    def request(self, plugin_id: str) -> bool:
        """
        Queue a sanitized id for deletion.

        Returns:
            True if this request started the halt (the caller schedules run())
        """
        if plugin_id not in self.pending:
            self.pending.append(plugin_id)
        if self.state is not ServerState.SERVING:
            return False
        self.state = ServerState.HALTING
        return True

    async def run(self) -> None:
        """Release locks, delete every queued package directory, then halt."""
        await asyncio.sleep(self.delay)

        for release in self.release_hooks:
            try:
                release()
            except OSError as e:
                logger.warning("Lock release hook failed: %s", e)

        while self.pending:
            plugin_id = self.pending.pop(0)
            try:
                if not await run_in_threadpool(self.repository.remove, plugin_id):
                    logger.info("Plugin %s already clean on disk", plugin_id)
            except ServerIOError as e:
                logger.error("Destroy of %s failed: %s", plugin_id, e)

        logger.warning("Halting disk server; waiting for supervisor restart")
        self.state = ServerState.STOPPED
        self._halt()


def create_app(
    repository: DiskRepository,
    halt_delay: float = 0.5,
    halt: Callable[[], None] = terminate_process,
) -> FastAPI:
    """
    Build the disk protocol application.

    Args:
        repository: Physical storage to serve
        halt_delay: Seconds between a destroy acknowledgement and halting
        halt: Callable stopping the serving process

    Returns:
        FastAPI application
    """
    app = FastAPI(title="Plugbay Disk Repository", version=__version__)
    halter = Halter(repository, delay=halt_delay, halt=halt)
    app.state.repository = repository
    app.state.halter = halter

    @app.get("/list-plugins")
    def list_plugins() -> list[dict]:
        return [entry.to_dict() for entry in repository.list()]

    @app.post("/upload-plugin")
    async def upload_plugin(request: Request) -> JSONResponse:
        if halter.state is not ServerState.SERVING:
            return JSONResponse(status_code=503, content={"error": "Server is halting"})

        try:
            body = await request.json()
            if not isinstance(body, dict):
                raise ValueError("Upload body must be a JSON object")
            package = Package.from_dict({**body, "enabled": False})
        except (ValueError, PluginError) as e:
            return JSONResponse(status_code=400, content={"error": str(e)})

        try:
            await run_in_threadpool(repository.upload, package)
        except ServerIOError as e:
            return JSONResponse(status_code=500, content={"error": str(e)})

        return JSONResponse(content={"success": True})

    @app.post("/destroy-plugin")
    async def destroy_plugin(
        background_tasks: BackgroundTasks,
        plugin_id: str = Query(..., alias="id", min_length=1),
    ) -> dict:
        safe_id = sanitize_id(plugin_id)
        if halter.request(safe_id):
            background_tasks.add_task(halter.run)
        logger.info("Destroy of %s acknowledged; halting", safe_id)
        return {"status": ServerState.HALTING.value}

    return app


def main() -> None:
    """Run the disk server with uvicorn using the host settings."""
    import uvicorn

    import plugbay
    import plugbay.config

    cfg = plugbay.config.settings()
    plugbay.configure_logging(cfg.log_level)

    app = create_app(DiskRepository(Path(cfg.plugins_dir)), halt_delay=cfg.halt_delay)
    uvicorn.run(app, host=cfg.server_host, port=cfg.server_port)


if __name__ == "__main__":
    main()
