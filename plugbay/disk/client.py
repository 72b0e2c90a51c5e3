"""
Disk Protocol Client.

This module provides the host side of the disk synchronization protocol.

Key features:
- Repository discovery (an unreachable server means "no repository")
- Package upload with transport/server error mapping
- Two-phase destroy modelled as a DestroyJob (requested -> halting -> stopped)
"""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

import httpx

from plugbay.disk.repository import sanitize_id
from plugbay.errors import NetworkError, PluginError, ServerIOError
from plugbay.plugin.package import Package

logger = logging.getLogger(__name__)


class DestroyState(Enum):
    """Destroy job state enumeration."""

    REQUESTED = "requested"
    HALTING = "halting"
    STOPPED = "stopped"


class DestroyJob:
    """
    Tracks a destructive delete that requires the server to restart.

    Attributes:
        plugin_id: Sanitized id the destroy request was issued for
        state: Current job state
        confirmed: Whether the server acknowledged the request; an unconfirmed
            STOPPED job probably succeeded (deletion may have been scheduled
            before the connection dropped)
    """

    def __init__(self, plugin_id: str, client: "DiskClient"):
        self.plugin_id = plugin_id
        self.state = DestroyState.REQUESTED
        self.confirmed = False
        self._client = client
        self._listeners: list[Callable[["DestroyJob"], Any]] = []

    def subscribe(self, listener: Callable[["DestroyJob"], Any]) -> None:
        """Call listener(job) on every state change."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[["DestroyJob"], Any]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _set_state(self, state: DestroyState) -> None:
        if state is self.state:
            return
        self.state = state
        logger.info("Destroy %s: %s", self.plugin_id, state.value)
        for listener in list(self._listeners):
            listener(self)

    async def wait_stopped(self, poll_interval: float = 0.5, max_polls: int = 20) -> DestroyState:
        """
        Poll the server until it stops answering.

        Args:
            poll_interval: Seconds between polls
            max_polls: Polls before giving up

        Returns:
            Final state (HALTING if the server kept answering)
        """
        for _ in range(max_polls):
            if self.state is DestroyState.STOPPED:
                break
            await asyncio.sleep(poll_interval)
            if not await self._client.ping():
                self._set_state(DestroyState.STOPPED)

        if self.state is not DestroyState.STOPPED:
            logger.warning(
                "Server still answering after %d polls; destroy of %s not confirmed",
                max_polls,
                self.plugin_id,
            )
        return self.state

    def __repr__(self) -> str:
        return f"DestroyJob({self.plugin_id!r}, {self.state.value}, confirmed={self.confirmed})"


class DiskClient:
    """
    HTTP client for the disk protocol server.

    Example:
        async with DiskClient("http://127.0.0.1:5173") as disk:
            entries = await disk.list()
    """

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        """
        Initialize DiskClient.

        Args:
            base_url: Server base URL
            http_client: Client to use (one is created and owned if omitted)
            timeout: Request timeout in seconds for an owned client
        """
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def ping(self) -> bool:
        """Check whether the server answers."""
        try:
            response = await self._client.get(self._url("/list-plugins"))
        except httpx.HTTPError:
            return False
        return response.status_code < 500

    async def upload(self, package: Package) -> None:
        """
        Write a package to the repository (overwrites by sanitized id).

        Args:
            package: Package to upload

        Raises:
            NetworkError: If the server cannot be reached
            ServerIOError: If the server fails to write the package
        """
        body = package.to_dict()
        body.pop("enabled")
        try:
            response = await self._client.post(self._url("/upload-plugin"), json=body)
        except httpx.HTTPError as e:
            raise NetworkError(f"Failed to reach disk server: {e}") from e

        if response.status_code != 200:
            error = _error_message(response)
            if response.status_code >= 500:
                raise ServerIOError(f"Upload of {package.id} failed: {error}")
            raise NetworkError(f"Upload of {package.id} rejected: {error}")

        logger.info("Uploaded plugin %s", package.id)

    async def destroy(self, plugin_id: str) -> DestroyJob:
        """
        Request permanent deletion of a package.

        A failed acknowledgement is not an error: the job is marked STOPPED
        but unconfirmed, since deletion may already have been scheduled.

        Args:
            plugin_id: Plugin id (sanitized before sending)

        Returns:
            DestroyJob in HALTING (acknowledged) or STOPPED (unconfirmed) state
        """
        job = DestroyJob(sanitize_id(plugin_id), self)
        try:
            response = await self._client.post(
                self._url("/destroy-plugin"), params={"id": job.plugin_id}
            )
        except httpx.HTTPError as e:
            logger.warning("Destroy acknowledgement lost (%s); treating as probably done", e)
            job._set_state(DestroyState.STOPPED)
            return job

        if response.status_code == 200:
            job.confirmed = True
            job._set_state(DestroyState.HALTING)
        else:
            logger.warning(
                "Destroy of %s answered %d: %s",
                job.plugin_id,
                response.status_code,
                _error_message(response),
            )
            job._set_state(DestroyState.STOPPED)
        return job

    async def list(self) -> list[Package]:
        """
        Discover repository entries.

        Returns:
            Packages on disk (enabled=False); empty if the server is
            unreachable or answers with an error
        """
        try:
            response = await self._client.get(self._url("/list-plugins"))
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.info("No disk repository available: %s", e)
            return []

        entries = []
        for item in payload if isinstance(payload, list) else []:
            try:
                entries.append(Package.from_dict({**item, "enabled": False}))
            except (PluginError, TypeError) as e:
                logger.warning("Ignoring malformed repository entry: %s", e)
        return entries

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.aclose()


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return str(data.get("error") or data.get("detail") or data)
    return str(data)
