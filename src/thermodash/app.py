"""FastAPI REST API for the temperature dashboard.

Provides endpoints for:
    - Serving the dashboard HTML/JS frontend
    - Logging in to / out of the MQTT broker
    - Querying connection status and device readings (polled by the frontend)
    - Requesting LLM analyses of the current readings

The page never mutates state directly: logins and logouts go through the
SessionManager, readings come from registry snapshots.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from importlib.resources import files
from pathlib import Path
from typing import TYPE_CHECKING, Final

from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from thermodash.errors import SessionStateError, SummarizationError
from thermodash.misc.utils import fmt_time
from thermodash.models import ConnectFailed
from thermodash.projector import CONNECT_FAILED_MESSAGE, ConnectionStateProjector
from thermodash.registry import DeviceRegistry
from thermodash.reconnect import Backoff
from thermodash.session import SessionManager
from thermodash.summarizer import Summarizer, error_html
from thermodash.types import AnalysisJson, DeviceJson, StatusJson  # noqa: TC001 (FastAPI resolves these)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from thermodash.misc.env import Settings
    from thermodash.models import Device

# Static files bundled with package (HTML, JS, CSS)
STATIC_DIR: Final = Path(str(files("thermodash") / "static"))

# Upper bound on how long /login waits for the broker (transport timeout is 5s)
LOGIN_WAIT_SECONDS: Final = 15

MISSING_CREDENTIALS: Final = "Please enter username and password."

logger = logging.getLogger("App")


class Credentials(BaseModel):
    """POST body for /login."""

    username: str = ""
    password: str = ""


def device_json(device: Device) -> DeviceJson:
    return {
        "id": device.id,
        "temperature": device.temperature,
        "last_update": device.last_update.isoformat(),
        "last_update_display": fmt_time(device.last_update),
    }


def create_app(
    settings: Settings,
    *,
    manager: SessionManager | None = None,
    summarizer: Summarizer | None = None,
) -> FastAPI:
    """Wire registry, session manager, projector and summarizer into an app.

    Args:
        settings: Validated environment settings

    Keyword Args:
        manager: Session manager to use (default: one built from settings)
        summarizer: Summarizer to use (default: one built from settings)
    """
    if manager is None:
        backoff = Backoff() if settings.mqtt_auto_reconnect else None
        manager = SessionManager(DeviceRegistry(), backoff=backoff)

    if summarizer is None:
        summarizer = Summarizer(
            settings.gemini_api_key,
            model=settings.gemini_model,
            timeout=settings.gemini_timeout,
        )

    registry = manager.registry
    projector = ConnectionStateProjector()
    manager.add_listener(projector)
    base_config = settings.session_config()

    # Inject <base> tag for subpath deployment (e.g., behind reverse proxy)
    base_tag = f'<base href="{settings.app_root_path}/">' if settings.app_root_path else ""

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await asyncio.to_thread(manager.disconnect)
        await summarizer.aclose()

    app = FastAPI(title="thermodash", lifespan=lifespan)
    app.state.manager = manager
    app.state.projector = projector
    app.state.summarizer = summarizer

    # Mount static directory for JS/CSS assets
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    def status_json() -> StatusJson:
        status = projector.status
        return {
            "state": status.state,
            "label": status.label,
            "message": status.message,
            "session": manager.state.value,
        }

    @app.get("/")
    async def dashboard() -> HTMLResponse:
        """Serve main dashboard HTML with injected base tag for subpath support."""
        html = (STATIC_DIR / "html" / "dashboard.html").read_text()
        html = html.replace("<head>", f"<head>\n  {base_tag}", 1) if base_tag else html
        return HTMLResponse(html)

    @app.get("/status")
    async def get_status() -> StatusJson:
        """Return the user-facing connection status."""
        return status_json()

    @app.get("/devices")
    async def get_devices() -> list[DeviceJson]:
        """Return all known devices sorted by id (polled by frontend)."""
        return [device_json(d) for d in registry.snapshot()]

    # === Session Endpoints ===

    @app.post("/login")
    async def login(creds: Credentials) -> StatusJson:
        """Connect to the broker with the given credentials and wait for the outcome."""
        if not creds.username or not creds.password:
            raise HTTPException(status_code=400, detail=MISSING_CREDENTIALS)

        try:
            future = manager.connect(base_config.with_credentials(creds.username, creds.password))
        except SessionStateError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e

        try:
            outcome = await asyncio.wait_for(asyncio.wrap_future(future), LOGIN_WAIT_SECONDS)
        except TimeoutError as e:
            logger.warning("Login timed out after %ds, abandoning attempt", LOGIN_WAIT_SECONDS)
            await asyncio.to_thread(manager.disconnect)
            raise HTTPException(status_code=504, detail=CONNECT_FAILED_MESSAGE) from e

        if isinstance(outcome, ConnectFailed):
            raise HTTPException(status_code=502, detail=CONNECT_FAILED_MESSAGE)

        return status_json()

    @app.post("/logout")
    async def logout() -> StatusJson:
        """Disconnect from the broker and clear all readings."""
        # disconnect() joins the paho network thread
        await asyncio.to_thread(manager.disconnect)
        return status_json()

    # === Analysis Endpoints ===
    # Failures are rendered inline (HTTP 200) so the analysis panel shows them

    @app.post("/analysis")
    async def analyse_all() -> AnalysisJson:
        """Overall analysis of every current reading."""
        devices = registry.snapshot()
        if not devices:
            raise HTTPException(status_code=400, detail="No devices to analyse")

        try:
            html = await summarizer.analyse_fleet(devices)
        except SummarizationError as e:
            logger.error("Analysis failed: %s", e)
            html = error_html(e)

        return {"html": html}

    @app.post("/analysis/{device_id}")
    async def analyse_device(device_id: str) -> AnalysisJson:
        """Interpretation of a single device's current reading."""
        device = registry.get(device_id)
        if device is None:
            raise HTTPException(status_code=404, detail=f"Unknown device: {device_id}")

        try:
            html = await summarizer.interpret_device(device)
        except SummarizationError as e:
            logger.error("Analysis of %s failed: %s", device_id, e)
            html = error_html(e)

        return {"html": html}

    return app
