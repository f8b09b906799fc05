"""Server runtime: startup gate, listener lifecycle, shutdown."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Optional, Tuple

from .backends import load_backend
from .capabilities import Capabilities, DisplayGeometry, DisplayInfo
from .commands import CommandDispatcher
from .config import MaaToolsSettings
from .listener import Listener, StateCallback
from .protocol import ListenerError

logger = logging.getLogger(__name__)


async def wait_for_display(
    display: DisplayInfo, poll_interval: float
) -> Tuple[DisplayGeometry, str]:
    """Poll until both the display geometry and the window label are known."""

    while True:
        geometry = display.get_display_geometry()
        label = display.get_window_label()
        if geometry is not None and geometry.is_ready and label is not None:
            return geometry, label
        await asyncio.sleep(poll_interval)


class MaaToolsServer:
    """Wires the collaborators to a listener once the display is ready."""

    def __init__(
        self,
        settings: MaaToolsSettings,
        capabilities: Capabilities,
        *,
        on_state_change: Optional[StateCallback] = None,
    ):
        self._settings = settings
        self._capabilities = capabilities
        self._on_state_change = on_state_change
        self.geometry: Optional[DisplayGeometry] = None
        self.window_label: Optional[str] = None
        self.listener: Optional[Listener] = None

    async def start(self) -> int:
        self.geometry, self.window_label = await wait_for_display(
            self._capabilities.display, self._settings.ready_poll_interval_seconds
        )
        logger.info(
            "Display ready: %dx%d scale=%s label=%r",
            self.geometry.width,
            self.geometry.height,
            self.geometry.scale,
            self.window_label,
        )

        self.listener = Listener(
            CommandDispatcher(self._capabilities),
            self._capabilities.display,
            self.geometry,
            self.window_label,
            host=self._settings.host,
            port=self._settings.port,
            idle_timeout=self._settings.idle_timeout_seconds,
            on_state_change=self._on_state_change,
        )
        return await self.listener.start()

    async def close(self) -> None:
        if self.listener is not None:
            await self.listener.close()


async def run_async(settings: Optional[MaaToolsSettings] = None) -> None:
    """Run the control server until terminated or cancelled."""

    settings = settings or MaaToolsSettings.from_env()
    if not settings.enabled:
        logger.info("Automation server disabled by configuration")
        return

    stop_event = asyncio.Event()
    server = MaaToolsServer(settings, load_backend(settings, stop_event))

    loop = asyncio.get_running_loop()
    handled = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows event loops.
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)
            handled.append(sig)

    try:
        try:
            await server.start()
        except ListenerError:
            return
        await stop_event.wait()
    finally:
        await server.close()
        for sig in handled:
            loop.remove_signal_handler(sig)
