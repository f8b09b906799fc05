"""TCP listener that spawns one connection handler per client."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional

from .capabilities import DisplayGeometry, DisplayInfo
from .commands import CommandDispatcher, SessionState
from .connection import ConnectionHandler
from .protocol import ListenerError

logger = logging.getLogger(__name__)


class ListenerState(str, Enum):
    STARTING = "starting"
    READY = "ready"
    FAILED = "failed"
    CANCELLED = "cancelled"


StateCallback = Callable[[ListenerState], None]


class Listener:
    """Accepts connections and serves each one on its own task."""

    def __init__(
        self,
        dispatcher: CommandDispatcher,
        display: DisplayInfo,
        geometry: DisplayGeometry,
        window_label: str,
        *,
        host: Optional[str] = "0.0.0.0",
        port: int = 0,
        idle_timeout: Optional[float] = None,
        on_state_change: Optional[StateCallback] = None,
    ):
        self._dispatcher = dispatcher
        self._display = display
        self._geometry = geometry
        self._window_label = window_label
        self._host = host
        self._port = port & 0xFFFF
        self._idle_timeout = idle_timeout
        self._on_state_change = on_state_change
        self._server: Optional[asyncio.AbstractServer] = None
        self._connections: Dict[ConnectionHandler, asyncio.Task] = {}
        self._closing = False
        self.state: Optional[ListenerState] = None
        self.port: Optional[int] = None

    @property
    def connections(self) -> List[ConnectionHandler]:
        return list(self._connections)

    async def start(self) -> int:
        """Bind and start accepting; returns the port actually bound."""

        self._set_state(ListenerState.STARTING)
        try:
            self._server = await asyncio.start_server(
                self._handle_client, host=self._host, port=self._port
            )
        except OSError as exc:
            self._set_state(ListenerState.FAILED)
            logger.error("Server failed to start: %r", exc)
            raise ListenerError(
                f"cannot listen on {self._host}:{self._port}: {exc}"
            ) from exc

        self.port = self._server.sockets[0].getsockname()[1]
        self._set_state(ListenerState.READY)
        logger.info("Server started and listening on port %d", self.port)
        self._display.set_window_label(f"{self._window_label} [localhost:{self.port}]")
        return self.port

    async def close(self) -> None:
        """Stop accepting and tear down every live connection."""

        if self._server is None:
            return
        server, self._server = self._server, None
        self._closing = True
        server.close()

        # Handlers accepted just before close register late; keep sweeping.
        await asyncio.sleep(0)
        while self._connections:
            tasks = list(self._connections.values())
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await asyncio.sleep(0)
        await server.wait_closed()

        self._set_state(ListenerState.CANCELLED)
        logger.info("Server closed")

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        if self._closing:
            writer.close()
            return

        session = SessionState(geometry=self._geometry, window_label=self._window_label)
        handler = ConnectionHandler(
            reader,
            writer,
            self._dispatcher,
            session,
            idle_timeout=self._idle_timeout,
        )
        task = asyncio.current_task()
        if task is not None:
            self._connections[handler] = task
        try:
            await handler.run()
        finally:
            self._connections.pop(handler, None)

    def _set_state(self, state: ListenerState) -> None:
        self.state = state
        if self._on_state_change is not None:
            self._on_state_change(state)
