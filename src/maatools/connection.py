"""Per-connection protocol state machine."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

from .commands import CommandDispatcher, SessionState
from .protocol import (
    CONNECT_MAGIC,
    HANDSHAKE_REPLY,
    MAGIC_SIZE,
    ConnectionClosedError,
    EmptyContentError,
    InvalidMessageError,
    ProtocolError,
)
from .reader import FrameReader

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    AWAITING_HANDSHAKE = "awaiting_handshake"
    SERVING = "serving"
    CLOSED = "closed"


class ConnectionHandler:
    """Owns one accepted connection from handshake to teardown."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        dispatcher: CommandDispatcher,
        session: SessionState,
        *,
        idle_timeout: Optional[float] = None,
    ):
        self._reader = reader
        self._writer = writer
        self._dispatcher = dispatcher
        self._idle_timeout = idle_timeout
        self._frames = FrameReader(reader, idle_timeout=idle_timeout)
        self._closed = False
        self.session = session
        self.state = ConnectionState.AWAITING_HANDSHAKE
        self.peer = writer.get_extra_info("peername")

    async def run(self) -> None:
        """Serve the connection until it ends, then close it.

        Protocol and transport failures are logged and end only this
        connection. Cancellation closes the connection and propagates.
        """

        try:
            await self._handshake()
            self.state = ConnectionState.SERVING
            logger.info("Client %s connected", self.peer)
            await self._serve()
        except ConnectionClosedError:
            logger.info("Client %s disconnected", self.peer)
        except (ProtocolError, OSError, asyncio.TimeoutError) as exc:
            logger.error("Receive failed from %s: %r", self.peer, exc)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Connection handler for %s crashed", self.peer)
        finally:
            await self.close()

    def cancel(self) -> None:
        """Stop reading frames; the connection closes once the loop exits."""

        self._frames.cancel()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.state = ConnectionState.CLOSED

        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError as exc:
            logger.debug("Error while closing %s: %r", self.peer, exc)

    async def _handshake(self) -> None:
        try:
            handshake = await asyncio.wait_for(
                self._reader.readexactly(MAGIC_SIZE), self._idle_timeout
            )
        except asyncio.IncompleteReadError as exc:
            raise EmptyContentError(
                f"expected {MAGIC_SIZE} handshake bytes, received {len(exc.partial)}"
            ) from exc

        if handshake != CONNECT_MAGIC:
            raise InvalidMessageError(f"unexpected handshake {handshake!r}")

        self._writer.write(HANDSHAKE_REPLY)
        await self._writer.drain()
        self.session.handshake_completed = True

    async def _serve(self) -> None:
        async for payload in self._frames:
            await self._dispatcher.dispatch(payload, self._writer, self.session)
