"""Routing of framed command payloads to their handlers."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Protocol

from .capabilities import Capabilities, DisplayGeometry, TouchSequence
from .protocol import (
    PROTOCOL_VERSION,
    SCREENCAP_MAGIC,
    SIZE_MAGIC,
    TERMINATE_MAGIC,
    TOUCH_MAGIC,
    VERSION_MAGIC,
    TouchCommand,
    TouchPhase,
    command_tag,
    div_round,
    encode_u16,
    encode_u32,
)

logger = logging.getLogger(__name__)


class ReplyWriter(Protocol):
    def write(self, data: bytes) -> None:
        ...

    async def drain(self) -> None:
        ...


@dataclass(slots=True)
class SessionState:
    """State private to one connection."""

    geometry: DisplayGeometry
    window_label: str
    touch: TouchSequence = field(default_factory=TouchSequence)
    handshake_completed: bool = False


Handler = Callable[[bytes, ReplyWriter, SessionState], Awaitable[None]]


class CommandDispatcher:
    """Dispatches one payload at a time on behalf of a connection.

    The dispatcher is shared by every connection; anything mutable lives in
    the :class:`SessionState` passed with each call.
    """

    def __init__(self, capabilities: Capabilities):
        self._capabilities = capabilities
        self._handlers: Dict[bytes, Handler] = {
            SCREENCAP_MAGIC: self._screencap,
            SIZE_MAGIC: self._screensize,
            TERMINATE_MAGIC: self._terminate,
            TOUCH_MAGIC: self._touch,
            VERSION_MAGIC: self._version,
        }

    async def dispatch(
        self, payload: bytes, writer: ReplyWriter, session: SessionState
    ) -> None:
        tag = command_tag(payload)
        handler = self._handlers.get(tag)
        if handler is None:
            logger.debug("Ignoring unknown command tag %r", tag)
            return
        await handler(payload, writer, session)

    async def _screencap(
        self, payload: bytes, writer: ReplyWriter, session: SessionState
    ) -> None:
        geometry = session.geometry
        data = await asyncio.to_thread(
            self._capabilities.frames.capture_frame, geometry.width, geometry.height
        )
        if not data:
            data = b""
        await _send(writer, encode_u32(len(data)) + data)

    async def _screensize(
        self, payload: bytes, writer: ReplyWriter, session: SessionState
    ) -> None:
        geometry = session.geometry
        await _send(writer, encode_u16(geometry.width) + encode_u16(geometry.height))

    async def _terminate(
        self, payload: bytes, writer: ReplyWriter, session: SessionState
    ) -> None:
        logger.info("Terminate requested by client")
        self._capabilities.lifecycle.terminate_application()

    async def _touch(
        self, payload: bytes, writer: ReplyWriter, session: SessionState
    ) -> None:
        command = TouchCommand.parse(payload)
        if command is None:
            logger.debug("Ignoring touch payload without a phase byte")
            return

        try:
            phase = TouchPhase(command.phase)
        except ValueError:
            logger.debug("Ignoring touch phase %d", command.phase)
            return

        scale = session.geometry.scale
        x = div_round(command.x, scale)
        y = div_round(command.y, scale)

        await asyncio.to_thread(
            self._capabilities.input.inject_touch, x, y, phase, session.touch
        )
        if phase is TouchPhase.UP:
            session.touch.clear()

    async def _version(
        self, payload: bytes, writer: ReplyWriter, session: SessionState
    ) -> None:
        await _send(writer, encode_u32(PROTOCOL_VERSION))


async def _send(writer: ReplyWriter, data: bytes) -> None:
    writer.write(data)
    await writer.drain()
