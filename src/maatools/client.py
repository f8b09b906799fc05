"""Asyncio client for the automation control protocol."""

from __future__ import annotations

import asyncio
from typing import Optional, Tuple

from .protocol import (
    CONNECT_MAGIC,
    HANDSHAKE_REPLY,
    SCREENCAP_MAGIC,
    SIZE_MAGIC,
    TERMINATE_MAGIC,
    U16,
    U32,
    VERSION_MAGIC,
    EmptyContentError,
    InvalidMessageError,
    TouchCommand,
    decode_u16,
    pack_frame,
)


class MaaToolsClient:
    """Sends one command at a time and reads its reply."""

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    async def __aenter__(self) -> "MaaToolsClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def connect(self) -> None:
        self._reader, self._writer = await asyncio.open_connection(self.host, self.port)
        self._writer.write(CONNECT_MAGIC)
        await self._writer.drain()

        reply = await self._read(len(HANDSHAKE_REPLY))
        if reply != HANDSHAKE_REPLY:
            raise InvalidMessageError(f"unexpected handshake reply {reply!r}")

    async def close(self) -> None:
        if self._writer is None:
            return
        writer, self._writer = self._writer, None
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass

    async def screencap(self) -> bytes:
        await self._send(SCREENCAP_MAGIC)
        (length,) = U32.unpack(await self._read(U32.size))
        return await self._read(length)

    async def size(self) -> Tuple[int, int]:
        await self._send(SIZE_MAGIC)
        reply = await self._read(2 * U16.size)
        return decode_u16(reply, 0), decode_u16(reply, U16.size)

    async def version(self) -> int:
        await self._send(VERSION_MAGIC)
        (version,) = U32.unpack(await self._read(U32.size))
        return version

    async def touch(self, phase: int, x: int, y: int) -> None:
        await self._send(TouchCommand(phase, x, y).encode())

    async def terminate(self) -> None:
        await self._send(TERMINATE_MAGIC)

    async def _send(self, payload: bytes) -> None:
        if self._writer is None:
            raise RuntimeError("client is not connected")
        self._writer.write(pack_frame(payload))
        await self._writer.drain()

    async def _read(self, size: int) -> bytes:
        if self._reader is None:
            raise RuntimeError("client is not connected")
        try:
            return await self._reader.readexactly(size)
        except asyncio.IncompleteReadError as exc:
            raise EmptyContentError(
                f"expected {size} bytes, received {len(exc.partial)}"
            ) from exc
