"""Length-prefixed frame reader with cooperative cancellation."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional

from .protocol import FRAME_HEADER, ConnectionClosedError, EmptyContentError


class FrameReader:
    """Pulls ``[u16 length][payload]`` frames off a stream until cancelled.

    ``next_payload`` returns ``None`` once ``cancel`` has been called, even if
    it was blocked on the network at the time. Read failures propagate:
    a stream that ends early raises :class:`EmptyContentError`
    (:class:`ConnectionClosedError` when it ends between frames), and an expired
    idle timeout raises :class:`asyncio.TimeoutError`.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        *,
        idle_timeout: Optional[float] = None,
    ) -> None:
        self._reader = reader
        self._idle_timeout = idle_timeout
        self._cancelled = asyncio.Event()
        self._consumed = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    async def next_payload(self) -> Optional[bytes]:
        if self._cancelled.is_set():
            return None

        header = await self._read_exactly(
            FRAME_HEADER.size, self._idle_timeout, at_boundary=True
        )
        if header is None:
            return None
        (length,) = FRAME_HEADER.unpack(header)

        return await self._read_exactly(length, None)

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._consumed:
            raise RuntimeError("FrameReader can only be iterated once")
        self._consumed = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        while True:
            payload = await self.next_payload()
            if payload is None:
                return
            yield payload

    async def _read_exactly(
        self, size: int, timeout: Optional[float], at_boundary: bool = False
    ) -> Optional[bytes]:
        read = asyncio.ensure_future(self._reader.readexactly(size))
        cancel = asyncio.ensure_future(self._cancelled.wait())
        try:
            done, _ = await asyncio.wait(
                {read, cancel},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel.cancel()
            if not read.done():
                read.cancel()
            elif not read.cancelled():
                # Mark a finished read as retrieved even when it is discarded.
                read.exception()

        if cancel in done:
            return None

        if read not in done:
            raise asyncio.TimeoutError(f"no frame received within {timeout}s")

        try:
            return read.result()
        except asyncio.IncompleteReadError as exc:
            if at_boundary and not exc.partial:
                raise ConnectionClosedError("peer closed the connection") from exc
            raise EmptyContentError(
                f"expected {size} bytes, received {len(exc.partial)}"
            ) from exc
