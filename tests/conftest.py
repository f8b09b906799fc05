"""Shared fixtures for the control server tests."""

import asyncio
import threading
from typing import List, Optional, Tuple

import pytest
import pytest_asyncio

from maatools.backends.headless import RecordingInputInjector, StaticDisplay
from maatools.capabilities import Capabilities, DisplayGeometry
from maatools.commands import CommandDispatcher, SessionState
from maatools.listener import Listener


class FakeWriter:
    """Collects replies written by the dispatcher."""

    def __init__(self):
        self.buffer = bytearray()
        self.drains = 0

    def write(self, data: bytes) -> None:
        self.buffer.extend(data)

    async def drain(self) -> None:
        self.drains += 1


class FakeFrames:
    """Frame provider returning a canned image, optionally gated on an event."""

    def __init__(self, frame: Optional[bytes] = None):
        self.frame = frame
        self.calls: List[Tuple[int, int]] = []
        self.release: Optional[threading.Event] = None

    def capture_frame(self, width: int, height: int) -> Optional[bytes]:
        self.calls.append((width, height))
        if self.release is not None:
            self.release.wait(timeout=5)
        return self.frame


class FakeLifecycle:
    def __init__(self):
        self.terminated = 0

    def terminate_application(self) -> None:
        self.terminated += 1


@pytest.fixture
def geometry():
    return DisplayGeometry(width=1170, height=2532, scale=3.0)


@pytest.fixture
def capabilities(geometry):
    return Capabilities(
        frames=FakeFrames(),
        input=RecordingInputInjector(),
        display=StaticDisplay(geometry, "Game"),
        lifecycle=FakeLifecycle(),
    )


@pytest.fixture
def session(geometry):
    return SessionState(geometry=geometry, window_label="Game")


@pytest.fixture
def writer():
    return FakeWriter()


@pytest.fixture
def dispatcher(capabilities):
    return CommandDispatcher(capabilities)


@pytest_asyncio.fixture
async def listener(dispatcher, capabilities, geometry):
    server = Listener(
        dispatcher,
        capabilities.display,
        geometry,
        "Game",
        host="127.0.0.1",
        port=0,
    )
    await server.start()
    try:
        yield server
    finally:
        release = capabilities.frames.release
        if release is not None:
            release.set()
        await server.close()


@pytest.fixture
def open_session():
    """Open a raw connection and complete the handshake."""

    async def _open(port: int):
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        writer.write(b"MAA\x00")
        await writer.drain()
        assert await reader.readexactly(4) == b"OKAY"
        return reader, writer

    return _open
