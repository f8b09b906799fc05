"""Tests for the server runtime and startup gate."""

import asyncio
import os
import signal
import sys
from pathlib import Path

import pytest

from maatools.backends import load_backend
from maatools.backends.headless import StaticDisplay
from maatools.capabilities import DisplayGeometry
from maatools.client import MaaToolsClient
from maatools.config import MaaToolsSettings
from maatools.server import MaaToolsServer, run_async, wait_for_display

SRC_DIR = Path(__file__).resolve().parents[1] / "src"


class SlowDisplay(StaticDisplay):
    """Reports nothing until it has been polled ``ready_after`` times."""

    def __init__(self, geometry, label, ready_after):
        super().__init__(geometry, label)
        self.polls = 0
        self.ready_after = ready_after

    def get_display_geometry(self):
        self.polls += 1
        if self.polls < self.ready_after:
            return None
        return super().get_display_geometry()


def headless_settings(**overrides):
    values = dict(host="127.0.0.1", port=0, backend="headless", ready_poll_interval_seconds=0.01)
    values.update(overrides)
    return MaaToolsSettings(**values)


class TestWaitForDisplay:
    """Test the startup gate."""

    @pytest.mark.asyncio
    async def test_polls_until_geometry_is_known(self):
        display = SlowDisplay(DisplayGeometry(800, 600, 2.0), "Game", ready_after=3)

        geometry, label = await asyncio.wait_for(wait_for_display(display, 0.01), 1)

        assert geometry == DisplayGeometry(800, 600, 2.0)
        assert label == "Game"
        assert display.polls == 3

    @pytest.mark.asyncio
    async def test_keeps_waiting_without_label(self):
        display = StaticDisplay(DisplayGeometry(800, 600), None)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(wait_for_display(display, 0.01), 0.1)

    @pytest.mark.asyncio
    async def test_keeps_waiting_for_nonzero_size(self):
        display = StaticDisplay(DisplayGeometry(0, 600), "Game")

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(wait_for_display(display, 0.01), 0.1)


class TestMaaToolsServer:
    """Test the headless server end to end."""

    @pytest.mark.asyncio
    async def test_serves_configured_geometry(self):
        settings = headless_settings(display_width=1170, display_height=2532, display_scale=3.0)
        capabilities = load_backend(settings, asyncio.Event())
        server = MaaToolsServer(settings, capabilities)

        port = await server.start()
        try:
            async with MaaToolsClient("127.0.0.1", port) as client:
                assert await client.size() == (1170, 2532)
                assert await client.screencap() == b""
                await client.touch(0, 234, 468)
                await client.version()
        finally:
            await server.close()

        assert capabilities.display.get_window_label() == f"MaaTools [localhost:{port}]"
        assert (capabilities.input.events[0].x, capabilities.input.events[0].y) == (78, 156)

    @pytest.mark.asyncio
    async def test_terminate_sets_stop_event(self):
        settings = headless_settings()
        stop_event = asyncio.Event()
        server = MaaToolsServer(settings, load_backend(settings, stop_event))

        port = await server.start()
        try:
            async with MaaToolsClient("127.0.0.1", port) as client:
                await client.terminate()
                await asyncio.wait_for(stop_event.wait(), 1)
        finally:
            await server.close()


class TestRunAsync:
    """Test the top-level coroutine."""

    @pytest.mark.asyncio
    async def test_disabled_returns_immediately(self):
        await asyncio.wait_for(run_async(headless_settings(enabled=False)), 1)

    @pytest.mark.asyncio
    async def test_bind_failure_returns(self):
        occupant = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
        port = occupant.sockets[0].getsockname()[1]
        try:
            await asyncio.wait_for(run_async(headless_settings(port=port)), 2)
        finally:
            occupant.close()
            await occupant.wait_closed()

    @pytest.mark.asyncio
    async def test_cancellation_closes_listener(self):
        task = asyncio.create_task(run_async(headless_settings()))
        await asyncio.sleep(0.1)
        assert not task.done()

        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


class TestLoadBackend:
    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            load_backend(headless_settings(backend="vnc"), asyncio.Event())


async def read_bound_port(stream):
    while True:
        line = await stream.readline()
        if not line:
            raise AssertionError("server exited before listening")
        if b"Server started and listening on port" in line:
            return int(line.split()[-1])


@pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX signals")
class TestSignals:
    """Test that stop signals shut the server down cleanly."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("sig", [signal.SIGTERM, signal.SIGINT])
    async def test_signal_closes_listener(self, sig):
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(
            filter(None, [str(SRC_DIR), env.get("PYTHONPATH")])
        )
        process = await asyncio.create_subprocess_exec(
            sys.executable,
            "-m",
            "maatools.run",
            "--host",
            "127.0.0.1",
            "--port",
            "0",
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
        try:
            port = await asyncio.wait_for(read_bound_port(process.stderr), 10)
            reader, writer = await asyncio.open_connection("127.0.0.1", port)
            writer.write(b"MAA\x00")
            await writer.drain()
            assert await asyncio.wait_for(reader.readexactly(4), 2) == b"OKAY"

            process.send_signal(sig)

            assert await asyncio.wait_for(reader.read(), 5) == b""
            writer.close()
            output = await asyncio.wait_for(process.stderr.read(), 5)
            assert await asyncio.wait_for(process.wait(), 5) == 0
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()

        assert b"Server closed" in output
