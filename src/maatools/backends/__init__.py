"""Concrete collaborator sets selectable from configuration."""

from __future__ import annotations

import asyncio

from ..capabilities import Capabilities, DisplayGeometry
from ..config import MaaToolsSettings
from .headless import (
    NullFrameProvider,
    RecordingInputInjector,
    StaticDisplay,
    StopEventLifecycle,
)

BACKENDS = ("headless", "desktop")


def load_backend(settings: MaaToolsSettings, stop_event: asyncio.Event) -> Capabilities:
    """Build the collaborators named by ``settings.backend``."""

    lifecycle = StopEventLifecycle(stop_event)

    if settings.backend == "headless":
        geometry = DisplayGeometry(
            settings.display_width, settings.display_height, settings.display_scale
        )
        return Capabilities(
            frames=NullFrameProvider(),
            input=RecordingInputInjector(),
            display=StaticDisplay(geometry, settings.window_label),
            lifecycle=lifecycle,
        )

    if settings.backend == "desktop":
        # Imported lazily: pyautogui needs a display at import time
        from .desktop import DesktopDisplay, DesktopFrameProvider, DesktopInputInjector

        return Capabilities(
            frames=DesktopFrameProvider(),
            input=DesktopInputInjector(),
            display=DesktopDisplay(settings.window_label, settings.display_scale),
            lifecycle=lifecycle,
        )

    raise ValueError(
        f"unknown backend {settings.backend!r}; expected one of {', '.join(BACKENDS)}"
    )
