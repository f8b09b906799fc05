"""Collaborators backed by the local desktop session."""

from __future__ import annotations

import itertools
import logging
from typing import Optional

import mss
import pyautogui
from mss.exception import ScreenShotError
from PIL import Image

from ..capabilities import DisplayGeometry, TouchSequence
from ..imaging import normalize_frame
from ..protocol import TouchPhase

logger = logging.getLogger(__name__)


def _monitor(sct: "mss.base.MSSBase", index: int) -> dict:
    if index < len(sct.monitors):
        return sct.monitors[index]
    return sct.monitors[0]


class DesktopDisplay:
    def __init__(self, label: str, scale: float = 1.0, monitor: int = 1):
        self._label = label
        self._scale = scale
        self._monitor = monitor

    def get_display_geometry(self) -> Optional[DisplayGeometry]:
        try:
            with mss.mss() as sct:
                monitor = _monitor(sct, self._monitor)
        except ScreenShotError as exc:
            logger.debug("Display not available yet: %r", exc)
            return None
        return DisplayGeometry(monitor["width"], monitor["height"], self._scale)

    def get_window_label(self) -> Optional[str]:
        return self._label

    def set_window_label(self, label: str) -> None:
        logger.info("Window label set to %r", label)
        self._label = label


class DesktopFrameProvider:
    """Grabs the monitor and normalizes it to the requested size."""

    def __init__(self, monitor: int = 1):
        self._monitor = monitor

    def capture_frame(self, width: int, height: int) -> Optional[bytes]:
        # mss handles are bound to the creating thread
        try:
            with mss.mss() as sct:
                shot = sct.grab(_monitor(sct, self._monitor))
        except ScreenShotError as exc:
            logger.error("Failed to fetch screenshot: %r", exc)
            return None

        image = Image.frombytes("RGB", shot.size, shot.bgra, "raw", "BGRX")
        return normalize_frame(image, width, height)


class DesktopInputInjector:
    """Maps touches onto the primary mouse button."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        pyautogui.FAILSAFE = False
        pyautogui.PAUSE = 0

    def inject_touch(
        self, x: int, y: int, phase: TouchPhase, sequence: TouchSequence
    ) -> None:
        if phase is TouchPhase.DOWN:
            if sequence.identifier is None:
                sequence.identifier = next(self._ids)
            pyautogui.mouseDown(x=x, y=y)
        elif phase is TouchPhase.MOVE:
            pyautogui.moveTo(x, y)
        elif phase is TouchPhase.UP:
            pyautogui.mouseUp(x=x, y=y)
