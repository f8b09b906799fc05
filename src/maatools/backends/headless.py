"""Collaborators for running without a real display."""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import List, Optional

from ..capabilities import DisplayGeometry, TouchSequence
from ..protocol import TouchPhase

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TouchEvent:
    x: int
    y: int
    phase: TouchPhase
    identifier: Optional[int]


class StaticDisplay:
    """Display info with a fixed geometry and an in-memory window label."""

    def __init__(self, geometry: Optional[DisplayGeometry], label: Optional[str]):
        self._geometry = geometry
        self._label = label

    def get_display_geometry(self) -> Optional[DisplayGeometry]:
        return self._geometry

    def get_window_label(self) -> Optional[str]:
        return self._label

    def set_window_label(self, label: str) -> None:
        logger.info("Window label set to %r", label)
        self._label = label


class NullFrameProvider:
    def capture_frame(self, width: int, height: int) -> Optional[bytes]:
        logger.debug("No frame source attached; replying with an empty image")
        return None


class RecordingInputInjector:
    """Logs touches and keeps them for inspection."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.events: List[TouchEvent] = []

    def inject_touch(
        self, x: int, y: int, phase: TouchPhase, sequence: TouchSequence
    ) -> None:
        if phase is TouchPhase.DOWN and sequence.identifier is None:
            sequence.identifier = next(self._ids)
        logger.info(
            "touch %s at (%d, %d) id=%s", phase.name.lower(), x, y, sequence.identifier
        )
        self.events.append(TouchEvent(x, y, phase, sequence.identifier))


class StopEventLifecycle:
    """Terminates the application by setting the server's stop event."""

    def __init__(self, stop_event: asyncio.Event):
        self._stop_event = stop_event

    def terminate_application(self) -> None:
        self._stop_event.set()
