"""Interfaces to the collaborators the protocol engine drives."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from .protocol import TouchPhase


@dataclass(frozen=True, slots=True)
class DisplayGeometry:
    """Display size in device pixels and the device-to-logical scale."""

    width: int
    height: int
    scale: float = 1.0

    @property
    def is_ready(self) -> bool:
        return self.width > 0 and self.height > 0 and self.scale > 0


@dataclass(slots=True)
class TouchSequence:
    """Mutable handle shared by the down/move/up calls of one gesture."""

    identifier: Optional[int] = None

    def clear(self) -> None:
        self.identifier = None


class FrameProvider(Protocol):
    def capture_frame(self, width: int, height: int) -> Optional[bytes]:
        """Return ``width * height * 4`` pixel bytes, or None if no image."""


class InputInjector(Protocol):
    def inject_touch(
        self, x: int, y: int, phase: TouchPhase, sequence: TouchSequence
    ) -> None:
        """Deliver one touch event at logical coordinates."""


class DisplayInfo(Protocol):
    def get_display_geometry(self) -> Optional[DisplayGeometry]:
        ...

    def get_window_label(self) -> Optional[str]:
        ...

    def set_window_label(self, label: str) -> None:
        ...


class LifecycleController(Protocol):
    def terminate_application(self) -> None:
        ...


@dataclass(slots=True)
class Capabilities:
    """Bundle of collaborators handed to the server at startup."""

    frames: FrameProvider
    input: InputInjector
    display: DisplayInfo
    lifecycle: LifecycleController
