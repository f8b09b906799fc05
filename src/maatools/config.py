"""Configuration helpers for the control server."""

from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass(slots=True)
class MaaToolsSettings:
    """Runtime configuration sourced from environment variables."""

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 0
    backend: str = "headless"
    ready_poll_interval_seconds: float = 1.0
    idle_timeout_seconds: float | None = None
    window_label: str = "MaaTools"
    display_width: int = 1280
    display_height: int = 720
    display_scale: float = 1.0

    @classmethod
    def from_env(cls) -> "MaaToolsSettings":
        """Create settings object using environment overrides."""

        def _int(name: str, default: int) -> int:
            raw = os.getenv(name)
            try:
                return int(raw) if raw is not None else default
            except ValueError:
                return default

        def _float(name: str, default: float | None) -> float | None:
            raw = os.getenv(name)
            if raw is None or not raw.strip():
                return default
            try:
                return float(raw)
            except ValueError:
                return default

        def _bool(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.strip().lower() in {"1", "true", "yes", "on"}

        defaults = cls()

        return cls(
            enabled=_bool("MAATOOLS_ENABLED", defaults.enabled),
            host=os.getenv("MAATOOLS_HOST", defaults.host),
            port=_int("MAATOOLS_PORT", defaults.port),
            backend=os.getenv("MAATOOLS_BACKEND", defaults.backend),
            ready_poll_interval_seconds=_float(
                "MAATOOLS_READY_POLL_INTERVAL", defaults.ready_poll_interval_seconds
            ),
            idle_timeout_seconds=_float(
                "MAATOOLS_IDLE_TIMEOUT", defaults.idle_timeout_seconds
            ),
            window_label=os.getenv("MAATOOLS_WINDOW_LABEL", defaults.window_label),
            display_width=_int("MAATOOLS_DISPLAY_WIDTH", defaults.display_width),
            display_height=_int("MAATOOLS_DISPLAY_HEIGHT", defaults.display_height),
            display_scale=_float("MAATOOLS_DISPLAY_SCALE", defaults.display_scale),
        )
