"""Runtime settings for the target and exporter listeners.

Defaults match a single local process: the exporter scrapes the target it
runs alongside. Every field can be overridden from the environment, and
``server.py`` lets the command line override the environment.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass


@dataclass
class Settings:
    target_addr: str = ":8080"
    exporter_addr: str = ":9000"
    target_url: str = "http://localhost:8080"
    fetch_timeout: float = 5.0
    shutdown_timeout: float = 10.0
    legacy_stats_status: bool = False
    log_level: str = "info"

    def __post_init__(self) -> None:
        self.target_url = self.target_url.rstrip("/")
        for name in ("fetch_timeout", "shutdown_timeout"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be a positive number of seconds, got {value!r}")

    @classmethod
    def from_env(cls) -> "Settings":
        def as_bool(value: str | None, default: bool) -> bool:
            if value is None:
                return default
            if value.lower() in {"1", "true", "t", "yes", "y"}:
                return True
            if value.lower() in {"0", "false", "f", "no", "n"}:
                return False
            return default

        return cls(
            target_addr=os.getenv("EXPORTER_TARGET_ADDR", cls.target_addr),
            exporter_addr=os.getenv("EXPORTER_LISTEN_ADDR", cls.exporter_addr),
            target_url=os.getenv("EXPORTER_TARGET_URL", cls.target_url),
            fetch_timeout=positive_float(os.getenv("EXPORTER_FETCH_TIMEOUT", str(cls.fetch_timeout))),
            shutdown_timeout=positive_float(os.getenv("EXPORTER_SHUTDOWN_TIMEOUT", str(cls.shutdown_timeout))),
            legacy_stats_status=as_bool(os.getenv("EXPORTER_LEGACY_STATS_STATUS"), cls.legacy_stats_status),
            log_level=os.getenv("EXPORTER_LOG_LEVEL", cls.log_level),
        )


def positive_float(value: str) -> float:
    """argparse type for timeouts."""

    try:
        number = float(value)
    except ValueError:
        raise ValueError(f"not a number: {value!r}") from None
    if not math.isfinite(number) or number <= 0:
        raise ValueError(f"must be a positive number: {value!r}")
    return number


def parse_addr(addr: str) -> tuple[str, int]:
    """Split ``host:port``; an empty host means all interfaces."""

    host, sep, port = addr.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid listen address: {addr!r}")
    port_number = int(port)
    if port_number > 65535:
        raise ValueError(f"port out of range in {addr!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host or "0.0.0.0", port_number


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
