from __future__ import annotations

import subprocess
from typing import Optional

from protochannels.core.logger import get_logger

logger = get_logger(__name__)


def is_container_runtime_available(timeout: float = 10.0) -> bool:
    """Return True if ``docker info`` succeeds."""
    try:
        result = subprocess.run(
            ["docker", "info"],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
            shell=False,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as exc:
        logger.debug("Container runtime probe failed: %s", exc)
        return False
    return result.returncode == 0


class DockerStatus:
    """Caches the runtime probe for the lifetime of the process."""

    def __init__(self, timeout: float = 10.0):
        self._timeout = timeout
        self._available: Optional[bool] = None

    def is_container_runtime_available(self) -> bool:
        if self._available is None:
            self._available = is_container_runtime_available(self._timeout)
        return self._available
