from __future__ import annotations

import time
from typing import Callable, Dict, Optional

import httpx
from testcontainers.core.container import DockerContainer

from protochannels.core.exceptions import DevServiceStartError
from protochannels.core.logger import get_logger

logger = get_logger(__name__)

APICURIO_REGISTRY_PORT = 8080
DEV_SERVICE_LABEL = "quarkus-dev-service-apicurio-registry-protobuf"
REGISTRY_API_PATH = "/apis/registry/v3"
READINESS_PATH = REGISTRY_API_PATH + "/system/info"
DEFAULT_STARTUP_TIMEOUT = 60.0


class RegistryContainer(DockerContainer):
    """Apicurio Registry in a container, on a fixed or an ephemeral host port."""

    def __init__(
        self,
        image: str,
        *,
        fixed_exposed_port: int = 0,
        service_name: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ):
        super().__init__(image)
        self.fixed_exposed_port = fixed_exposed_port

        if fixed_exposed_port > 0:
            self.with_bind_ports(APICURIO_REGISTRY_PORT, fixed_exposed_port)
        else:
            self.with_exposed_ports(APICURIO_REGISTRY_PORT)

        if service_name is not None:
            self.with_kwargs(labels={DEV_SERVICE_LABEL: service_name})

        self.with_env("QUARKUS_PROFILE", "prod")
        for key, value in (env or {}).items():
            self.with_env(key, value)

    def get_url(self) -> str:
        host = self.get_container_host_ip()
        port = self.get_exposed_port(APICURIO_REGISTRY_PORT)
        return f"http://{host}:{port}"

    @property
    def container_id(self) -> Optional[str]:
        wrapped = self.get_wrapped_container()
        return wrapped.id if wrapped is not None else None


def wait_until_ready(
    base_url: str,
    timeout: float = DEFAULT_STARTUP_TIMEOUT,
    *,
    client: Optional[httpx.Client] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    interval: float = 0.5,
) -> None:
    """Poll the registry until it answers, or raise ``DevServiceStartError`` after ``timeout`` seconds."""
    http = client or httpx.Client(timeout=min(interval * 4, 5.0))
    url = base_url + READINESS_PATH
    deadline = clock() + timeout
    last_error: Optional[str] = None
    try:
        while True:
            try:
                resp = http.get(url)
                if resp.status_code == 200:
                    logger.debug("Apicurio Registry ready at %s", base_url)
                    return
                last_error = f"HTTP {resp.status_code}"
            except httpx.HTTPError as exc:
                last_error = str(exc) or type(exc).__name__

            if clock() >= deadline:
                raise DevServiceStartError(
                    "Apicurio Registry did not become ready in time",
                    details={"url": url, "timeout_seconds": timeout, "last_error": last_error},
                )
            sleep(interval)
    finally:
        if client is None:
            http.close()
