"""Apicurio Registry dev service.

Starts a registry container for development and test runs when channels need
one and nobody configured a registry URL. One container per process: a build
that asks for the same settings reuses it, a build that asks for different
settings replaces it (stop first, then start), and process exit stops it.
"""

from __future__ import annotations

import atexit
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from protochannels.config.overlay import REGISTRY_URL_KEY
from protochannels.config.sources import Config
from protochannels.core.exceptions import DevServiceStartError
from protochannels.core.logger import get_logger
from protochannels.detection.registry import KAFKA_CONNECTOR
from protochannels.devservices.container import (
    DEFAULT_STARTUP_TIMEOUT,
    REGISTRY_API_PATH,
    RegistryContainer,
    wait_until_ready,
)
from protochannels.devservices.docker_status import DockerStatus
from protochannels.models.settings import DEFAULT_IMAGE, DEFAULT_SERVICE_NAME, DevServicesConfig, LaunchMode

logger = get_logger(__name__)

DEV_SERVICE_NAME = "apicurio-registry-protobuf"

_CHANNEL_PREFIXES = ("mp.messaging.incoming.", "mp.messaging.outgoing.")
_CONNECTOR_SUFFIX = ".connector"


class DevServiceSnapshot(BaseModel):
    """The settings a running container was started with. Compared by value."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    image_name: str = DEFAULT_IMAGE
    fixed_exposed_port: int = 0
    shared: bool = True
    service_name: str = DEFAULT_SERVICE_NAME
    container_env: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_config(cls, cfg: DevServicesConfig) -> "DevServiceSnapshot":
        return cls(
            enabled=True if cfg.enabled is None else cfg.enabled,
            image_name=cfg.image_name or DEFAULT_IMAGE,
            fixed_exposed_port=cfg.port or 0,
            shared=cfg.shared,
            service_name=cfg.service_name,
            container_env=dict(cfg.container_env),
        )


@dataclass(frozen=True)
class DevServicesResult:
    """What dependents need to know once the registry is up."""

    name: str
    container_id: Optional[str]
    config: Mapping[str, str] = field(default_factory=dict)


ContainerFactory = Callable[..., RegistryContainer]
ReadinessProbe = Callable[[str, float], None]


def has_kafka_channel_without_registry(config: Config) -> bool:
    """True if some Kafka channel has no ``<channel>.apicurio.registry.url`` of its own."""
    for name in config.get_property_names():
        if not name.startswith(_CHANNEL_PREFIXES) or not name.endswith(_CONNECTOR_SUFFIX):
            continue
        if config.get_value(name) != KAFKA_CONNECTOR:
            continue
        registry_url_prop = name[: -len(_CONNECTOR_SUFFIX)] + ".apicurio.registry.url"
        if not config.is_property_set(registry_url_prop):
            return True
    return False


class RegistryDevService:
    """
    Owns the process-wide registry container.

    Every read and write of the running container, its exported config and the
    snapshot it was started with happens under one lock, so concurrent
    ``ensure_running`` calls never both decide to restart.
    """

    def __init__(
        self,
        *,
        container_factory: ContainerFactory = RegistryContainer,
        docker_status: Optional[DockerStatus] = None,
        readiness_probe: ReadinessProbe = wait_until_ready,
        register_exit_hook: Callable[[Callable[[], None]], object] = atexit.register,
    ):
        self._container_factory = container_factory
        self._docker_status = docker_status or DockerStatus()
        self._readiness_probe = readiness_probe
        self._register_exit_hook = register_exit_hook

        self._lock = threading.RLock()
        self._container: Optional[RegistryContainer] = None
        self._config: Optional[Dict[str, str]] = None
        self._snapshot: Optional[DevServiceSnapshot] = None
        self._exit_hook_registered = False

    @property
    def running(self) -> bool:
        with self._lock:
            return self._container is not None

    @property
    def snapshot(self) -> Optional[DevServiceSnapshot]:
        with self._lock:
            return self._snapshot

    def ensure_running(
        self,
        snapshot: DevServiceSnapshot,
        timeout: Optional[float] = None,
        *,
        config: Config,
        launch_mode: LaunchMode = LaunchMode.DEVELOPMENT,
    ) -> Optional[DevServicesResult]:
        """
        Return the registry endpoint, starting or restarting the container as needed.

        Returns None when provisioning is skipped. Raises ``DevServiceStartError``
        if the container cannot be started.
        """
        with self._lock:
            if self._container is not None:
                if snapshot == self._snapshot:
                    return self._result(self._container)
                logger.info("Apicurio Registry dev service configuration changed, restarting")
                self._shutdown_locked()

            started = self._start(snapshot, config, launch_mode, timeout)
            if started is None:
                return None

            self._container, self._config = started
            self._snapshot = snapshot

            logger.info(
                "Dev Services for Apicurio Registry (Protobuf) started. The registry is available at %s",
                self._config[REGISTRY_URL_KEY],
            )

            if not self._exit_hook_registered:
                self._register_exit_hook(self.shutdown)
                self._exit_hook_registered = True

            return self._result(self._container)

    def shutdown(self) -> None:
        """Stop the container if one is running. Safe to call any number of times."""
        with self._lock:
            self._shutdown_locked()

    # -----------------
    # Internals
    # -----------------

    def _result(self, container: RegistryContainer) -> DevServicesResult:
        return DevServicesResult(
            name=DEV_SERVICE_NAME,
            container_id=container.container_id,
            config=dict(self._config or {}),
        )

    def _shutdown_locked(self) -> None:
        container = self._container
        if container is None:
            return
        try:
            container.stop()
        except Exception:
            logger.error("Failed to stop Apicurio Registry", exc_info=True)
        finally:
            self._container = None
            self._config = None
            self._snapshot = None

    def _start(
        self,
        snapshot: DevServiceSnapshot,
        config: Config,
        launch_mode: LaunchMode,
        timeout: Optional[float],
    ) -> Optional[Tuple[RegistryContainer, Dict[str, str]]]:
        if not snapshot.enabled:
            logger.debug("Not starting dev services for Apicurio Registry, as it has been disabled in the config.")
            return None

        if config.is_property_set(REGISTRY_URL_KEY):
            logger.debug("Not starting dev services for Apicurio Registry, %s is configured.", REGISTRY_URL_KEY)
            return None

        if not has_kafka_channel_without_registry(config):
            logger.debug(
                "Not starting dev services for Apicurio Registry, all the channels have a registry URL configured."
            )
            return None

        if not self._docker_status.is_container_runtime_available():
            logger.warning("Docker isn't working, please run Apicurio Registry yourself.")
            return None

        service_name = snapshot.service_name if snapshot.shared and launch_mode == LaunchMode.DEVELOPMENT else None
        container = self._container_factory(
            snapshot.image_name,
            fixed_exposed_port=snapshot.fixed_exposed_port,
            service_name=service_name,
            env=dict(snapshot.container_env),
        )

        startup_timeout = timeout if timeout is not None else DEFAULT_STARTUP_TIMEOUT
        try:
            container.start()
            base_url = container.get_url()
            self._readiness_probe(base_url, startup_timeout)
        except Exception as exc:
            _stop_quietly(container)
            if isinstance(exc, DevServiceStartError):
                raise
            raise DevServiceStartError(
                "Failed to start Apicurio Registry dev service",
                details={"image": snapshot.image_name, "error": str(exc)},
            ) from exc

        return container, {REGISTRY_URL_KEY: base_url + REGISTRY_API_PATH}


def _stop_quietly(container: RegistryContainer) -> None:
    try:
        container.stop()
    except Exception:
        logger.debug("Could not stop half-started registry container", exc_info=True)


_DEFAULT_SERVICE: Optional[RegistryDevService] = None
_DEFAULT_LOCK = threading.Lock()


def get_dev_service() -> RegistryDevService:
    """The process-wide dev service shared by every build in this interpreter."""
    global _DEFAULT_SERVICE
    with _DEFAULT_LOCK:
        if _DEFAULT_SERVICE is None:
            _DEFAULT_SERVICE = RegistryDevService()
        return _DEFAULT_SERVICE
