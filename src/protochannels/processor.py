from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Iterable, Optional

from protochannels.config.overlay import ProtobufChannelConfigSource
from protochannels.config.sources import (
    DEFAULTS_ORDINAL,
    DEV_SERVICES_ORDINAL,
    Config,
    ConfigSource,
    EnvConfigSource,
    MapConfigSource,
)
from protochannels.config.validation import reject_unbridged_registry_url, validate_registry_configuration
from protochannels.core.contracts import DetectedChannels
from protochannels.core.logger import configure_root_logger, get_logger, push_build_id, reset_build_id
from protochannels.detection.classifier import PayloadClassifier
from protochannels.detection.registry import connector_defaults, scan_channels
from protochannels.detection.transform import rewrite_index
from protochannels.devservices.lifecycle import (
    DevServiceSnapshot,
    DevServicesResult,
    RegistryDevService,
    get_dev_service,
)
from protochannels.index.symbol_index import InMemorySymbolIndex, SymbolIndex
from protochannels.models.settings import (
    DevServicesConfig,
    LaunchMode,
    RegistryRuntimeConfig,
    devservices_globally_enabled,
)

DEFAULT_VALUES_SOURCE = "DefaultValuesConfigSource"
DEV_SERVICES_SOURCE = "DevServicesConfigSource"


@dataclass(frozen=True)
class BuildResult:
    channels: DetectedChannels
    rewritten_index: InMemorySymbolIndex
    config: Config
    overlay: ProtobufChannelConfigSource
    dev_services: Optional[DevServicesResult] = None


class ChannelProcessor:
    """
    Runs one build over a symbol index.

    Example:
        >>> index = build_index(my_app_module)
        >>> result = ChannelProcessor(index, config_sources=[load_application_properties("app.yaml")]).process()
        >>> result.config.get_value("mp.messaging.incoming.orders.value.deserializer")
    """

    def __init__(
        self,
        index: SymbolIndex,
        *,
        config_sources: Optional[Iterable[ConfigSource]] = None,
        dev_service: Optional[RegistryDevService] = None,
        launch_mode: LaunchMode = LaunchMode.DEVELOPMENT,
        overlay: Optional[ProtobufChannelConfigSource] = None,
        classifier: Optional[PayloadClassifier] = None,
        build_id: Optional[str] = None,
        log_level: Optional[str] = "INFO",
    ):
        """
        Args:
            index: Declarations and classes of the application being built.
            config_sources: User configuration. Defaults to the process environment only.
            dev_service: Lifecycle manager for the registry container. Defaults to
                the process-wide instance.
            launch_mode: Production builds never provision a container.
            overlay: Reuse an existing overlay instead of creating one.
            classifier: Override the default Protobuf payload classifier.
            build_id: Correlates log lines of this build. A UUID if omitted.
            log_level: Level for protochannels logs; installs the stdout handler that
                prints the build id. Pass None to leave logging to the caller.
        """
        self.index = index
        self.config_sources = list(config_sources) if config_sources is not None else [EnvConfigSource()]
        self.dev_service = dev_service
        self.launch_mode = launch_mode
        self.overlay = overlay
        self.classifier = classifier
        self.build_id = build_id or str(uuid.uuid4())
        self.log_level = log_level

    def process(self) -> BuildResult:
        if self.log_level is not None:
            configure_root_logger(self.log_level)
        log = get_logger(__name__)
        token = push_build_id(self.build_id)
        try:
            user_config = Config(self.config_sources)

            channels = scan_channels(self.index, self.classifier)
            defaults = MapConfigSource(DEFAULT_VALUES_SOURCE, connector_defaults(channels), ordinal=DEFAULTS_ORDINAL)

            overlay = self.overlay or ProtobufChannelConfigSource(RegistryRuntimeConfig.from_config(user_config))
            overlay.set_channels(channels.incoming, channels.outgoing)
            overlay.enable()

            config = Config([*self.config_sources, overlay, defaults])
            reject_unbridged_registry_url(config, channels)

            dev_services = self._provision(config)
            if dev_services is not None:
                config = config.with_source(
                    MapConfigSource(DEV_SERVICES_SOURCE, dev_services.config, ordinal=DEV_SERVICES_ORDINAL)
                )

            rewritten = rewrite_index(self.index)
            validate_registry_configuration(config, channels)

            log.info("Build complete: %d Protobuf channels", len(channels.descriptors()))
            return BuildResult(
                channels=channels,
                rewritten_index=rewritten,
                config=config,
                overlay=overlay,
                dev_services=dev_services,
            )
        finally:
            reset_build_id(token)

    def _provision(self, config: Config) -> Optional[DevServicesResult]:
        if self.launch_mode == LaunchMode.PRODUCTION:
            return None
        if not devservices_globally_enabled(config):
            get_logger(__name__).debug("Dev services are disabled globally")
            return None

        settings = DevServicesConfig.from_config(config)
        service = self.dev_service or get_dev_service()
        return service.ensure_running(
            DevServiceSnapshot.from_config(settings),
            settings.timeout_seconds,
            config=config,
            launch_mode=self.launch_mode,
        )
