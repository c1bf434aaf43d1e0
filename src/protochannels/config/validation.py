from __future__ import annotations

from typing import Optional, Tuple

from protochannels.config.overlay import REGISTRY_URL_KEY
from protochannels.config.sources import Config
from protochannels.core.contracts import DetectedChannels
from protochannels.core.exceptions import RegistryConfigurationError
from protochannels.core.logger import get_logger

logger = get_logger(__name__)

# Keys people set by mistake; none of them reach the Kafka connector.
UNBRIDGED_REGISTRY_KEYS: Tuple[str, ...] = (
    "apicurio.registry.url",
    "kafka.apicurio.registry.url",
    "mp.messaging.connector.smallrye-kafka.registry.url",
    "apicurio-registry.protobuf.registry-url",
)


def find_unbridged_registry_key(config: Config) -> Optional[str]:
    for key in UNBRIDGED_REGISTRY_KEYS:
        if config.is_property_set(key):
            return key
    return None


def reject_unbridged_registry_url(config: Config, channels: DetectedChannels) -> None:
    """
    Raise ``RegistryConfigurationError`` when channels exist, the connector
    endpoint is unset and a URL sits under a key the connector never reads.

    Runs before the dev service is provisioned, so a started container can
    never hide the misplaced URL.
    """
    if channels.is_empty() or config.is_property_set(REGISTRY_URL_KEY):
        return

    misplaced = find_unbridged_registry_key(config)
    if misplaced is not None:
        raise RegistryConfigurationError(
            configured_key=misplaced,
            required_key=REGISTRY_URL_KEY,
            value=config.get_value(misplaced),
        )


def validate_registry_configuration(config: Config, channels: DetectedChannels) -> None:
    """
    Check that Protobuf channels will find a registry at runtime.

    Raises ``RegistryConfigurationError`` when the URL was put under a key the
    connector never reads. A missing URL on its own is only logged.
    """
    if channels.is_empty() or config.is_property_set(REGISTRY_URL_KEY):
        return

    reject_unbridged_registry_url(config, channels)

    channels_with_own_url = [
        d.name for d in channels.descriptors() if config.is_property_set(d.prefix + "apicurio.registry.url")
    ]
    if len(channels_with_own_url) == len(channels.descriptors()):
        return

    logger.warning(
        "No Apicurio Registry URL configured and no dev service is running; "
        "Protobuf channels will fail to (de)serialize until %s is set",
        REGISTRY_URL_KEY,
    )
