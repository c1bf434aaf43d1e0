from __future__ import annotations

import threading
from typing import Dict, Iterable, Optional, Set

from protochannels.config.sources import OVERLAY_ORDINAL
from protochannels.detection.registry import KAFKA_CONNECTOR
from protochannels.models.settings import RegistryRuntimeConfig

# Value serde (Protobuf via Apicurio Registry)
PROTOBUF_SERIALIZER = "io.apicurio.registry.serde.protobuf.ProtobufKafkaSerializer"
PROTOBUF_DESERIALIZER = "io.apicurio.registry.serde.protobuf.ProtobufKafkaDeserializer"

# Key serde (UUID keys are enforced for every Protobuf channel)
UUID_SERIALIZER = "org.apache.kafka.common.serialization.UUIDSerializer"
UUID_DESERIALIZER = "org.apache.kafka.common.serialization.UUIDDeserializer"

CONNECTOR_PREFIX = f"mp.messaging.connector.{KAFKA_CONNECTOR}.apicurio."
REGISTRY_URL_KEY = CONNECTOR_PREFIX + "registry.url"


class ProtobufChannelConfigSource:
    """
    Config source that supplies Protobuf serializer/deserializer settings for
    detected Kafka channels.

    The ordinal is 200, below the application configuration (250), so any
    single key can be overridden there without switching the mechanism off;
    it still beats generic defaults (100).

    Properties are synthesized once, on the first read after ``enable()``.
    Registering channels afterwards drops the cached map and the next read
    rebuilds it. Reads of unknown keys return ``None``.
    """

    NAME = "ProtobufChannelConfigSource"

    def __init__(self, runtime: Optional[RegistryRuntimeConfig] = None):
        self._runtime = runtime or RegistryRuntimeConfig()
        self._incoming: Dict[str, str] = {}
        self._outgoing: Dict[str, str] = {}
        self._enabled = False
        self._properties: Dict[str, str] = {}
        self._lock = threading.RLock()

    # -----------------
    # Registration
    # -----------------

    def register_incoming_channel(self, channel_name: str) -> None:
        with self._lock:
            self._incoming[channel_name] = channel_name
            self._properties = {}

    def register_outgoing_channel(self, channel_name: str) -> None:
        with self._lock:
            self._outgoing[channel_name] = channel_name
            self._properties = {}

    def set_channels(self, incoming: Iterable[str], outgoing: Iterable[str]) -> None:
        with self._lock:
            self._incoming = {name: name for name in incoming}
            self._outgoing = {name: name for name in outgoing}
            self._properties = {}

    def enable(self) -> None:
        self.set_enabled(True)

    def set_enabled(self, value: bool) -> None:
        with self._lock:
            self._enabled = value
            if not value:
                self._properties = {}

    @property
    def enabled(self) -> bool:
        return self._enabled

    # -----------------
    # Synthesis
    # -----------------

    def _build_properties(self) -> Dict[str, str]:
        with self._lock:
            if not self._enabled or self._properties:
                return self._properties

            properties: Dict[str, str] = {}
            for channel_name in self._incoming:
                prefix = f"mp.messaging.incoming.{channel_name}."
                properties[prefix + "connector"] = KAFKA_CONNECTOR
                properties[prefix + "key.deserializer"] = UUID_DESERIALIZER
                properties[prefix + "value.deserializer"] = PROTOBUF_DESERIALIZER
                properties[prefix + "auto.offset.reset"] = "earliest"

            for channel_name in self._outgoing:
                prefix = f"mp.messaging.outgoing.{channel_name}."
                properties[prefix + "connector"] = KAFKA_CONNECTOR
                properties[prefix + "key.serializer"] = UUID_SERIALIZER
                properties[prefix + "value.serializer"] = PROTOBUF_SERIALIZER

            if self._incoming or self._outgoing:
                runtime = self._runtime
                properties[CONNECTOR_PREFIX + "protobuf.derive.class"] = _flag(runtime.derive_class)
                properties[CONNECTOR_PREFIX + "registry.auto-register"] = _flag(runtime.auto_register)
                properties[CONNECTOR_PREFIX + "registry.artifact-resolver-strategy"] = (
                    runtime.artifact_resolver_strategy
                )
                properties[CONNECTOR_PREFIX + "registry.find-latest"] = _flag(runtime.find_latest)
                if runtime.explicit_group_id:
                    properties[CONNECTOR_PREFIX + "registry.artifact.group-id"] = runtime.explicit_group_id

            self._properties = properties
            return self._properties

    # -----------------
    # ConfigSource
    # -----------------

    def get_properties(self) -> Dict[str, str]:
        return dict(self._build_properties())

    def get_property_names(self) -> Set[str]:
        return set(self._build_properties())

    def get_value(self, key: str) -> Optional[str]:
        return self._build_properties().get(key)

    def get_name(self) -> str:
        return self.NAME

    def get_ordinal(self) -> int:
        return OVERLAY_ORDINAL


def _flag(value: bool) -> str:
    return "true" if value else "false"
