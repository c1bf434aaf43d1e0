from __future__ import annotations

from typing import Dict, Optional, Set

from protochannels import annotations as markers
from protochannels.core.contracts import DetectedChannels, TargetKind
from protochannels.core.logger import get_logger
from protochannels.detection.classifier import PayloadClassifier, extract_emitter_type
from protochannels.index.symbol_index import SymbolIndex

logger = get_logger(__name__)

KAFKA_CONNECTOR = "smallrye-kafka"


class ChannelRegistry:
    """Incoming and outgoing channel names that need Protobuf serde settings."""

    def __init__(self) -> None:
        self._incoming: Set[str] = set()
        self._outgoing: Set[str] = set()

    def register_incoming(self, channel_name: str, *, source: str = "") -> bool:
        if channel_name in self._incoming:
            return False
        self._incoming.add(channel_name)
        logger.debug("Configuring incoming channel %s (%s)", channel_name, source or "explicit")
        return True

    def register_outgoing(self, channel_name: str, *, source: str = "") -> bool:
        if channel_name in self._outgoing:
            return False
        self._outgoing.add(channel_name)
        logger.debug("Configuring outgoing channel %s (%s)", channel_name, source or "explicit")
        return True

    @property
    def incoming(self) -> frozenset:
        return frozenset(self._incoming)

    @property
    def outgoing(self) -> frozenset:
        return frozenset(self._outgoing)

    def snapshot(self) -> DetectedChannels:
        return DetectedChannels(incoming=self.incoming, outgoing=self.outgoing)


def scan_channels(
    index: SymbolIndex,
    classifier: Optional[PayloadClassifier] = None,
    *,
    registry: Optional[ChannelRegistry] = None,
) -> DetectedChannels:
    """
    Collect Protobuf channels from every detection source.

    - ``ProtobufIncoming`` / ``ProtobufOutgoing`` / ``ProtobufChannel``: always registered.
    - ``Incoming`` on a method: registered when a parameter is a Protobuf message.
    - ``Outgoing`` on a method: registered when the return type is a Protobuf message.
    - ``Channel`` on a field or parameter: registered as outgoing when the
      wrapper's type argument (``Emitter[T]``) is a Protobuf message.
    """
    classifier = classifier or PayloadClassifier(index)
    registry = registry or ChannelRegistry()

    for usage in index.get_annotations(markers.PROTOBUF_INCOMING):
        registry.register_incoming(usage.annotation.value, source="ProtobufIncoming")

    for usage in index.get_annotations(markers.PROTOBUF_OUTGOING):
        registry.register_outgoing(usage.annotation.value, source="ProtobufOutgoing")

    for usage in index.get_annotations(markers.PROTOBUF_CHANNEL):
        registry.register_outgoing(usage.annotation.value, source="ProtobufChannel")

    for usage in index.get_annotations(markers.INCOMING):
        target = usage.target
        if target.kind != TargetKind.METHOD:
            continue
        if any(classifier.is_structured_payload(param) for param in target.parameters):
            registry.register_incoming(usage.annotation.value, source=f"Incoming on {target.qualified_name}")

    for usage in index.get_annotations(markers.OUTGOING):
        target = usage.target
        if target.kind != TargetKind.METHOD:
            continue
        if classifier.is_structured_payload(target.type):
            registry.register_outgoing(usage.annotation.value, source=f"Outgoing on {target.qualified_name}")

    for usage in index.get_annotations(markers.CHANNEL):
        target = usage.target
        if target.kind not in (TargetKind.FIELD, TargetKind.METHOD_PARAMETER):
            continue
        message_type = extract_emitter_type(target.type)
        if message_type is not None and classifier.is_structured_payload(message_type):
            registry.register_outgoing(usage.annotation.value, source=f"Channel on {target.qualified_name}")

    detected = registry.snapshot()
    logger.info(
        "Configured %d incoming and %d outgoing Protobuf channels",
        len(detected.incoming),
        len(detected.outgoing),
    )
    return detected


def connector_defaults(channels: DetectedChannels, connector: str = KAFKA_CONNECTOR) -> Dict[str, str]:
    """Low-priority ``connector`` bindings so provisioning can see every detected channel."""
    defaults: Dict[str, str] = {}
    for descriptor in channels.descriptors():
        defaults[descriptor.prefix + "connector"] = connector
    return defaults

