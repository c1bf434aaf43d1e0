"""protochannels.

Protobuf channel auto-configuration for Kafka messaging.

Finds message channels whose payloads are Protobuf messages, supplies the
serializer, deserializer and Apicurio Registry settings for them as a
low-priority config source, and starts a local registry container during
development when no registry URL is configured.
"""

from protochannels.annotations import (
    channel,
    incoming,
    outgoing,
    protobuf_channel,
    protobuf_incoming,
    protobuf_outgoing,
)
from protochannels.config.overlay import ProtobufChannelConfigSource
from protochannels.config.sources import Config, EnvConfigSource, MapConfigSource, load_application_properties
from protochannels.detection.classifier import PayloadClassifier, is_structured_payload
from protochannels.detection.registry import scan_channels
from protochannels.index.introspection import build_index
from protochannels.models.settings import LaunchMode
from protochannels.processor import BuildResult, ChannelProcessor

__version__ = "0.1.0"

__all__ = [
    "BuildResult",
    "ChannelProcessor",
    "Config",
    "EnvConfigSource",
    "LaunchMode",
    "MapConfigSource",
    "PayloadClassifier",
    "ProtobufChannelConfigSource",
    "build_index",
    "channel",
    "incoming",
    "is_structured_payload",
    "load_application_properties",
    "outgoing",
    "protobuf_channel",
    "protobuf_incoming",
    "protobuf_outgoing",
    "scan_channels",
]
