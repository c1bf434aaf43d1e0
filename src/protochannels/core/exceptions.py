"""
Custom exception classes for protochannels.

Absent symbols during classification are not errors and never raise; these
exceptions cover the failures that must stop a build.
"""

from typing import Any, Dict, Optional


class ProtoChannelsException(Exception):
    """Base exception class for all protochannels exceptions."""

    pass


class ConfigLoadError(ProtoChannelsException):
    """Raised when an application configuration file cannot be read."""

    pass


class RegistryConfigurationError(ProtoChannelsException):
    """
    Raised when a registry endpoint is configured in a form the connector
    never reads.

    The message always names the property the user has to set instead.

    Example:
        >>> raise RegistryConfigurationError(
        ...     configured_key="apicurio.registry.url",
        ...     required_key="mp.messaging.connector.smallrye-kafka.apicurio.registry.url",
        ...     value="http://localhost:8080/apis/registry/v3",
        ... )
    """

    def __init__(self, configured_key: str, required_key: str, value: Optional[str] = None):
        self.configured_key = configured_key
        self.required_key = required_key
        self.value = value
        hint = value or "<registry-url>"
        super().__init__(
            f"Registry URL is set via {configured_key!r}, which is not passed to the Kafka connector. "
            f"Set {required_key}={hint} instead."
        )


class DevServiceStartError(ProtoChannelsException):
    """
    Raised when the dev service container cannot be started or does not become
    reachable in time. Never retried.
    """

    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None):
        self.reason = reason
        self.details = details or {}
        message = f"{reason}"
        if self.details:
            message += f" - {self.details}"
        super().__init__(message)
