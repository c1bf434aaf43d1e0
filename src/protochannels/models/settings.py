from __future__ import annotations

import re
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, TypeAdapter, ValidationError, field_validator

from protochannels.config.sources import Config
from protochannels.core.exceptions import ConfigLoadError

CONFIG_PREFIX = "apicurio-registry.protobuf."
DEVSERVICES_SWITCH = "devservices.enabled"
DEVSERVICES_TIMEOUT = "devservices.timeout"

DEFAULT_IMAGE = "apicurio/apicurio-registry:3.1.4"
DEFAULT_SERVICE_NAME = "apicurio-registry"
SIMPLE_TOPIC_ID_STRATEGY = "io.apicurio.registry.serde.strategy.SimpleTopicIdStrategy"

_DURATION = re.compile(r"^(\d+(?:\.\d+)?)\s*(ms|s|m|h)?$", re.IGNORECASE)
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}
_TIMEDELTA = TypeAdapter(timedelta)


class LaunchMode(str, Enum):
    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"

    @classmethod
    def parse(cls, value: Optional[str]) -> "LaunchMode":
        if not value:
            return cls.DEVELOPMENT
        normalized = value.strip().lower()
        aliases = {"dev": cls.DEVELOPMENT, "prod": cls.PRODUCTION}
        if normalized in aliases:
            return aliases[normalized]
        return cls(normalized)


class DevServicesConfig(BaseModel):
    """Settings under ``apicurio-registry.protobuf.devservices.*``."""

    model_config = ConfigDict(extra="forbid")

    enabled: Optional[bool] = None
    image_name: Optional[str] = None
    port: Optional[int] = Field(default=None, ge=0, le=65535)
    shared: bool = True
    service_name: str = DEFAULT_SERVICE_NAME
    container_env: Dict[str, str] = Field(default_factory=dict)
    timeout_seconds: Optional[PositiveFloat] = None

    @field_validator("image_name")
    @classmethod
    def _blank_image_is_default(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @field_validator("timeout_seconds", mode="before")
    @classmethod
    def _parse_duration(cls, value: Any) -> Any:
        """Accept plain seconds, ``500ms`` / ``60s`` / ``2m`` / ``1h``, or ISO-8601 (``PT1M``)."""
        if not isinstance(value, str):
            return value
        text = value.strip()
        match = _DURATION.match(text)
        if match:
            unit = (match.group(2) or "s").lower()
            return float(match.group(1)) * _UNIT_SECONDS[unit]
        try:
            return _TIMEDELTA.validate_python(text).total_seconds()
        except ValidationError:
            raise ValueError(f"Invalid duration {value!r}; use e.g. 60s, 500ms, 2m or PT1M") from None

    @classmethod
    def from_config(cls, config: Config, prefix: str = CONFIG_PREFIX) -> "DevServicesConfig":
        p = f"{prefix}devservices."
        data: Dict[str, Any] = {
            "enabled": config.get_bool(p + "enabled"),
            "image_name": config.get_value(p + "image-name"),
            "port": config.get_value(p + "port"),
            "service_name": config.get_value(p + "service-name"),
            "timeout_seconds": config.get_value(p + "timeout") or config.get_value(DEVSERVICES_TIMEOUT),
            "shared": config.get_bool(p + "shared"),
            "container_env": config.get_properties_with_prefix(p + "container-env."),
        }
        return _validate(cls, data, p)


class RegistryRuntimeConfig(BaseModel):
    """Serde behaviour shared by every Protobuf channel; feeds the connector-wide keys."""

    model_config = ConfigDict(extra="forbid")

    derive_class: bool = True
    auto_register: bool = True
    artifact_resolver_strategy: str = SIMPLE_TOPIC_ID_STRATEGY
    find_latest: bool = True
    explicit_group_id: Optional[str] = None

    @classmethod
    def from_config(cls, config: Config, prefix: str = CONFIG_PREFIX) -> "RegistryRuntimeConfig":
        data: Dict[str, Any] = {
            "derive_class": config.get_bool(prefix + "derive-class"),
            "auto_register": config.get_bool(prefix + "auto-register"),
            "artifact_resolver_strategy": config.get_value(prefix + "artifact-resolver-strategy"),
            "find_latest": config.get_bool(prefix + "find-latest"),
            "explicit_group_id": config.get_value(prefix + "explicit-group-id"),
        }
        return _validate(cls, data, prefix)


def devservices_globally_enabled(config: Config) -> bool:
    return bool(config.get_bool(DEVSERVICES_SWITCH, True))


def _validate(model: Any, data: Dict[str, Any], prefix: str) -> Any:
    try:
        return model.model_validate({k: v for k, v in data.items() if v is not None})
    except ValidationError as exc:
        raise ConfigLoadError(f"Invalid settings under {prefix!r}: {exc}") from exc
