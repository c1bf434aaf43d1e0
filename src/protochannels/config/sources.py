"""Ordinal-ranked configuration sources.

Every source answers ``get_value(key)``; a ``Config`` asks its sources from the
highest ordinal down and the first non-``None`` answer wins. Well-known
ordinals::

    400  system overrides
    300  environment variables
    250  application configuration file
    200  ProtobufChannelConfigSource (synthesized serde settings)
    150  dev services (registry URL of a started container)
    100  defaults (connector bindings of detected channels)
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Set, Union

import yaml

from protochannels.core.exceptions import ConfigLoadError

SYSTEM_ORDINAL = 400
ENVIRONMENT_ORDINAL = 300
APPLICATION_ORDINAL = 250
OVERLAY_ORDINAL = 200
DEV_SERVICES_ORDINAL = 150
DEFAULTS_ORDINAL = 100

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


class ConfigSource(Protocol):
    def get_properties(self) -> Dict[str, str]:
        ...

    def get_property_names(self) -> Set[str]:
        ...

    def get_value(self, key: str) -> Optional[str]:
        ...

    def get_name(self) -> str:
        ...

    def get_ordinal(self) -> int:
        ...


class MapConfigSource:
    def __init__(self, name: str, properties: Optional[Mapping[str, Any]] = None, ordinal: int = APPLICATION_ORDINAL):
        self._name = name
        self._ordinal = ordinal
        self._properties: Dict[str, str] = {k: _to_str(v) for k, v in (properties or {}).items() if v is not None}

    def get_properties(self) -> Dict[str, str]:
        return dict(self._properties)

    def get_property_names(self) -> Set[str]:
        return set(self._properties)

    def get_value(self, key: str) -> Optional[str]:
        return self._properties.get(key)

    def get_name(self) -> str:
        return self._name

    def get_ordinal(self) -> int:
        return self._ordinal

    def __repr__(self) -> str:
        return f"MapConfigSource(name={self._name!r}, ordinal={self._ordinal}, size={len(self._properties)})"


class EnvConfigSource:
    """
    Environment variables. ``a.b-c`` is looked up as ``a.b-c``, then ``a_b_c``,
    then ``A_B_C``.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None, ordinal: int = ENVIRONMENT_ORDINAL):
        self._environ = environ if environ is not None else os.environ
        self._ordinal = ordinal

    def get_properties(self) -> Dict[str, str]:
        return dict(self._environ)

    def get_property_names(self) -> Set[str]:
        return set(self._environ)

    def get_value(self, key: str) -> Optional[str]:
        if key in self._environ:
            return self._environ[key]
        sanitized = _NON_ALNUM.sub("_", key)
        if sanitized in self._environ:
            return self._environ[sanitized]
        return self._environ.get(sanitized.upper())

    def get_name(self) -> str:
        return "EnvConfigSource"

    def get_ordinal(self) -> int:
        return self._ordinal


class Config:
    """A read-only view over several sources, highest ordinal first."""

    def __init__(self, sources: Iterable[ConfigSource] = ()):
        self._sources: List[ConfigSource] = sorted(sources, key=lambda s: s.get_ordinal(), reverse=True)

    @property
    def sources(self) -> List[ConfigSource]:
        return list(self._sources)

    def with_source(self, source: ConfigSource) -> "Config":
        return Config([*self._sources, source])

    def get_value(self, key: str) -> Optional[str]:
        for source in self._sources:
            value = source.get_value(key)
            if value is not None:
                return value
        return None

    def get_optional_value(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.get_value(key)
        return default if value is None else value

    def get_bool(self, key: str, default: Optional[bool] = None) -> Optional[bool]:
        value = self.get_value(key)
        if value is None or not value.strip():
            return default
        return value.strip().lower() == "true"

    def is_property_set(self, key: str) -> bool:
        value = self.get_value(key)
        return value is not None and bool(value.strip())

    def get_property_names(self) -> Set[str]:
        names: Set[str] = set()
        for source in self._sources:
            names.update(source.get_property_names())
        return names

    def source_of(self, key: str) -> Optional[ConfigSource]:
        for source in self._sources:
            if source.get_value(key) is not None:
                return source
        return None

    def get_properties_with_prefix(self, prefix: str) -> Dict[str, str]:
        result: Dict[str, str] = {}
        for name in self.get_property_names():
            if name.startswith(prefix):
                value = self.get_value(name)
                if value is not None:
                    result[name[len(prefix):]] = value
        return result


# -----------------
# Application files
# -----------------


def load_application_properties(
    path: Union[str, Path],
    *,
    ordinal: int = APPLICATION_ORDINAL,
) -> MapConfigSource:
    """
    Load a JSON, YAML or ``.properties`` file into a config source.

    Nested mappings are flattened into dotted keys, so
    ``{"mp": {"messaging": {...}}}`` and ``mp.messaging...=`` are equivalent.
    """
    config_file = Path(path)
    if not config_file.exists():
        raise ConfigLoadError(f"Config file not found: {config_file}")

    with open(config_file, "r") as f:
        if config_file.suffix == ".json":
            raw = json.load(f)
        elif config_file.suffix in (".yaml", ".yml"):
            raw = yaml.safe_load(f) or {}
        elif config_file.suffix == ".properties":
            raw = _parse_properties(f.read())
        else:
            raise ConfigLoadError(
                f"Unsupported config format: {config_file.suffix}. Use .json, .yaml or .properties"
            )

    if not isinstance(raw, dict):
        raise ConfigLoadError(f"Config file {config_file} must contain a mapping at the top level")

    return MapConfigSource(f"ApplicationConfigSource[{config_file.name}]", flatten(raw), ordinal=ordinal)


def flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, str]:
    flat: Dict[str, str] = {}
    for key, value in data.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(flatten(value, prefix=f"{full_key}."))
        elif value is not None:
            flat[full_key] = _to_str(value)
    return flat


def _parse_properties(text: str) -> Dict[str, str]:
    props: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line[0] in "#!":
            continue
        match = re.match(r"([^=:\s]+)\s*[=:]?\s*(.*)", line)
        if match:
            props[match.group(1)] = match.group(2)
    return props


def _to_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_to_str(v) for v in value)
    return str(value)
