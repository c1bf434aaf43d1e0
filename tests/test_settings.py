import pytest

from protochannels.config.sources import Config, MapConfigSource
from protochannels.core.exceptions import ConfigLoadError
from protochannels.devservices.lifecycle import DevServiceSnapshot
from protochannels.models.settings import (
    DEFAULT_IMAGE,
    DEFAULT_SERVICE_NAME,
    DevServicesConfig,
    LaunchMode,
    RegistryRuntimeConfig,
    devservices_globally_enabled,
)


def _config(**props):
    return Config([MapConfigSource("app", props)])


def test_dev_services_defaults():
    cfg = DevServicesConfig.from_config(_config())

    assert cfg.enabled is None
    assert cfg.image_name is None
    assert cfg.port is None
    assert cfg.shared is True
    assert cfg.service_name == DEFAULT_SERVICE_NAME
    assert cfg.container_env == {}


def test_dev_services_from_config():
    cfg = DevServicesConfig.from_config(
        _config(
            **{
                "apicurio-registry.protobuf.devservices.enabled": "false",
                "apicurio-registry.protobuf.devservices.image-name": "apicurio/apicurio-registry:3.0.0",
                "apicurio-registry.protobuf.devservices.port": "8089",
                "apicurio-registry.protobuf.devservices.shared": "false",
                "apicurio-registry.protobuf.devservices.service-name": "orders-registry",
                "apicurio-registry.protobuf.devservices.container-env.REGISTRY_LOG_LEVEL": "DEBUG",
                "apicurio-registry.protobuf.devservices.timeout": "30",
            }
        )
    )

    assert cfg.enabled is False
    assert cfg.image_name == "apicurio/apicurio-registry:3.0.0"
    assert cfg.port == 8089
    assert cfg.shared is False
    assert cfg.service_name == "orders-registry"
    assert cfg.container_env == {"REGISTRY_LOG_LEVEL": "DEBUG"}
    assert cfg.timeout_seconds == 30.0


def test_global_timeout_is_a_fallback():
    cfg = DevServicesConfig.from_config(_config(**{"devservices.timeout": "12.5"}))
    assert cfg.timeout_seconds == 12.5


def test_timeout_accepts_duration_strings():
    cases = {"60s": 60.0, "500ms": 0.5, "2m": 120.0, "1h": 3600.0, "45": 45.0, "PT1M30S": 90.0}
    for raw, seconds in cases.items():
        cfg = DevServicesConfig.from_config(_config(**{"devservices.timeout": raw}))
        assert cfg.timeout_seconds == seconds, raw


def test_unparseable_timeout_is_a_config_error():
    with pytest.raises(ConfigLoadError, match="Invalid duration"):
        DevServicesConfig.from_config(_config(**{"devservices.timeout": "soon"}))

    with pytest.raises(ConfigLoadError):
        DevServicesConfig.from_config(_config(**{"devservices.timeout": "0s"}))


def test_invalid_port_is_rejected():
    with pytest.raises(ConfigLoadError, match="apicurio-registry.protobuf.devservices."):
        DevServicesConfig.from_config(_config(**{"apicurio-registry.protobuf.devservices.port": "70000"}))


def test_blank_image_means_default():
    cfg = DevServicesConfig(image_name="  ")
    assert cfg.image_name is None
    assert DevServiceSnapshot.from_config(cfg).image_name == DEFAULT_IMAGE


def test_snapshot_equality_is_by_value():
    a = DevServiceSnapshot.from_config(DevServicesConfig(container_env={"A": "1"}))
    b = DevServiceSnapshot.from_config(DevServicesConfig(container_env={"A": "1"}))
    c = DevServiceSnapshot.from_config(DevServicesConfig(port=9000))

    assert a == b
    assert a != c
    assert c.fixed_exposed_port == 9000
    assert a.enabled is True


def test_runtime_config_from_config():
    runtime = RegistryRuntimeConfig.from_config(
        _config(
            **{
                "apicurio-registry.protobuf.derive-class": "false",
                "apicurio-registry.protobuf.explicit-group-id": "orders",
            }
        )
    )

    assert runtime.derive_class is False
    assert runtime.auto_register is True
    assert runtime.find_latest is True
    assert runtime.explicit_group_id == "orders"


def test_global_devservices_switch():
    assert devservices_globally_enabled(_config()) is True
    assert devservices_globally_enabled(_config(**{"devservices.enabled": "false"})) is False


def test_launch_mode_parse():
    assert LaunchMode.parse(None) == LaunchMode.DEVELOPMENT
    assert LaunchMode.parse("dev") == LaunchMode.DEVELOPMENT
    assert LaunchMode.parse("PROD") == LaunchMode.PRODUCTION
    assert LaunchMode.parse("test") == LaunchMode.TEST
    with pytest.raises(ValueError):
        LaunchMode.parse("staging")
