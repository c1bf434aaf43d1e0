import json

import pytest

from protochannels.config.sources import (
    Config,
    EnvConfigSource,
    MapConfigSource,
    flatten,
    load_application_properties,
)
from protochannels.core.exceptions import ConfigLoadError


def test_highest_ordinal_wins():
    low = MapConfigSource("low", {"a": "1", "b": "low"}, ordinal=100)
    high = MapConfigSource("high", {"a": "2"}, ordinal=300)

    config = Config([low, high])

    assert config.get_value("a") == "2"
    assert config.get_value("b") == "low"
    assert config.source_of("a") is high
    assert config.get_value("missing") is None
    assert config.get_property_names() == {"a", "b"}


def test_blank_value_is_not_set():
    config = Config([MapConfigSource("app", {"url": "  ", "other": "x"})])

    assert config.is_property_set("url") is False
    assert config.is_property_set("other") is True
    assert config.is_property_set("missing") is False


def test_get_bool():
    config = Config([MapConfigSource("app", {"on": "TRUE", "off": "false", "blank": ""})])

    assert config.get_bool("on") is True
    assert config.get_bool("off") is False
    assert config.get_bool("blank", True) is True
    assert config.get_bool("missing") is None


def test_map_source_stringifies_values():
    source = MapConfigSource("app", {"flag": True, "port": 8081, "hosts": ["a", "b"], "none": None})

    assert source.get_properties() == {"flag": "true", "port": "8081", "hosts": "a,b"}


def test_env_source_follows_variable_naming_rules():
    env = EnvConfigSource(
        {
            "MP_MESSAGING_CONNECTOR_SMALLRYE_KAFKA_APICURIO_REGISTRY_URL": "http://env:8080",
            "exact.key": "exact",
            "lower_key": "lower",
        }
    )

    assert env.get_value("mp.messaging.connector.smallrye-kafka.apicurio.registry.url") == "http://env:8080"
    assert env.get_value("exact.key") == "exact"
    assert env.get_value("lower.key") == "lower"
    assert env.get_value("nothing.here") is None
    assert env.get_ordinal() == 300


def test_with_source_returns_new_config():
    base = Config([MapConfigSource("app", {"a": "1"})])
    extended = base.with_source(MapConfigSource("extra", {"b": "2"}, ordinal=150))

    assert base.get_value("b") is None
    assert extended.get_value("b") == "2"


def test_properties_with_prefix_strip_prefix():
    config = Config([MapConfigSource("app", {"x.env.A": "1", "x.env.B": "2", "y": "3"})])

    assert config.get_properties_with_prefix("x.env.") == {"A": "1", "B": "2"}


def test_flatten_nested_mapping():
    assert flatten({"mp": {"messaging": {"incoming": {"orders": {"topic": "t"}}}}, "flag": False}) == {
        "mp.messaging.incoming.orders.topic": "t",
        "flag": "false",
    }


def test_load_yaml(tmp_path):
    path = tmp_path / "application.yaml"
    path.write_text(
        "apicurio-registry:\n"
        "  protobuf:\n"
        "    devservices:\n"
        "      enabled: false\n"
        "mp:\n"
        "  messaging:\n"
        "    incoming:\n"
        "      orders:\n"
        "        topic: orders\n"
    )

    source = load_application_properties(path)

    assert source.get_value("apicurio-registry.protobuf.devservices.enabled") == "false"
    assert source.get_value("mp.messaging.incoming.orders.topic") == "orders"
    assert source.get_ordinal() == 250


def test_load_json(tmp_path):
    path = tmp_path / "application.json"
    path.write_text(json.dumps({"mp.messaging.outgoing.orders.topic": "orders"}))

    assert load_application_properties(path, ordinal=260).get_value("mp.messaging.outgoing.orders.topic") == "orders"


def test_load_properties(tmp_path):
    path = tmp_path / "application.properties"
    path.write_text(
        "# registry\n"
        "mp.messaging.connector.smallrye-kafka.apicurio.registry.url=http://localhost:8080/apis/registry/v3\n"
        "! ignored\n"
        "mp.messaging.incoming.orders.topic : orders\n"
    )

    source = load_application_properties(path)

    assert (
        source.get_value("mp.messaging.connector.smallrye-kafka.apicurio.registry.url")
        == "http://localhost:8080/apis/registry/v3"
    )
    assert source.get_value("mp.messaging.incoming.orders.topic") == "orders"


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigLoadError, match="not found"):
        load_application_properties(tmp_path / "nope.yaml")


def test_unsupported_format_raises(tmp_path):
    path = tmp_path / "application.toml"
    path.write_text("a = 1\n")

    with pytest.raises(ConfigLoadError, match="Unsupported config format"):
        load_application_properties(path)


def test_non_mapping_yaml_raises(tmp_path):
    path = tmp_path / "application.yaml"
    path.write_text("- a\n- b\n")

    with pytest.raises(ConfigLoadError, match="mapping"):
        load_application_properties(path)
