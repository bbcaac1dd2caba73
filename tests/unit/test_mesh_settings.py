"""Unit tests for the shared color app naming rules and blueprints."""
import pytest

from stacks.config import mesh_settings as settings


@pytest.mark.parametrize("variant,expected", [
    ("white", "colorteller"),
    ("black", "colorteller-black"),
    ("blue", "colorteller-blue"),
    ("red", "colorteller-red"),
])
def test_discovery_name(variant, expected):
    """Test the primary color maps to the bare service name."""
    assert settings.discovery_name(variant) == expected


def test_virtual_node_hostname_matches_discovery_name():
    """Test node hostnames are the Cloud Map name under the private domain."""
    for variant in settings.COLOR_VARIANTS:
        assert settings.virtual_node_hostname(variant) == f"{settings.discovery_name(variant)}.colordemo.local"


def test_unknown_variant_rejected():
    with pytest.raises(ValueError, match="Unknown color variant"):
        settings.discovery_name("green")
    with pytest.raises(ValueError):
        settings.virtual_node_name("")


def test_colorteller_security_group_ports():
    assert settings.COLORTELLER_INGRESS_PORTS == (9080, 2701, 9901, 15000, 15001)


def test_proxy_configuration_uses_envoy_ports():
    """Test the proxy block is built from the same constants as the sidecar ports."""
    values = {p["Name"]: p["Value"] for p in settings.proxy_configuration()["ProxyConfigurationProperties"]}
    assert values["ProxyIngressPort"] == str(settings.ENVOY_INGRESS_PORT)
    assert values["ProxyEgressPort"] == str(settings.ENVOY_EGRESS_PORT)
    assert values["IgnoredUID"] == settings.ENVOY_USER_ID


def test_proxy_configuration_returns_fresh_copy():
    """Test callers cannot mutate the block other task definitions receive."""
    first = settings.proxy_configuration()
    first["ProxyConfigurationProperties"].clear()
    assert len(settings.proxy_configuration()["ProxyConfigurationProperties"]) == 5


def test_gateway_blueprint():
    blueprint = settings.gateway_blueprint()
    assert blueprint.virtual_node_name == "colorgateway-vn"
    assert blueprint.cloud_map_name == "colorgateway"
    assert blueprint.cpu == 256
    assert blueprint.memory_limit_mib == 512
    assert not blueprint.uses_colorteller_security_group
    assert blueprint.environment["COLOR_TELLER_ENDPOINT"] == f"{settings.virtual_service_name()}:9080"


def test_colorteller_blueprint_follows_naming_rules():
    for variant in settings.COLOR_VARIANTS:
        blueprint = settings.colorteller_blueprint(variant)
        assert blueprint.virtual_node_name == f"colorteller-{variant}-vn"
        assert blueprint.cloud_map_name == settings.discovery_name(variant)
        assert blueprint.environment == {"COLOR": variant, "SERVER_PORT": "9080"}
        assert blueprint.uses_colorteller_security_group
        assert blueprint.cpu is None


def test_virtual_node_arn_path():
    assert settings.virtual_node_arn_path("colorteller-red-vn") == "mesh/colormesh/virtualNode/colorteller-red-vn"
