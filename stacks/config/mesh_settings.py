"""Shared settings for the color app mesh.

Holds the fixed values every stack agrees on (mesh name, private domain,
Envoy ports, health checks) and the naming rules that tie App Mesh virtual
nodes to their Cloud Map service names:
- the primary color resolves to the bare service name (colorteller)
- every other color resolves to colorteller-<color>
"""
from dataclasses import dataclass, field
from typing import Dict, Optional

VPC_CIDR = "10.88.0.0/16"
MAX_AZS = 3
# Netmask range AWS accepts for a VPC block
VPC_PREFIX_MIN = 16
VPC_PREFIX_MAX = 28

MESH_NAME = "colormesh"
PRIVATE_DOMAIN = "colordemo.local"

APP_PORT = 9080
TCP_ECHO_PORT = 2701
ENVOY_ADMIN_PORT = 9901
ENVOY_INGRESS_PORT = 15000
ENVOY_EGRESS_PORT = 15001
COLORTELLER_INGRESS_PORTS = (
    APP_PORT,
    TCP_ECHO_PORT,
    ENVOY_ADMIN_PORT,
    ENVOY_INGRESS_PORT,
    ENVOY_EGRESS_PORT,
)

ENVOY_CONTAINER_NAME = "envoy"
ENVOY_IMAGE = "kopi/appmesh:latest"
ENVOY_USER_ID = "1337"
ENVOY_NOFILE_LIMIT = 15000
ENVOY_HEALTH_CHECK_COMMAND = "curl -s http://localhost:9901/server_info | grep state | grep -q LIVE"
ENVOY_HEALTH_CHECK_INTERVAL_SECONDS = 5
ENVOY_HEALTH_CHECK_TIMEOUT_SECONDS = 2
ENVOY_HEALTH_CHECK_RETRIES = 3
EGRESS_IGNORED_IPS = "169.254.170.2,169.254.169.254"

# Listener health check on every colorteller virtual node
NODE_HEALTH_CHECK = {
    "healthy_threshold": 2,
    "interval_millis": 5000,
    "path": "/ping",
    "port": APP_PORT,
    "protocol": "http",
    "timeout_millis": 2000,
    "unhealthy_threshold": 2,
}

# Public load balancer target group health check
EDGE_LISTENER_PORT = 80
EDGE_HEALTH_CHECK = {
    "port": "traffic-port",
    "path": "/ping",
    "interval_seconds": 30,
    "timeout_seconds": 5,
    "healthy_threshold_count": 5,
    "unhealthy_threshold_count": 2,
    "healthy_http_codes": "200,301,302",
}

LOG_GROUP_NAME = "/cdk/fargate"
CLOUD_MAP_DNS_TTL_SECONDS = 10

GATEWAY_NAME = "colorgateway"
GATEWAY_IMAGE = "kopi/colorgateway:latest"
COLORTELLER_NAME = "colorteller"
COLORTELLER_IMAGE = "kopi/colorteller"

COLOR_VARIANTS = ("white", "black", "blue", "red")
PRIMARY_VARIANT = "white"
DEFAULT_ROUTED_VARIANT = "blue"

VIRTUAL_ROUTER_NAME = "colorteller-vr"
ROUTE_NAME = "colorteller-route"
GATEWAY_VIRTUAL_NODE_NAME = f"{GATEWAY_NAME}-vn"


def validate_variant(variant: str) -> str:
    """Return the variant unchanged, or raise ValueError if it is not a known color."""
    if variant not in COLOR_VARIANTS:
        raise ValueError(
            f"Unknown color variant: {variant!r}. Expected one of: {', '.join(COLOR_VARIANTS)}"
        )
    return variant


def discovery_name(variant: str) -> str:
    """Cloud Map service name for a colorteller variant."""
    validate_variant(variant)
    if variant == PRIMARY_VARIANT:
        return COLORTELLER_NAME
    return f"{COLORTELLER_NAME}-{variant}"


def virtual_node_hostname(variant: str) -> str:
    """DNS hostname the variant's virtual node discovers its tasks by."""
    return f"{discovery_name(variant)}.{PRIVATE_DOMAIN}"


def virtual_node_name(variant: str) -> str:
    validate_variant(variant)
    return f"{COLORTELLER_NAME}-{variant}-vn"


def virtual_service_name() -> str:
    """Name of the mesh service fronting the colorteller router."""
    return f"{COLORTELLER_NAME}.{PRIVATE_DOMAIN}"


def virtual_node_arn_path(node_name: str) -> str:
    """Value Envoy expects in APPMESH_VIRTUAL_NODE_NAME."""
    return f"mesh/{MESH_NAME}/virtualNode/{node_name}"


def proxy_configuration() -> dict:
    """APPMESH proxy configuration shared by every task definition with a sidecar.

    Returned in CloudFormation casing, ready for a property override on
    AWS::ECS::TaskDefinition.
    """
    return {
        "Type": "APPMESH",
        "ContainerName": ENVOY_CONTAINER_NAME,
        "ProxyConfigurationProperties": [
            {"Name": "IgnoredUID", "Value": ENVOY_USER_ID},
            {"Name": "ProxyIngressPort", "Value": str(ENVOY_INGRESS_PORT)},
            {"Name": "ProxyEgressPort", "Value": str(ENVOY_EGRESS_PORT)},
            {"Name": "AppPorts", "Value": str(APP_PORT)},
            {"Name": "EgressIgnoredIPs", "Value": EGRESS_IGNORED_IPS},
        ],
    }


@dataclass(frozen=True)
class ServiceBlueprint:
    """Everything that differs between the gateway and the colorteller tasks."""

    construct_prefix: str
    container_name: str
    image: str
    environment: Dict[str, str]
    virtual_node_name: str
    cloud_map_name: str
    app_stream_prefix: str
    envoy_stream_prefix: str
    cpu: Optional[int] = None
    memory_limit_mib: Optional[int] = None
    uses_colorteller_security_group: bool = False
    tags: Dict[str, str] = field(default_factory=dict)


def gateway_blueprint() -> ServiceBlueprint:
    return ServiceBlueprint(
        construct_prefix=GATEWAY_NAME,
        container_name=GATEWAY_NAME,
        image=GATEWAY_IMAGE,
        environment={
            "COLOR_TELLER_ENDPOINT": f"{virtual_service_name()}:{APP_PORT}",
            "SERVER_PORT": str(APP_PORT),
            "TCP_ECHO_ENDPOINT": f"tcpecho.{PRIVATE_DOMAIN}:{TCP_ECHO_PORT}",
        },
        virtual_node_name=GATEWAY_VIRTUAL_NODE_NAME,
        cloud_map_name=GATEWAY_NAME,
        app_stream_prefix=f"{GATEWAY_NAME}-",
        envoy_stream_prefix=f"{GATEWAY_NAME}envoy-",
        cpu=256,
        memory_limit_mib=512,
        tags={"Role": "gateway"},
    )


def colorteller_blueprint(variant: str) -> ServiceBlueprint:
    return ServiceBlueprint(
        construct_prefix=f"{COLORTELLER_NAME}-{variant}",
        container_name="colortellerApp",
        image=COLORTELLER_IMAGE,
        environment={
            "COLOR": variant,
            "SERVER_PORT": str(APP_PORT),
        },
        virtual_node_name=virtual_node_name(variant),
        cloud_map_name=discovery_name(variant),
        app_stream_prefix=f"{COLORTELLER_NAME}-{variant}-",
        envoy_stream_prefix=f"envoy-{COLORTELLER_NAME}-{variant}",
        uses_colorteller_security_group=True,
        tags={"Role": "colorteller", "Color": variant},
    )
