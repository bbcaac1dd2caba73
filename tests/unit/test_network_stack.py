"""Unit tests for NetworkStack VPC, subnet and security group configuration.

Tests VPC creation, subnet counts, AZ distribution, NAT/IGW presence, route
tables and the colorteller security group ingress ports.
"""
import ipaddress
import pytest
import aws_cdk as cdk
from aws_cdk.assertions import Template
from stacks.network.network_stack import NetworkStack


def _subnet_type(tags):
    """Extract subnet type (Public/Private) from CDK subnet tags."""
    return next((t.get("Value") for t in tags if t.get("Key") == "aws-cdk:subnet-type"), None)

def _name_tag(tags):
    return next((t.get("Value") for t in tags if t.get("Key") == "Name"), None)

def synth_network_stack(vpc_cidr: str = "10.88.0.0/16"):
    """Synthesize a NetworkStack for testing with the specified VPC CIDR."""
    app = cdk.App()
    env = cdk.Environment(account="111111111111", region="eu-west-1")
    stack = NetworkStack(app, "NetworkStackTest",
        service_name="test-service",
        vpc_cidr=vpc_cidr,
        env=env
    )
    template = Template.from_stack(stack)
    return stack, template


def test_vpc_exists_with_cidr():
    """Test VPC resource is created with the color app CIDR block."""
    _, template = synth_network_stack()
    template.has_resource_properties("AWS::EC2::VPC", {
        "CidrBlock": "10.88.0.0/16",
        "EnableDnsHostnames": True,
        "EnableDnsSupport": True
    })


def test_default_cidr_is_color_app_cidr():
    """Test NetworkStack falls back to 10.88.0.0/16 when no CIDR is given."""
    app = cdk.App()
    stack = NetworkStack(app, "DefaultNetworkStack",
        env=cdk.Environment(account="111111111111", region="eu-west-1")
    )
    Template.from_stack(stack).has_resource_properties("AWS::EC2::VPC", {
        "CidrBlock": "10.88.0.0/16"
    })


def test_has_expected_subnet_counts():
    """Test correct number of subnets are created (3 public + 3 private)."""
    _, template = synth_network_stack()
    subnet_resources = [r for r, res in template.to_json().get("Resources", {}).items() if res["Type"] == "AWS::EC2::Subnet"]
    assert len(subnet_resources) == 6, f"Expected 6 subnets (3 of each type), found {len(subnet_resources)}"


def test_subnets_are_named_per_az():
    """Test public and private subnets carry <service>-<tier>-<az letter> names."""
    _, template = synth_network_stack()
    names = {}
    for res in template.find_resources("AWS::EC2::Subnet").values():
        tags = res["Properties"].get("Tags", [])
        names.setdefault(_subnet_type(tags), set()).add(_name_tag(tags))
    assert names["Public"] == {"test-service-public-a", "test-service-public-b", "test-service-public-c"}
    assert names["Private"] == {"test-service-tasks-a", "test-service-tasks-b", "test-service-tasks-c"}


def test_az_distribution():
    """Test subnets are distributed across 3 availability zones."""
    _, template = synth_network_stack()
    azs_used = set()
    subnet_resources = template.find_resources("AWS::EC2::Subnet")
    for res in subnet_resources.values():
        az = res["Properties"].get("AvailabilityZone")
        if az:
            azs_used.add(az)
    assert len(azs_used) == 3, f"Expected subnets to be distributed across 3 AZs, found {len(azs_used)}"


def test_igw_created():
    """Test Internet Gateway is created for public subnet connectivity."""
    _, template = synth_network_stack()
    template.has_resource("AWS::EC2::InternetGateway", {})

def test_nat_gateway_per_az_created():
    """Test one NAT Gateway per AZ so each private subnet keeps its own egress path."""
    _, template = synth_network_stack()
    template.resource_count_is("AWS::EC2::NatGateway", 3)

def test_route_tables_created():
    """Test correct number of route tables are created for subnet routing."""
    _, template = synth_network_stack()
    template.resource_count_is("AWS::EC2::RouteTable", 6)


def test_colorteller_security_group_ingress_ports():
    """Test the colorteller security group opens the app, echo and Envoy ports to any IPv4."""
    _, template = synth_network_stack()
    groups = [
        res for res in template.find_resources("AWS::EC2::SecurityGroup").values()
        if res["Properties"].get("GroupName") == "colortellerSecurityGroup"
    ]
    assert len(groups) == 1, f"Expected one colorteller security group, found {len(groups)}"

    ingress = groups[0]["Properties"]["SecurityGroupIngress"]
    assert {rule["FromPort"] for rule in ingress} == {9080, 2701, 9901, 15000, 15001}
    for rule in ingress:
        assert rule["CidrIp"] == "0.0.0.0/0"
        assert rule["IpProtocol"] == "tcp"
        assert rule["FromPort"] == rule["ToPort"]


def test_colorteller_security_group_allows_all_outbound():
    """Test the colorteller security group keeps unrestricted egress."""
    _, template = synth_network_stack()
    template.has_resource_properties("AWS::EC2::SecurityGroup", {
        "GroupName": "colortellerSecurityGroup",
        "SecurityGroupEgress": [{"CidrIp": "0.0.0.0/0", "IpProtocol": "-1"}]
    })


def test_network_outputs_present():
    """Test VPC and security group outputs are exported."""
    _, template = synth_network_stack()
    cfn_outputs = template.to_json().get("Outputs", {})
    for output in ("VpcId", "AvailabilityZones", "ColortellerSecurityGroupId"):
        assert output in cfn_outputs, f"{output} missing in template outputs"


def test_valid_cidr_formats():
    """Test VPC accepts valid CIDR format strings."""
    valid_cidrs = [
        "10.88.0.0/16",
        "172.16.0.0/16",
        "192.168.0.0/16"
    ]
    for cidr in valid_cidrs:
        ipaddress.ip_network(cidr)
        _, template = synth_network_stack(vpc_cidr=cidr)
        template.has_resource_properties("AWS::EC2::VPC", {
            "CidrBlock": cidr
        })


@pytest.mark.parametrize("invalid_cidr", [
    "10.88.0.0",           # Missing subnet mask
    "10.88.0.0/",          # Empty subnet mask
    "10.88.0.0/33",        # Invalid subnet mask (>32)
    "256.0.0.0/16",        # Invalid IP (256 > 255)
    "not-an-ip/16",        # Non-IP string
    "",                    # Empty string
    "10.88.0.0/abc",       # Non-numeric subnet mask
    "10.88.0.0/16/24",     # Multiple slashes
    "10.88.0.0/30",        # Prefix longer than AWS allows for a VPC
    "10.0.0.0/8",          # Prefix shorter than AWS allows for a VPC
])
def test_invalid_vpc_cidr(invalid_cidr):
    """Test NetworkStack rejects invalid VPC CIDR formats."""
    with pytest.raises(ValueError, match="Invalid VPC CIDR block"):
        synth_network_stack(vpc_cidr=invalid_cidr)
