"""Network stack module.

Defines the VPC the color app runs in:
- Public subnets for the internet-facing load balancer
- Private subnets with egress for the Fargate tasks
- A colorteller security group open on the app, TCP echo and Envoy ports
"""
import ipaddress
from constructs import Construct
from aws_cdk import (
    Stack,
    aws_ec2 as ec2,
    CfnOutput,
    Tags
)

from stacks.config.mesh_settings import (
    COLORTELLER_INGRESS_PORTS,
    MAX_AZS,
    VPC_PREFIX_MAX,
    VPC_PREFIX_MIN,
    VPC_CIDR,
)


class NetworkStack(Stack):
    """CDK Stack for VPC and networking resources.

    Creates a multi-AZ VPC with public and private subnets and the security
    group shared by every colorteller service.
    """

    def __init__(self, scope: Construct,
            construct_id: str,
            service_name: str = "colorapp",
            vpc_cidr: str = VPC_CIDR,
            **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.vpc_name = f"{service_name}-vpc"
        self.vpc_cidr = vpc_cidr

        try:
            network = ipaddress.ip_network(self.vpc_cidr)
        except ValueError as e:
            raise ValueError(f"Invalid VPC CIDR block: {self.vpc_cidr}") from e
        # ip_network reads a bare address as a /32; a VPC block needs an explicit prefix
        if "/" not in self.vpc_cidr or not VPC_PREFIX_MIN <= network.prefixlen <= VPC_PREFIX_MAX:
            raise ValueError(
                f"Invalid VPC CIDR block: {self.vpc_cidr} "
                f"(prefix must be /{VPC_PREFIX_MIN} to /{VPC_PREFIX_MAX})"
            )

        self.vpc = ec2.Vpc(self, "CDK-Fargate-VPC",
            ip_addresses=ec2.IpAddresses.cidr(self.vpc_cidr),
            max_azs=MAX_AZS,
            enable_dns_hostnames=True,
            enable_dns_support=True,
            vpc_name=self.vpc_name,
            nat_gateways=MAX_AZS,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="public",
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=24,
                ),
                ec2.SubnetConfiguration(
                    name="tasks",
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                    cidr_mask=20
                )
            ],
        )

        self.colorteller_security_group = self.add_colorteller_security_group()
        self.resource_tags(service_name)

        CfnOutput(self, "VpcId", value=self.vpc.vpc_id)
        CfnOutput(self, "AvailabilityZones", value=",".join(self.vpc.availability_zones))
        CfnOutput(self, "PublicSubnetCount", value=str(len(self.vpc.public_subnets)))
        CfnOutput(self, "PrivateSubnetCount", value=str(len(self.vpc.private_subnets)))
        CfnOutput(self,
            "ColortellerSecurityGroupId",
            value=self.colorteller_security_group.security_group_id
        )

    def add_colorteller_security_group(self) -> ec2.SecurityGroup:
        """Security group for the colorteller tasks, reachable on app and Envoy ports."""
        security_group = ec2.SecurityGroup(self, "colortellerSecurityGroup",
            vpc=self.vpc,
            security_group_name="colortellerSecurityGroup",
            allow_all_outbound=True,
        )
        for port in COLORTELLER_INGRESS_PORTS:
            security_group.connections.allow_from_any_ipv4(ec2.Port.tcp(port))
        return security_group

    def resource_tags(self, service_name: str) -> None:
        """Tag subnets with meaningful names"""
        for subnet in self.vpc.public_subnets:
            az_index = self.vpc.availability_zones.index(subnet.availability_zone)
            az_letter = chr(ord('a') + az_index)
            Tags.of(subnet).add("Name", f"{service_name}-public-{az_letter}")

        for subnet in self.vpc.private_subnets:
            az_index = self.vpc.availability_zones.index(subnet.availability_zone)
            az_letter = chr(ord('a') + az_index)
            Tags.of(subnet).add("Name", f"{service_name}-tasks-{az_letter}")
