"""Color app services stack module.

Runs the color app on ECS Fargate:
- ECS cluster with a Cloud Map private DNS namespace (colordemo.local)
- Shared task role (X-Ray trace submission) and CloudWatch log group
- colorgateway service plus one colorteller service per color, each task
  paired with an Envoy sidecar
- Internet-facing Application Load Balancer in front of the gateway
"""
from typing import Dict

from constructs import Construct
from aws_cdk import (
    Stack,
    Duration,
    RemovalPolicy,
    aws_ec2 as ec2,
    aws_ecs as ecs,
    aws_elasticloadbalancingv2 as elbv2,
    aws_iam as iam,
    aws_logs as logs,
    CfnOutput,
    Tags
)

from stacks.config import mesh_settings as settings
from stacks.config.mesh_settings import ServiceBlueprint
from stacks.services.mesh_task_definition import MeshTaskDefinition


class ColorAppStack(Stack):
    """CDK Stack for the Fargate services and their public entry point."""

    def __init__(self, scope: Construct, construct_id: str, *,
                 vpc: ec2.IVpc,
                 colorteller_security_group: ec2.ISecurityGroup,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.colorteller_security_group = colorteller_security_group

        self.log_group = logs.LogGroup(self, "LogGroup",
            log_group_name=settings.LOG_GROUP_NAME,
            retention=logs.RetentionDays.TWO_WEEKS,
            removal_policy=RemovalPolicy.DESTROY
        )

        self.cluster = ecs.Cluster(self, "fgappMeshCluster", vpc=vpc)
        self.cluster.add_default_cloud_map_namespace(name=settings.PRIVATE_DOMAIN)

        self.task_role = iam.Role(self, "fgAppMeshDemoTaskExecutionRole",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
            inline_policies={
                "XrayPut": iam.PolicyDocument(
                    statements=[
                        iam.PolicyStatement(
                            effect=iam.Effect.ALLOW,
                            resources=["*"],
                            actions=["xray:PutTraceSegments"]
                        )
                    ]
                )
            }
        )

        self.gateway_service = self.add_mesh_service(settings.gateway_blueprint())

        self.colorteller_services: Dict[str, ecs.FargateService] = {}
        for variant in settings.COLOR_VARIANTS:
            self.colorteller_services[variant] = self.add_mesh_service(
                settings.colorteller_blueprint(variant)
            )

        self.load_balancer = self.add_public_load_balancer()
        self.resource_tags()

        CfnOutput(self, "ALBDNS",
            value=self.load_balancer.load_balancer_dns_name,
            description="Public DNS name of the color gateway load balancer"
        )

    def add_mesh_service(self, blueprint: ServiceBlueprint) -> ecs.FargateService:
        """Build the task definition for a blueprint and run it as a Fargate service.

        The service registers in Cloud Map under the blueprint's discovery name,
        which is the hostname its virtual node resolves.
        """
        task = MeshTaskDefinition(self, f"{blueprint.construct_prefix}-task",
            blueprint=blueprint,
            task_role=self.task_role,
            log_group=self.log_group
        )

        security_groups = None
        if blueprint.uses_colorteller_security_group:
            security_groups = [self.colorteller_security_group]

        service = ecs.FargateService(self, f"{blueprint.construct_prefix}-service",
            cluster=self.cluster,
            desired_count=1,
            task_definition=task.task_definition,
            security_groups=security_groups,
            cloud_map_options=ecs.CloudMapOptions(
                name=blueprint.cloud_map_name,
                dns_ttl=Duration.seconds(settings.CLOUD_MAP_DNS_TTL_SECONDS)
            )
        )
        for key, value in blueprint.tags.items():
            Tags.of(service).add(key, value)
        return service

    def add_public_load_balancer(self) -> elbv2.ApplicationLoadBalancer:
        """Expose the gateway service through an internet-facing ALB on port 80."""
        load_balancer = elbv2.ApplicationLoadBalancer(self, "external",
            vpc=self.cluster.vpc,
            internet_facing=True
        )
        self.listener = load_balancer.add_listener("PublicListener",
            port=settings.EDGE_LISTENER_PORT,
            open=True
        )

        edge = settings.EDGE_HEALTH_CHECK
        self.listener.add_targets(settings.GATEWAY_NAME,
            port=settings.EDGE_LISTENER_PORT,
            protocol=elbv2.ApplicationProtocol.HTTP,
            health_check=elbv2.HealthCheck(
                port=edge["port"],
                path=edge["path"],
                interval=Duration.seconds(edge["interval_seconds"]),
                timeout=Duration.seconds(edge["timeout_seconds"]),
                healthy_threshold_count=edge["healthy_threshold_count"],
                unhealthy_threshold_count=edge["unhealthy_threshold_count"],
                healthy_http_codes=edge["healthy_http_codes"]
            ),
            targets=[self.gateway_service]
        )
        return load_balancer

    def resource_tags(self):
        """Apply resource tags"""
        Tags.of(self).add("Project", "ColorApp")
        Tags.of(self).add("ManagedBy", "CDK")
        Tags.of(self.cluster).add("ClusterType", "ECS-Fargate")
