"""Fargate task definition with an App Mesh Envoy sidecar.

Each task carries exactly two containers: the application container described
by a ServiceBlueprint and an ``envoy`` sidecar bound to the blueprint's
virtual node. The APPMESH proxy configuration is written as a property
override so every task definition gets the same block.
"""
from constructs import Construct
from aws_cdk import (
    Duration,
    aws_ecs as ecs,
    aws_iam as iam,
    aws_logs as logs,
    Tags
)

from stacks.config import mesh_settings as settings
from stacks.config.mesh_settings import ServiceBlueprint


class MeshTaskDefinition(Construct):
    """Task definition plus Envoy sidecar for one blueprint."""

    def __init__(self, scope: Construct, construct_id: str, *,
                 blueprint: ServiceBlueprint,
                 task_role: iam.IRole,
                 log_group: logs.ILogGroup) -> None:
        super().__init__(scope, construct_id)

        self.blueprint = blueprint

        sizing = {}
        if blueprint.cpu is not None:
            sizing["cpu"] = blueprint.cpu
        if blueprint.memory_limit_mib is not None:
            sizing["memory_limit_mib"] = blueprint.memory_limit_mib

        self.task_definition = ecs.FargateTaskDefinition(
            self,
            "TaskDefinition",
            task_role=task_role,
            **sizing
        )

        self.app_container = self.task_definition.add_container(blueprint.container_name,
            image=ecs.ContainerImage.from_registry(blueprint.image),
            environment=dict(blueprint.environment),
            logging=ecs.LogDrivers.aws_logs(
                log_group=log_group,
                stream_prefix=blueprint.app_stream_prefix
            )
        )
        self.app_container.add_port_mappings(
            ecs.PortMapping(container_port=settings.APP_PORT)
        )

        self.envoy_container = self.add_envoy_sidecar(log_group)

        cfn_task_definition: ecs.CfnTaskDefinition = self.task_definition.node.default_child
        cfn_task_definition.add_property_override(
            "ProxyConfiguration", settings.proxy_configuration()
        )

        for key, value in blueprint.tags.items():
            Tags.of(self.task_definition).add(key, value)

    def add_envoy_sidecar(self, log_group: logs.ILogGroup) -> ecs.ContainerDefinition:
        """Add the Envoy proxy container bound to the blueprint's virtual node."""
        envoy = self.task_definition.add_container(settings.ENVOY_CONTAINER_NAME,
            image=ecs.ContainerImage.from_registry(settings.ENVOY_IMAGE),
            environment={
                "APPMESH_VIRTUAL_NODE_NAME": settings.virtual_node_arn_path(
                    self.blueprint.virtual_node_name
                ),
                "ENABLE_ENVOY_STATS_TAGS": "1",
                "ENABLE_ENVOY_XRAY_TRACING": "1",
                "ENVOY_LOG_LEVEL": "debug",
            },
            health_check=ecs.HealthCheck(
                command=[settings.ENVOY_HEALTH_CHECK_COMMAND],
                interval=Duration.seconds(settings.ENVOY_HEALTH_CHECK_INTERVAL_SECONDS),
                timeout=Duration.seconds(settings.ENVOY_HEALTH_CHECK_TIMEOUT_SECONDS),
                retries=settings.ENVOY_HEALTH_CHECK_RETRIES
            ),
            user=settings.ENVOY_USER_ID,
            logging=ecs.LogDrivers.aws_logs(
                log_group=log_group,
                stream_prefix=self.blueprint.envoy_stream_prefix
            )
        )
        envoy.add_port_mappings(
            ecs.PortMapping(container_port=settings.ENVOY_ADMIN_PORT),
            ecs.PortMapping(container_port=settings.ENVOY_INGRESS_PORT),
            ecs.PortMapping(container_port=settings.ENVOY_EGRESS_PORT)
        )
        envoy.add_ulimits(
            ecs.Ulimit(
                name=ecs.UlimitName.NOFILE,
                soft_limit=settings.ENVOY_NOFILE_LIMIT,
                hard_limit=settings.ENVOY_NOFILE_LIMIT
            )
        )
        return envoy
