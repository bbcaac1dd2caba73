#!/usr/bin/env python3
"""CDK application entrypoint.

Defines and synthesizes the infrastructure stacks for the color app:
1. NetworkStack: VPC across three AZs and the colorteller security group.
2. AppMeshStack: colormesh virtual nodes, router, route and virtual service.
3. ColorAppStack: Fargate services with Envoy sidecars and the public ALB.
"""

import aws_cdk as cdk
from stacks.network.network_stack import NetworkStack
from stacks.mesh.app_mesh_stack import AppMeshStack
from stacks.services.color_app_stack import ColorAppStack

app = cdk.App()


env_name = app.node.try_get_context("environment") or "dev"
env_context = app.node.try_get_context(env_name)
if not env_context:
    raise ValueError(f"No context found for environment '{env_name}'. Available environments: dev, stg, prod")

service_name = app.node.try_get_context("service_name")
if not service_name:
    raise ValueError("No 'service_name' found in context")

routed_variant = app.node.try_get_context("routedVariant")

env = cdk.Environment(
    account=env_context["account_id"],
    region=env_context["region"]
)

print(f"Synthesizing stacks for environment: {env_name} (Account: {env.account}, Region: {env.region}, "
      f"Routed variant: {routed_variant or 'default'})")

# Create network stack
network_stack = NetworkStack(app, "NetworkStack",
    service_name=service_name,
    vpc_cidr=env_context["vpc_cidr"],
    env=env
)

# Create mesh stack; its resources only reference each other by name
mesh_stack = AppMeshStack(app, "AppMeshStack",
    routed_variant=routed_variant,
    env=env
)

# Create services stack in the network stack's VPC
color_app_stack = ColorAppStack(app, "ColorAppStack",
    vpc=network_stack.vpc,
    colorteller_security_group=network_stack.colorteller_security_group,
    env=env
)

# Add dependency
color_app_stack.add_dependency(network_stack)
color_app_stack.add_dependency(mesh_stack)

app.synth()
