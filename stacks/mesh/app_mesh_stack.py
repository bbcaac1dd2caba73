"""App Mesh stack module.

Declares the colormesh topology:
- One virtual node per colorteller color, discovered through Cloud Map DNS
- A virtual router whose single route sends all traffic to one color
- The colorteller virtual service backed by that router
- The colorgateway virtual node, whose only backend is the virtual service

Every mesh child is declared with an explicit DependsOn edge so CloudFormation
creates the mesh first and the route only after all of its nodes exist.
"""
from constructs import Construct
from aws_cdk import (
    Stack,
    aws_appmesh as appmesh,
    CfnOutput,
    Tags
)

from stacks.config import mesh_settings as settings


class AppMeshStack(Stack):
    """CDK Stack for the colormesh App Mesh resources.

    The routed color defaults to the ``routedVariant`` context value and then
    to blue. Changing it only rewrites the route's weighted target.
    """

    def __init__(self, scope: Construct, construct_id: str, *,
                 routed_variant: str = None,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.routed_variant = settings.validate_variant(
            routed_variant
            or self.node.try_get_context("routedVariant")
            or settings.DEFAULT_ROUTED_VARIANT
        )

        self.mesh = appmesh.CfnMesh(self, "color-appmesh",
            mesh_name=settings.MESH_NAME
        )

        self.virtual_nodes = self.add_colorteller_virtual_nodes()
        self.virtual_router = self.add_virtual_router()
        self.route = self.add_route()
        self.virtual_service = self.add_virtual_service()
        self.gateway_virtual_node = self.add_gateway_virtual_node()

        Tags.of(self).add("Project", "ColorApp")
        Tags.of(self).add("ManagedBy", "CDK")

        CfnOutput(self, "MeshName", value=self.mesh.attr_mesh_name)
        CfnOutput(self, "RoutedVirtualNode", value=settings.virtual_node_name(self.routed_variant))

    def add_colorteller_virtual_nodes(self) -> dict:
        """Create one virtual node per color, keyed by color."""
        listener = appmesh.CfnVirtualNode.ListenerProperty(
            port_mapping=appmesh.CfnVirtualNode.PortMappingProperty(
                port=settings.APP_PORT,
                protocol="http"
            ),
            health_check=appmesh.CfnVirtualNode.HealthCheckProperty(**settings.NODE_HEALTH_CHECK)
        )

        virtual_nodes = {}
        for variant in settings.COLOR_VARIANTS:
            node = appmesh.CfnVirtualNode(self, f"vn{settings.COLORTELLER_NAME}-{variant}",
                mesh_name=settings.MESH_NAME,
                virtual_node_name=settings.virtual_node_name(variant),
                spec=appmesh.CfnVirtualNode.VirtualNodeSpecProperty(
                    listeners=[listener],
                    service_discovery=appmesh.CfnVirtualNode.ServiceDiscoveryProperty(
                        dns=appmesh.CfnVirtualNode.DnsServiceDiscoveryProperty(
                            hostname=settings.virtual_node_hostname(variant)
                        )
                    )
                )
            )
            node.add_dependency(self.mesh)
            virtual_nodes[variant] = node
        return virtual_nodes

    def add_virtual_router(self) -> appmesh.CfnVirtualRouter:
        router = appmesh.CfnVirtualRouter(self, "vr-colorteller",
            mesh_name=settings.MESH_NAME,
            virtual_router_name=settings.VIRTUAL_ROUTER_NAME,
            spec=appmesh.CfnVirtualRouter.VirtualRouterSpecProperty(
                listeners=[
                    appmesh.CfnVirtualRouter.VirtualRouterListenerProperty(
                        port_mapping=appmesh.CfnVirtualRouter.PortMappingProperty(
                            port=settings.APP_PORT,
                            protocol="http"
                        )
                    )
                ]
            )
        )
        router.add_dependency(self.mesh)
        return router

    def add_route(self) -> appmesh.CfnRoute:
        """Route every request under / to the routed color with weight 1."""
        routed_node = self.virtual_nodes[self.routed_variant]
        route = appmesh.CfnRoute(self, "route-colorteller",
            mesh_name=settings.MESH_NAME,
            virtual_router_name=settings.VIRTUAL_ROUTER_NAME,
            route_name=settings.ROUTE_NAME,
            spec=appmesh.CfnRoute.RouteSpecProperty(
                http_route=appmesh.CfnRoute.HttpRouteProperty(
                    action=appmesh.CfnRoute.HttpRouteActionProperty(
                        weighted_targets=[
                            appmesh.CfnRoute.WeightedTargetProperty(
                                virtual_node=routed_node.virtual_node_name,
                                weight=1
                            )
                        ]
                    ),
                    match=appmesh.CfnRoute.HttpRouteMatchProperty(prefix="/")
                )
            )
        )
        route.add_dependency(self.virtual_router)
        for node in self.virtual_nodes.values():
            route.add_dependency(node)
        return route

    def add_virtual_service(self) -> appmesh.CfnVirtualService:
        virtual_service = appmesh.CfnVirtualService(self, "vs-colorteller",
            mesh_name=settings.MESH_NAME,
            virtual_service_name=settings.virtual_service_name(),
            spec=appmesh.CfnVirtualService.VirtualServiceSpecProperty(
                provider=appmesh.CfnVirtualService.VirtualServiceProviderProperty(
                    virtual_router=appmesh.CfnVirtualService.VirtualRouterServiceProviderProperty(
                        virtual_router_name=self.virtual_router.virtual_router_name
                    )
                )
            )
        )
        virtual_service.add_dependency(self.virtual_router)
        return virtual_service

    def add_gateway_virtual_node(self) -> appmesh.CfnVirtualNode:
        """Gateway node; its only backend is the colorteller virtual service."""
        gateway = appmesh.CfnVirtualNode(self, f"vn-{settings.GATEWAY_NAME}",
            mesh_name=settings.MESH_NAME,
            virtual_node_name=settings.GATEWAY_VIRTUAL_NODE_NAME,
            spec=appmesh.CfnVirtualNode.VirtualNodeSpecProperty(
                listeners=[
                    appmesh.CfnVirtualNode.ListenerProperty(
                        port_mapping=appmesh.CfnVirtualNode.PortMappingProperty(
                            port=settings.APP_PORT,
                            protocol="http"
                        )
                    )
                ],
                service_discovery=appmesh.CfnVirtualNode.ServiceDiscoveryProperty(
                    dns=appmesh.CfnVirtualNode.DnsServiceDiscoveryProperty(
                        hostname=f"{settings.GATEWAY_NAME}.{settings.PRIVATE_DOMAIN}"
                    )
                ),
                backends=[
                    appmesh.CfnVirtualNode.BackendProperty(
                        virtual_service=appmesh.CfnVirtualNode.VirtualServiceBackendProperty(
                            virtual_service_name=self.virtual_service.virtual_service_name
                        )
                    )
                ]
            )
        )
        gateway.add_dependency(self.mesh)
        gateway.add_dependency(self.virtual_service)
        return gateway
