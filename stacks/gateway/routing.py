"""Path-derived API Gateway resources.

Turns the ingress paths into a tree of AWS::ApiGateway::Resource nodes with
one ANY method per node, each proxied through the VPC link to the internal
network load balancer. Paths that share a prefix share the nodes of that
prefix.
"""
import logging
from dataclasses import dataclass, field

from constructs import Construct
from aws_cdk import (
    Fn,
    aws_apigateway as apigw,
    aws_elasticloadbalancingv2 as elbv2,
)

from stacks.gateway import naming

logger = logging.getLogger(__name__)

INTEGRATION_TIMEOUT_MILLIS = 29000


@dataclass(frozen=True)
class BackendWiring:
    """Handles every method integration points at."""

    rest_api: apigw.CfnRestApi
    authorizer: apigw.CfnAuthorizer
    load_balancer: elbv2.CfnLoadBalancer
    vpc_link: apigw.CfnVpcLink


@dataclass
class RouteTree:
    resources: dict[str, apigw.CfnResource] = field(default_factory=dict)
    methods: dict[str, apigw.CfnMethod] = field(default_factory=dict)
    paths: dict[str, str] = field(default_factory=dict)


def build_method(scope: Construct, logical_name: str, resource: apigw.CfnResource,
                 path: str, wiring: BackendWiring) -> apigw.CfnMethod:
    """Create the ANY method of a routing node, proxied to the load balancer.

    Args:
        scope: Stack the method is added to.
        logical_name: CloudFormation logical id of the method.
        resource: Routing node the method is attached to.
        path: Runtime path appended to the load balancer address.
        wiring: Shared authorizer, load balancer and VPC link.

    Returns:
        The method, depending on the load balancer and the authorizer.
    """
    method = apigw.CfnMethod(
        scope,
        logical_name,
        http_method="ANY",
        resource_id=resource.ref,
        rest_api_id=wiring.rest_api.ref,
        authorization_type="COGNITO_USER_POOLS",
        authorizer_id=wiring.authorizer.ref,
        request_parameters={
            "method.request.path.proxy": True,
        },
        integration=apigw.CfnMethod.IntegrationProperty(
            connection_id=wiring.vpc_link.ref,
            connection_type="VPC_LINK",
            integration_http_method="ANY",
            passthrough_behavior="WHEN_NO_MATCH",
            request_parameters={
                "integration.request.path.proxy": "method.request.path.proxy",
                "integration.request.header.Accept-Encoding": "'identity'",
            },
            type="HTTP_PROXY",
            timeout_in_millis=INTEGRATION_TIMEOUT_MILLIS,
            uri=Fn.join("", ["http://", wiring.load_balancer.attr_dns_name, path]),
        ),
    )
    method.override_logical_id(logical_name)
    method.add_dependency(wiring.load_balancer)
    method.add_dependency(wiring.authorizer)
    return method


def build_route_tree(scope: Construct, paths: list[str], wiring: BackendWiring) -> RouteTree:
    """Create the resource and method of every prefix of every path.

    Each path gets a trailing {proxy+} segment so that everything below it is
    forwarded. Segments are walked left to right and each node's parent is the
    node created (or reused) for the previous segment; the first segment hangs
    off the REST API root resource. When two rules derive the same key for
    different runtime paths, the later rule replaces the earlier nodes.

    Args:
        scope: Stack the resources are added to.
        paths: Ingress paths in rule order.
        wiring: Shared backend integration handles.

    Returns:
        The tree, keyed by CloudFormation logical id.
    """
    tree = RouteTree()

    for path in paths:
        parts = naming.split_path(path)
        parent_id = wiring.rest_api.attr_root_resource_id

        for idx in range(1, len(parts)):
            resource_name = naming.resource_logical_name(idx, parts)
            runtime_path = naming.to_path(idx, parts)
            method_name = naming.method_logical_name(idx, parts)

            resource = tree.resources.get(resource_name)
            if resource is not None and tree.paths[resource_name] != runtime_path:
                # Later rules overwrite earlier ones that derive the same key.
                logger.warning(
                    "%s already defined for %s; replacing with %s from path %s",
                    resource_name, tree.paths[resource_name], runtime_path, path,
                )
                scope.node.try_remove_child(resource_name)
                scope.node.try_remove_child(method_name)
                del tree.methods[method_name]
                resource = None

            if resource is None:
                resource = apigw.CfnResource(
                    scope,
                    resource_name,
                    parent_id=parent_id,
                    path_part=parts[idx],
                    rest_api_id=wiring.rest_api.ref,
                )
                resource.override_logical_id(resource_name)
                tree.resources[resource_name] = resource
                tree.paths[resource_name] = runtime_path
                logger.debug("Added %s for %s", resource_name, runtime_path)

            if method_name not in tree.methods:
                tree.methods[method_name] = build_method(
                    scope, method_name, resource, runtime_path, wiring
                )

            parent_id = resource.ref

    logger.info(
        "Built %d resources and %d methods from %d paths",
        len(tree.resources), len(tree.methods), len(paths),
    )
    return tree


def method_dependencies(tree: RouteTree) -> list[str]:
    # Code-point order keeps the deployment's DependsOn byte-stable.
    return sorted(set(tree.methods))
