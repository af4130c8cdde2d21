"""Fixed-shape resources of the API Gateway ingress stack.

None of these look at the request paths. Each builder takes the resolved
network or authorization facts plus the construct handles it references, and
pins the CloudFormation logical id from stacks.gateway.naming:
- REST front door, Cognito authorizer and deployment
- internal network load balancer, listener, target group and VPC link
- security group ingress for the backend node port
- optional edge custom domain
- WebSocket front door with its integration, route, response, deployment and stage
"""
from constructs import Construct
from aws_cdk import (
    Aws,
    CfnTag,
    Fn,
    aws_apigateway as apigw,
    aws_apigatewayv2 as apigwv2,
    aws_ec2 as ec2,
    aws_elasticloadbalancingv2 as elbv2,
)

from stacks.gateway import naming
from stacks.gateway.routing import INTEGRATION_TIMEOUT_MILLIS

LISTENER_PORT = 80


def _stack_tags() -> list[CfnTag]:
    return [CfnTag(key=naming.STACK_TAG_KEY, value=Aws.STACK_NAME)]


def build_rest_api(scope: Construct) -> apigw.CfnRestApi:
    rest_api = apigw.CfnRestApi(
        scope,
        naming.REST_API,
        api_key_source_type="HEADER",
        endpoint_configuration=apigw.CfnRestApi.EndpointConfigurationProperty(
            types=["EDGE"]
        ),
        name=Aws.STACK_NAME,
    )
    rest_api.override_logical_id(naming.REST_API)
    return rest_api


def build_authorizer(scope: Construct, rest_api: apigw.CfnRestApi,
                     user_pool_arns: list[str]) -> apigw.CfnAuthorizer:
    """Cognito user pool authorizer reading the Authorization header."""
    authorizer = apigw.CfnAuthorizer(
        scope,
        naming.COGNITO_AUTHORIZER,
        rest_api_id=rest_api.ref,
        name="Cognito-Authorizer",
        type="COGNITO_USER_POOLS",
        identity_source="method.request.header.Authorization",
        provider_arns=list(user_pool_arns),
    )
    authorizer.override_logical_id(naming.COGNITO_AUTHORIZER)
    return authorizer


def build_deployment(scope: Construct, rest_api: apigw.CfnRestApi, stage_name: str,
                     depends_on: list[str]) -> apigw.CfnDeployment:
    """Deployment of the REST API, created after every listed method.

    Args:
        scope: Stack the deployment is added to.
        rest_api: REST API being deployed.
        stage_name: Stage to publish.
        depends_on: Method logical ids, already sorted.

    Returns:
        The deployment with DependsOn set to depends_on as given.
    """
    deployment = apigw.CfnDeployment(
        scope,
        naming.DEPLOYMENT,
        rest_api_id=rest_api.ref,
        stage_name=stage_name,
    )
    deployment.override_logical_id(naming.DEPLOYMENT)
    # Raw override: add_dependency would re-order by construct path.
    deployment.add_override("DependsOn", list(depends_on))
    return deployment


def build_load_balancer(scope: Construct, subnet_ids: list[str]) -> elbv2.CfnLoadBalancer:
    load_balancer = elbv2.CfnLoadBalancer(
        scope,
        naming.LOAD_BALANCER,
        ip_address_type="ipv4",
        scheme="internal",
        subnets=list(subnet_ids),
        tags=_stack_tags(),
        type="network",
    )
    load_balancer.override_logical_id(naming.LOAD_BALANCER)
    return load_balancer


def build_target_group(scope: Construct, vpc_id: str, instance_ids: list[str],
                       node_port: int) -> elbv2.CfnTargetGroup:
    """TCP target group registering every worker instance on the node port."""
    target_group = elbv2.CfnTargetGroup(
        scope,
        naming.TARGET_GROUP,
        health_check_interval_seconds=30,
        health_check_port="traffic-port",
        health_check_protocol="TCP",
        health_check_timeout_seconds=10,
        healthy_threshold_count=3,
        port=node_port,
        protocol="TCP",
        tags=_stack_tags(),
        target_type="instance",
        targets=[
            elbv2.CfnTargetGroup.TargetDescriptionProperty(id=instance_id)
            for instance_id in instance_ids
        ],
        unhealthy_threshold_count=3,
        vpc_id=vpc_id,
    )
    target_group.override_logical_id(naming.TARGET_GROUP)
    return target_group


def build_listener(scope: Construct, load_balancer: elbv2.CfnLoadBalancer,
                   target_group: elbv2.CfnTargetGroup) -> elbv2.CfnListener:
    listener = elbv2.CfnListener(
        scope,
        naming.LISTENER,
        load_balancer_arn=load_balancer.ref,
        protocol="TCP",
        port=LISTENER_PORT,
        default_actions=[
            elbv2.CfnListener.ActionProperty(
                type="forward",
                target_group_arn=target_group.ref,
            )
        ],
    )
    listener.override_logical_id(naming.LISTENER)
    return listener


def build_security_group_ingresses(scope: Construct, security_group_ids: list[str],
                                   cidr: str, node_port: int) -> list[ec2.CfnSecurityGroupIngress]:
    """Open the node port to the VPC CIDR on every worker security group."""
    ingresses = []
    for i, group_id in enumerate(security_group_ids):
        logical_name = naming.security_group_ingress_logical_name(i)
        ingress = ec2.CfnSecurityGroupIngress(
            scope,
            logical_name,
            ip_protocol="TCP",
            cidr_ip=cidr,
            from_port=node_port,
            to_port=node_port,
            group_id=group_id,
        )
        ingress.override_logical_id(logical_name)
        ingresses.append(ingress)
    return ingresses


def build_vpc_link(scope: Construct, load_balancer: elbv2.CfnLoadBalancer) -> apigw.CfnVpcLink:
    vpc_link = apigw.CfnVpcLink(
        scope,
        naming.VPC_LINK,
        name=Aws.STACK_NAME,
        target_arns=[load_balancer.ref],
    )
    vpc_link.override_logical_id(naming.VPC_LINK)
    vpc_link.add_dependency(load_balancer)
    return vpc_link


def build_custom_domain(scope: Construct, domain_name: str,
                        certificate_arn: str) -> apigw.CfnDomainName:
    domain = apigw.CfnDomainName(
        scope,
        naming.CUSTOM_DOMAIN,
        certificate_arn=certificate_arn,
        domain_name=domain_name,
        endpoint_configuration=apigw.CfnDomainName.EndpointConfigurationProperty(
            types=["EDGE"]
        ),
    )
    domain.override_logical_id(naming.CUSTOM_DOMAIN)
    return domain


def build_websocket_api(scope: Construct) -> apigwv2.CfnApi:
    api = apigwv2.CfnApi(
        scope,
        naming.WEBSOCKET_API,
        name=f"{Aws.STACK_NAME}-websocket",
        protocol_type="WEBSOCKET",
        route_selection_expression="$request.body.action",
    )
    api.override_logical_id(naming.WEBSOCKET_API)
    return api


def build_websocket_integration(scope: Construct, api: apigwv2.CfnApi,
                                vpc_link: apigw.CfnVpcLink,
                                load_balancer: elbv2.CfnLoadBalancer) -> apigwv2.CfnIntegration:
    """HTTP proxy from the WebSocket API to the load balancer root."""
    integration = apigwv2.CfnIntegration(
        scope,
        naming.WEBSOCKET_INTEGRATION,
        api_id=api.ref,
        connection_id=vpc_link.ref,
        connection_type="VPC_LINK",
        integration_method="ANY",
        passthrough_behavior="WHEN_NO_MATCH",
        integration_type="HTTP_PROXY",
        timeout_in_millis=INTEGRATION_TIMEOUT_MILLIS,
        integration_uri=Fn.join("", ["http://", load_balancer.attr_dns_name, "/"]),
    )
    integration.override_logical_id(naming.WEBSOCKET_INTEGRATION)
    return integration


def build_websocket_route(scope: Construct, api: apigwv2.CfnApi,
                          integration: apigwv2.CfnIntegration) -> apigwv2.CfnRoute:
    route = apigwv2.CfnRoute(
        scope,
        naming.WEBSOCKET_DEFAULT_ROUTE,
        api_id=api.ref,
        route_key="$default",
        authorization_type="NONE",
        target=Fn.join("/", ["integrations", integration.ref]),
    )
    route.override_logical_id(naming.WEBSOCKET_DEFAULT_ROUTE)
    return route


def build_websocket_integration_response(
        scope: Construct, api: apigwv2.CfnApi,
        integration: apigwv2.CfnIntegration) -> apigwv2.CfnIntegrationResponse:
    response = apigwv2.CfnIntegrationResponse(
        scope,
        naming.WEBSOCKET_INTEGRATION_RESPONSE,
        api_id=api.ref,
        integration_id=integration.ref,
        integration_response_key="$default",
    )
    response.override_logical_id(naming.WEBSOCKET_INTEGRATION_RESPONSE)
    return response


def build_websocket_deployment(scope: Construct, api: apigwv2.CfnApi,
                               integration: apigwv2.CfnIntegration,
                               route: apigwv2.CfnRoute,
                               response: apigwv2.CfnIntegrationResponse) -> apigwv2.CfnDeployment:
    deployment = apigwv2.CfnDeployment(
        scope,
        naming.WEBSOCKET_DEPLOYMENT,
        api_id=api.ref,
    )
    deployment.override_logical_id(naming.WEBSOCKET_DEPLOYMENT)
    for dependency in (integration, api, route, response):
        deployment.add_dependency(dependency)
    return deployment


def build_websocket_stage(scope: Construct, api: apigwv2.CfnApi,
                          deployment: apigwv2.CfnDeployment,
                          stage_name: str) -> apigwv2.CfnStage:
    stage = apigwv2.CfnStage(
        scope,
        naming.WEBSOCKET_STAGE,
        api_id=api.ref,
        stage_name=stage_name,
        deployment_id=deployment.ref,
    )
    stage.override_logical_id(naming.WEBSOCKET_STAGE)
    return stage
