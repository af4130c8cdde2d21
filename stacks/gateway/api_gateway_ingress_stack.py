"""API Gateway ingress stack module.

Assembles the CloudFormation template that exposes a cluster backend through
API Gateway:
- REST API with one resource/method pair per path prefix, behind a Cognito authorizer
- VPC link to an internal network load balancer targeting the worker nodes
- Security group ingress for the backend node port
- Optional custom domain and WebSocket API
"""
import json
import logging
from dataclasses import dataclass

from constructs import Construct
import aws_cdk as cdk
from aws_cdk import (
    Stack,
    Aws,
    CfnOutput,
    Fn,
)

from stacks.gateway import naming, resources
from stacks.gateway.config import TemplateConfig
from stacks.gateway.routing import BackendWiring, RouteTree, build_route_tree, method_dependencies

logger = logging.getLogger(__name__)


class ApiGatewayIngressStack(Stack):
    """CDK Stack translating ingress paths into API Gateway resources.

    The config is validated before any construct is created, so an invalid
    config never leaves a partially built stack behind.
    """

    def __init__(self, scope: Construct, construct_id: str, *,
                 config: TemplateConfig,
                 **kwargs) -> None:
        config.validate()
        super().__init__(scope, construct_id, **kwargs)

        self.config = config

        self.rest_api = resources.build_rest_api(self)
        self.authorizer = resources.build_authorizer(
            self, self.rest_api, config.cognito_user_pool_arns
        )
        self.load_balancer = resources.build_load_balancer(self, config.network.subnet_ids)
        self.vpc_link = resources.build_vpc_link(self, self.load_balancer)

        self.route_tree: RouteTree = build_route_tree(
            self,
            config.paths,
            BackendWiring(
                rest_api=self.rest_api,
                authorizer=self.authorizer,
                load_balancer=self.load_balancer,
                vpc_link=self.vpc_link,
            ),
        )

        self.add_backend(config)
        if config.has_custom_domain:
            self.custom_domain = resources.build_custom_domain(
                self, config.custom_domain_name, config.certificate_arn
            )
        if config.enable_websocket:
            self.add_websocket_api(config.stage_name)

        self.deployment = resources.build_deployment(
            self, self.rest_api, config.stage_name, method_dependencies(self.route_tree)
        )

        self.add_outputs(config)

    def add_backend(self, config: TemplateConfig) -> None:
        """Target group, listener and node port ingress behind the load balancer"""
        network = config.network
        self.target_group = resources.build_target_group(
            self, network.vpc_id, network.instance_ids, config.node_port
        )
        self.listener = resources.build_listener(self, self.load_balancer, self.target_group)
        self.security_group_ingresses = resources.build_security_group_ingresses(
            self, network.security_group_ids, network.cidr_block, config.node_port
        )

    def add_websocket_api(self, stage_name: str) -> None:
        """WebSocket API forwarding every message to the load balancer root"""
        self.websocket_api = resources.build_websocket_api(self)
        integration = resources.build_websocket_integration(
            self, self.websocket_api, self.vpc_link, self.load_balancer
        )
        route = resources.build_websocket_route(self, self.websocket_api, integration)
        response = resources.build_websocket_integration_response(
            self, self.websocket_api, integration
        )
        deployment = resources.build_websocket_deployment(
            self, self.websocket_api, integration, route, response
        )
        resources.build_websocket_stage(self, self.websocket_api, deployment, stage_name)

    def add_outputs(self, config: TemplateConfig) -> None:
        self._output(naming.OUTPUT_KEY_REST_API_ID, self.rest_api.ref)
        self._output(
            naming.OUTPUT_KEY_API_GATEWAY_ENDPOINT,
            _invoke_url("https://", self.rest_api.ref, config.stage_name),
        )
        self._output(naming.OUTPUT_KEY_CLIENT_ARNS, ",".join(config.arns))
        if config.enable_websocket:
            self._output(
                naming.OUTPUT_KEY_API_GATEWAY_WSS_ENDPOINT,
                _invoke_url("wss://", self.websocket_api.ref, config.stage_name),
            )

    def _output(self, key: str, value: str) -> None:
        output = CfnOutput(self, key, value=value)
        output.override_logical_id(key)


def _invoke_url(scheme: str, api_id: str, stage_name: str) -> str:
    return Fn.join("", [scheme, api_id, ".execute-api.", Aws.REGION, ".amazonaws.com/", stage_name])


@dataclass(frozen=True)
class IngressTemplate:
    """Synthesized CloudFormation template and its output values."""

    template: dict

    @property
    def resources(self) -> dict:
        return self.template.get("Resources", {})

    @property
    def outputs(self) -> dict:
        return {key: output["Value"] for key, output in self.template.get("Outputs", {}).items()}

    def to_json(self) -> str:
        return json.dumps(self.template, indent=2, sort_keys=True)


def synthesize_template(config: TemplateConfig,
                        stack_name: str = "ApiGatewayIngress") -> IngressTemplate:
    """Synthesize the ingress template in a throwaway CDK app.

    Args:
        config: Ingress configuration; validated before anything is built.
        stack_name: Construct id of the stack inside the app.

    Returns:
        The synthesized template.

    Raises:
        ValueError: If the config is invalid.
    """
    config.validate()
    app = cdk.App(analytics_reporting=False)
    stack = ApiGatewayIngressStack(
        app,
        stack_name,
        config=config,
        synthesizer=cdk.DefaultStackSynthesizer(generate_bootstrap_version_rule=False),
    )
    template = app.synth().get_stack_artifact(stack.artifact_id).template
    logger.info("Synthesized %s with %d resources", stack_name, len(template.get("Resources", {})))
    return IngressTemplate(template=template)
