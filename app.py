#!/usr/bin/env python3
"""CDK application entrypoint.

Synthesizes the API Gateway ingress stack for one environment:
1. Reads the environment's network facts and ingress paths from context.
2. ApiGatewayIngressStack: REST/WebSocket APIs, VPC link, internal NLB, node port ingress.
"""

import aws_cdk as cdk
from stacks.gateway.api_gateway_ingress_stack import ApiGatewayIngressStack
from stacks.gateway.config import TemplateConfig

app = cdk.App()


env_name = app.node.try_get_context("environment") or "dev"
env_context = app.node.try_get_context(env_name)
if not env_context:
    raise ValueError(f"No context found for environment '{env_name}'. Available environments: dev, stg, prod")

service_name = app.node.try_get_context("service_name")
if not service_name:
    raise ValueError("No 'service_name' found in context")

env = cdk.Environment(
    account=env_context["account_id"],
    region=env_context["region"]
)

config = TemplateConfig.from_context(env_context)

print(f"Synthesizing ingress for environment: {env_name} (Account: {env.account}, Region: {env.region}, Paths: {len(config.paths)})")

ApiGatewayIngressStack(app, f"{service_name}-{env_name}-ingress",
    config=config,
    env=env
)

app.synth()
