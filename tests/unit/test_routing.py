"""Unit tests for the path-derived API Gateway resource tree.

Tests resource/method naming, parent links across segments, prefix sharing
between paths, the trailing {proxy+} catch-all, method integrations and the
sorted DependsOn list of the REST deployment.
"""
import logging

import aws_cdk as cdk
from aws_cdk.assertions import Template

from stacks.gateway.api_gateway_ingress_stack import ApiGatewayIngressStack
from stacks.gateway.config import Network, TemplateConfig


def synth_ingress_stack(paths):
    """Synthesize an ingress stack for the given paths."""
    app = cdk.App()
    env = cdk.Environment(account="111111111111", region="eu-west-1")
    config = TemplateConfig(
        network=Network(
            vpc_id="vpc-123",
            cidr_block="10.0.0.0/16",
            subnet_ids=["subnet-1"],
            security_group_ids=["sg-1"],
            instance_ids=["i-1"],
        ),
        paths=paths,
        node_port=30080,
        stage_name="prod",
    )
    stack = ApiGatewayIngressStack(app, "IngressStackTest", config=config, env=env)
    template = Template.from_stack(stack)
    return stack, template


def _logical_ids(template, resource_type):
    return set(template.find_resources(resource_type))


def _uri_path(method):
    """Return the runtime path at the end of a method's integration URI."""
    return method["Properties"]["Integration"]["Uri"]["Fn::Join"][1][-1]


def test_parameter_path_resources():
    """Test /orders/{id} yields one resource and one method per segment plus the catch-all."""
    _, template = synth_ingress_stack(["/orders/{id}"])
    assert _logical_ids(template, "AWS::ApiGateway::Resource") == {
        "Resourceorders", "Resourceordersid", "Resourceordersidproxy",
    }
    assert _logical_ids(template, "AWS::ApiGateway::Method") == {
        "Methodorders", "Methodordersid", "Methodordersidproxy",
    }


def test_parent_links():
    """Test the first segment hangs off the API root and later ones off their prefix."""
    _, template = synth_ingress_stack(["/orders/{id}"])
    template.has_resource_properties("AWS::ApiGateway::Resource", {
        "ParentId": {"Fn::GetAtt": ["RestAPI", "RootResourceId"]},
        "PathPart": "orders",
        "RestApiId": {"Ref": "RestAPI"},
    })
    resources = template.find_resources("AWS::ApiGateway::Resource")
    assert resources["Resourceordersid"]["Properties"]["ParentId"] == {"Ref": "Resourceorders"}
    assert resources["Resourceordersid"]["Properties"]["PathPart"] == "{id}"
    assert resources["Resourceordersidproxy"]["Properties"]["ParentId"] == {"Ref": "Resourceordersid"}
    assert resources["Resourceordersidproxy"]["Properties"]["PathPart"] == "{proxy+}"


def test_runtime_paths():
    """Test each method forwards to its prefix and the catch-all to {proxy}."""
    _, template = synth_ingress_stack(["/orders/{id}"])
    methods = template.find_resources("AWS::ApiGateway::Method")
    assert _uri_path(methods["Methodorders"]) == "/orders"
    assert _uri_path(methods["Methodordersid"]) == "/orders/{id}"
    assert _uri_path(methods["Methodordersidproxy"]) == "/orders/{id}/{proxy}"


def test_shared_prefix_creates_single_node():
    """Test /a/b and /a/c share one /a node and hang distinct children off it."""
    _, template = synth_ingress_stack(["/a/b", "/a/c"])
    resources = template.find_resources("AWS::ApiGateway::Resource")
    assert set(resources) == {
        "Resourcea", "Resourceab", "Resourceac", "Resourceabproxy", "Resourceacproxy",
    }
    assert resources["Resourceab"]["Properties"]["ParentId"] == {"Ref": "Resourcea"}
    assert resources["Resourceac"]["Properties"]["ParentId"] == {"Ref": "Resourcea"}


def test_nested_path_reuses_parent_rule():
    """Test /a and /a/b produce exactly one Resourcea shared by both rules."""
    stack, template = synth_ingress_stack(["/a", "/a/b"])
    resources = template.find_resources("AWS::ApiGateway::Resource")
    assert [r["Properties"]["PathPart"] for r in resources.values()].count("a") == 1
    assert resources["Resourceab"]["Properties"]["ParentId"] == {"Ref": "Resourcea"}
    assert set(stack.route_tree.methods) == {
        "Methoda", "Methodaproxy", "Methodab", "Methodabproxy",
    }


def test_every_path_ends_in_catch_all():
    """Test every rule, including the root, gets a method forwarding {proxy}."""
    _, template = synth_ingress_stack(["/", "/health", "/v1/items/{item}"])
    methods = template.find_resources("AWS::ApiGateway::Method")
    for name in ("Methodproxy", "Methodhealthproxy", "Methodv1itemsitemproxy"):
        assert _uri_path(methods[name]).endswith("/{proxy}")


def test_method_integration():
    """Test methods proxy through the VPC link behind the Cognito authorizer."""
    _, template = synth_ingress_stack(["/orders"])
    template.has_resource_properties("AWS::ApiGateway::Method", {
        "HttpMethod": "ANY",
        "AuthorizationType": "COGNITO_USER_POOLS",
        "AuthorizerId": {"Ref": "CognitoAuthorizer"},
        "ResourceId": {"Ref": "Resourceorders"},
        "RestApiId": {"Ref": "RestAPI"},
        "RequestParameters": {"method.request.path.proxy": True},
        "Integration": {
            "ConnectionId": {"Ref": "VPCLink"},
            "ConnectionType": "VPC_LINK",
            "IntegrationHttpMethod": "ANY",
            "PassthroughBehavior": "WHEN_NO_MATCH",
            "RequestParameters": {
                "integration.request.path.proxy": "method.request.path.proxy",
                "integration.request.header.Accept-Encoding": "'identity'",
            },
            "Type": "HTTP_PROXY",
            "TimeoutInMillis": 29000,
            "Uri": {"Fn::Join": ["", [
                "http://", {"Fn::GetAtt": ["LoadBalancer", "DNSName"]}, "/orders",
            ]]},
        },
    })


def test_methods_depend_on_load_balancer_and_authorizer():
    """Test every method declares DependsOn the load balancer and authorizer."""
    _, template = synth_ingress_stack(["/orders/{id}"])
    for method in template.find_resources("AWS::ApiGateway::Method").values():
        assert sorted(method["DependsOn"]) == ["CognitoAuthorizer", "LoadBalancer"]


def test_deployment_depends_on_sorted_methods():
    """Test the deployment depends on exactly the method keys, sorted, no duplicates."""
    _, template = synth_ingress_stack(["/b/{x}", "/a", "/b", "/A"])
    method_keys = _logical_ids(template, "AWS::ApiGateway::Method")
    deployment = template.find_resources("AWS::ApiGateway::Deployment")["Deployment"]
    assert deployment["DependsOn"] == sorted(method_keys)
    assert len(deployment["DependsOn"]) == len(set(deployment["DependsOn"]))
    assert deployment["DependsOn"][0] == "MethodA"


def test_colliding_names_keep_last_definition(caplog):
    """Test /ab and /a/b derive the same key; the later rule wins and a warning is logged."""
    with caplog.at_level(logging.WARNING, logger="stacks.gateway.routing"):
        _, template = synth_ingress_stack(["/ab", "/a/b"])
    methods = template.find_resources("AWS::ApiGateway::Method")
    resources = template.find_resources("AWS::ApiGateway::Resource")
    assert _uri_path(methods["Methodab"]) == "/a/b"
    assert _uri_path(methods["Methodabproxy"]) == "/a/b/{proxy}"
    assert resources["Resourceab"]["Properties"]["ParentId"] == {"Ref": "Resourcea"}
    assert resources["Resourceab"]["Properties"]["PathPart"] == "b"
    assert "Resourceab already defined for /ab; replacing with /a/b" in caplog.text
