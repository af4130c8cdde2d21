"""Logical names and runtime paths for the API Gateway ingress template.

Every CloudFormation logical id used by the ingress stack is declared here,
together with the two pure functions that turn a split request path into:
- a logical name (segments concatenated, template markers removed)
- a runtime path (segments joined with "/", catch-all rewritten to {proxy})
"""

PARAM_OPEN = "{"
PARAM_CLOSE = "}"
WILDCARD = "+"
PATH_SEPARATOR = "/"

PROXY_SEGMENT = "{proxy+}"
PROXY_PARAMETER = "{proxy}"

RESOURCE_PREFIX = "Resource"
METHOD_PREFIX = "Method"

REST_API = "RestAPI"
COGNITO_AUTHORIZER = "CognitoAuthorizer"
DEPLOYMENT = "Deployment"
LOAD_BALANCER = "LoadBalancer"
LISTENER = "Listener"
TARGET_GROUP = "TargetGroup"
VPC_LINK = "VPCLink"
SECURITY_GROUP_INGRESS_PREFIX = "SecurityGroupIngress"
CUSTOM_DOMAIN = "CustomDomain"

WEBSOCKET_API = "webSocketAPI"
WEBSOCKET_INTEGRATION = "webSocketIntegration"
WEBSOCKET_DEFAULT_ROUTE = "webSocketDefaultRoute"
WEBSOCKET_INTEGRATION_RESPONSE = "webSocketIntegrationResponse"
WEBSOCKET_DEPLOYMENT = "webSocketDeployment"
WEBSOCKET_STAGE = "webSocketStage"

OUTPUT_KEY_REST_API_ID = "RestAPIID"
OUTPUT_KEY_API_GATEWAY_ENDPOINT = "APIGatewayEndpoint"
OUTPUT_KEY_CLIENT_ARNS = "ClientARNS"
OUTPUT_KEY_API_GATEWAY_WSS_ENDPOINT = "OutputKeyAPIGatewayWSSEndpoint"

STACK_TAG_KEY = "apigateway-ingress/stack"

_STRIPPED_MARKERS = (PARAM_OPEN, PARAM_CLOSE, WILDCARD)


def split_path(path: str) -> list[str]:
    """Split a request path on "/" and append the catch-all segment.

    The first element is the empty string before the leading separator and
    stands for the API root.
    """
    return path.split(PATH_SEPARATOR) + [PROXY_SEGMENT]


def to_logical_name(idx: int, parts: list[str]) -> str:
    """Concatenate parts[0..idx] and drop parameter and wildcard markers.

    Args:
        idx: Index of the last segment to include.
        parts: Segments as returned by split_path.

    Returns:
        The name shared by the Resource and Method keys of that prefix,
        e.g. "ordersid" for ["", "orders", "{id}"] at index 2.
    """
    name = "".join(parts[:idx + 1])
    for marker in _STRIPPED_MARKERS:
        name = name.replace(marker, "")
    return name


def to_path(idx: int, parts: list[str]) -> str:
    """Runtime path forwarded to the backend for the segment at idx."""
    if parts[idx] == PROXY_SEGMENT:
        return PATH_SEPARATOR.join(parts[:idx]) + PATH_SEPARATOR + PROXY_PARAMETER
    return PATH_SEPARATOR.join(parts[:idx + 1])


def resource_logical_name(idx: int, parts: list[str]) -> str:
    return RESOURCE_PREFIX + to_logical_name(idx, parts)


def method_logical_name(idx: int, parts: list[str]) -> str:
    return METHOD_PREFIX + to_logical_name(idx, parts)


def security_group_ingress_logical_name(index: int) -> str:
    return f"{SECURITY_GROUP_INGRESS_PREFIX}{index}"
