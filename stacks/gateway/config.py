"""Input configuration for the API Gateway ingress stack.

Network facts (VPC, subnets, security groups, worker instances) arrive
already resolved; this module only shapes and checks them:
- Network: the resolved cluster network
- TemplateConfig: paths, backend port, stage and authorization settings
"""
import ipaddress
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Network:
    vpc_id: str
    cidr_block: str
    subnet_ids: list[str] = field(default_factory=list)
    security_group_ids: list[str] = field(default_factory=list)
    instance_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class TemplateConfig:
    """Everything the ingress stack needs to synthesize its template.

    Attributes:
        network: Resolved VPC facts for the backend load balancer.
        paths: Ordered request paths, optionally containing {param} markers.
        node_port: Port the worker instances expose the backend on.
        stage_name: Stage the REST and WebSocket deployments are published to.
        arns: Client identity ARNs, echoed unchanged in the ClientARNS output.
        cognito_user_pool_arns: User pools trusted by the Cognito authorizer.
        custom_domain_name: Optional edge domain name.
        certificate_arn: Certificate for the custom domain.
        enable_websocket: Whether to build the WebSocket front door.
    """

    network: Network
    paths: list[str]
    node_port: int
    stage_name: str
    arns: list[str] = field(default_factory=list)
    cognito_user_pool_arns: list[str] = field(default_factory=list)
    custom_domain_name: str = ""
    certificate_arn: str = ""
    enable_websocket: bool = True

    @property
    def has_custom_domain(self) -> bool:
        return bool(self.custom_domain_name and self.certificate_arn)

    def validate(self) -> None:
        """Raise ValueError for input the template cannot be built from."""
        if not self.network.vpc_id:
            raise ValueError("Network is missing a VPC id")
        if not self.network.subnet_ids:
            raise ValueError("Network has no subnet ids")
        if not self.network.security_group_ids:
            raise ValueError("Network has no security group ids")

        try:
            ipaddress.ip_network(self.network.cidr_block)
        except ValueError as e:
            raise ValueError(f"Invalid VPC CIDR block: {self.network.cidr_block}") from e

        if not self.paths:
            raise ValueError("Ingress rule has no paths")
        if not 0 < self.node_port < 65536:
            raise ValueError(f"Invalid node port: {self.node_port}")
        if not self.stage_name:
            raise ValueError("Stage name is required")

    @classmethod
    def from_context(cls, context: dict) -> "TemplateConfig":
        """Build a config from a CDK context dictionary.

        Args:
            context: Per-environment context as read with try_get_context.

        Returns:
            An unvalidated TemplateConfig.

        Raises:
            ValueError: If a required key is absent.
        """
        for key in ("vpc_id", "vpc_cidr", "paths", "node_port"):
            if key not in context:
                raise ValueError(f"No '{key}' found in context")

        network = Network(
            vpc_id=context["vpc_id"],
            cidr_block=context["vpc_cidr"],
            subnet_ids=list(context.get("subnet_ids", [])),
            security_group_ids=list(context.get("security_group_ids", [])),
            instance_ids=list(context.get("instance_ids", [])),
        )
        return cls(
            network=network,
            paths=list(context["paths"]),
            node_port=int(context["node_port"]),
            stage_name=context.get("stage_name", "prod"),
            arns=list(context.get("client_arns", [])),
            cognito_user_pool_arns=list(context.get("cognito_user_pool_arns", [])),
            custom_domain_name=context.get("custom_domain_name", ""),
            certificate_arn=context.get("certificate_arn", ""),
            enable_websocket=_as_bool(context.get("enable_websocket", True)),
        )


def _as_bool(value) -> bool:
    """Context passed with -c on the command line arrives as a string."""
    if isinstance(value, str):
        return value.strip().lower() not in ("false", "0", "no", "off", "")
    return bool(value)
