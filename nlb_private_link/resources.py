"""
Resource descriptors of the private link topology.

Descriptors are immutable records. A descriptor never holds another descriptor,
it names it: every reference is a plain resource name that `ResourceGraph`
resolves in a lookup pass. `references()` lists these names together with the
field they come from and the type they have to resolve to.
"""

import ipaddress
from enum import Enum
from typing import Iterator, Tuple, Type

from attrs import field, frozen


class Direction(str, Enum):
    ingress = "ingress"
    egress = "egress"


class SubnetVisibility(str, Enum):
    public = "public"
    private = "private"


class Protocol(str, Enum):
    tcp = "tcp"
    http = "http"


class TargetType(str, Enum):
    instance = "instance"
    ip = "ip"


@frozen
class Reference:
    field: str
    target: str
    kind: Type["Resource"]


@frozen
class Resource:
    name: str

    @property
    def kind(self) -> str:
        return type(self).__name__

    def references(self) -> Iterator[Reference]:
        return iter(())


@frozen
class Subnet:
    name: str
    cidr_mask: int
    visibility: SubnetVisibility = SubnetVisibility.public


@frozen
class NetworkSpace(Resource):
    cidr: str
    subnets: Tuple[Subnet, ...] = field(converter=tuple)
    internet_gateway: bool = True
    max_azs: int = 1
    restrict_default_group: bool = False

    @property
    def network(self) -> ipaddress.IPv4Network:
        return ipaddress.IPv4Network(self.cidr)


@frozen
class AccessRule:
    """One allow rule. The peer is either a group name or an explicit address range."""

    direction: Direction
    peer: str
    port: int
    protocol: Protocol = Protocol.tcp

    @property
    def peer_is_range(self) -> bool:
        try:
            ipaddress.IPv4Network(self.peer)
            return True
        except ValueError:
            return False

    @staticmethod
    def allow_from(peer: str, port: int) -> "AccessRule":
        return AccessRule(Direction.ingress, peer, port)

    @staticmethod
    def allow_to(peer: str, port: int) -> "AccessRule":
        return AccessRule(Direction.egress, peer, port)


@frozen
class AccessControlGroup(Resource):
    network: str
    allow_all_outbound: bool
    rules: Tuple[AccessRule, ...] = field(converter=tuple, default=())

    @property
    def rules_key(self) -> str:
        return f"{self.name}/rules"

    def inbound(self) -> Tuple[AccessRule, ...]:
        return tuple(r for r in self.rules if r.direction == Direction.ingress)

    def outbound(self) -> Tuple[AccessRule, ...]:
        return tuple(r for r in self.rules if r.direction == Direction.egress)

    def references(self) -> Iterator[Reference]:
        yield Reference("network", self.network, NetworkSpace)

    def rule_references(self) -> Iterator[Reference]:
        for idx, rule in enumerate(self.rules):
            if not rule.peer_is_range:
                yield Reference(f"rules[{idx}].peer", rule.peer, AccessControlGroup)


@frozen
class IdentityGrant(Resource):
    trusted_service: str
    managed_policies: Tuple[str, ...] = field(converter=tuple)


@frozen
class ComputeNode(Resource):
    network: str
    size_class: str
    image: Tuple[str, str]  # (region, image id)
    identity: str
    access_groups: Tuple[str, ...] = field(converter=tuple)
    # executed once at first boot, the outcome is not reported back
    startup_script: Tuple[str, ...] = field(converter=tuple, default=())
    shebang: str = "#!/bin/bash"

    def references(self) -> Iterator[Reference]:
        yield Reference("network", self.network, NetworkSpace)
        yield Reference("identity", self.identity, IdentityGrant)
        for idx, group in enumerate(self.access_groups):
            yield Reference(f"access_groups[{idx}]", group, AccessControlGroup)


@frozen
class LoadBalancer(Resource):
    network: str
    access_groups: Tuple[str, ...] = field(converter=tuple)
    enforce_private_link_rules: bool = True

    def references(self) -> Iterator[Reference]:
        yield Reference("network", self.network, NetworkSpace)
        for idx, group in enumerate(self.access_groups):
            yield Reference(f"access_groups[{idx}]", group, AccessControlGroup)


@frozen
class HealthCheck:
    protocol: Protocol = Protocol.http
    path: str = "/"
    healthy_http_codes: str = "200"
    enabled: bool = True


@frozen
class TargetPool(Resource):
    network: str
    protocol: Protocol
    port: int
    target_type: TargetType
    health_check: HealthCheck
    targets: Tuple[str, ...] = field(converter=tuple)

    def references(self) -> Iterator[Reference]:
        yield Reference("network", self.network, NetworkSpace)
        for idx, target in enumerate(self.targets):
            yield Reference(f"targets[{idx}]", target, ComputeNode)


@frozen
class ForwardingRule(Resource):
    load_balancer: str
    port: int
    # every request goes to this pool, there is no path or header based routing
    default_target: str

    def references(self) -> Iterator[Reference]:
        yield Reference("load_balancer", self.load_balancer, LoadBalancer)
        yield Reference("default_target", self.default_target, TargetPool)


@frozen
class EndpointService(Resource):
    load_balancers: Tuple[str, ...] = field(converter=tuple)
    acceptance_required: bool = False
    contributor_insights: bool = False

    def references(self) -> Iterator[Reference]:
        for idx, lb in enumerate(self.load_balancers):
            yield Reference(f"load_balancers[{idx}]", lb, LoadBalancer)


@frozen
class ConsumerEndpoint(Resource):
    network: str
    service: str
    access_groups: Tuple[str, ...] = field(converter=tuple)

    def references(self) -> Iterator[Reference]:
        yield Reference("network", self.network, NetworkSpace)
        yield Reference("service", self.service, EndpointService)
        for idx, group in enumerate(self.access_groups):
            yield Reference(f"access_groups[{idx}]", group, AccessControlGroup)


@frozen
class EndpointAttachment:
    """The attach operation of a consumer endpoint to its endpoint service."""

    endpoint: str
    service: str
    requires_approval: bool
    load_balancers: Tuple[str, ...]
