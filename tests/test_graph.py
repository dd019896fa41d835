from typing import Iterator

from attrs import frozen
from pytest import raises

from nlb_private_link.errors import (
    CyclicReferenceError,
    DanglingReferenceError,
    DuplicateResourceError,
    MissingAccessGroupError,
    OverlappingRangeError,
    PeerScopeError,
    ReferenceTypeError,
    ResourceKindError,
    SubnetRangeError,
    TopologyError,
    UnknownResourceError,
)
from nlb_private_link.graph import ResourceGraph
from nlb_private_link.resources import (
    AccessControlGroup,
    AccessRule,
    ComputeNode,
    ConsumerEndpoint,
    EndpointService,
    ForwardingRule,
    HealthCheck,
    IdentityGrant,
    LoadBalancer,
    NetworkSpace,
    Protocol,
    Reference,
    Resource,
    Subnet,
    TargetPool,
    TargetType,
)


@frozen
class Link(Resource):
    other: str

    def references(self) -> Iterator[Reference]:
        yield Reference("other", self.other, Link)


def network(name: str, cidr: str, mask: int = 28) -> NetworkSpace:
    return NetworkSpace(name, cidr, [Subnet("compute", mask)])


def test_duplicate_resource() -> None:
    graph = ResourceGraph()
    graph.add(network("a", "10.0.0.0/24"))
    with raises(DuplicateResourceError):
        graph.add(network("a", "10.1.0.0/24"))


def test_overlapping_networks() -> None:
    graph = ResourceGraph()
    graph.add(network("a", "10.0.0.0/16"))
    graph.add(network("b", "10.0.1.0/24"))
    with raises(OverlappingRangeError) as err:
        graph.validate()
    assert err.value.first == "a"
    assert err.value.second == "b"


def test_disjoint_networks() -> None:
    graph = ResourceGraph()
    graph.add(network("a", "10.0.0.0/24"))
    graph.add(network("b", "192.168.0.0/24"))
    assert graph.validate() is graph


def test_subnet_larger_than_network() -> None:
    graph = ResourceGraph()
    graph.add(network("a", "10.0.0.0/24", mask=20))
    with raises(SubnetRangeError) as err:
        graph.validate()
    assert err.value.descriptor == "a"


def test_forwarding_rule_with_missing_target_pool() -> None:
    graph = ResourceGraph()
    graph.add(network("vpc", "10.0.0.0/24"))
    graph.add(LoadBalancer("nlb", "vpc", access_groups=[]))
    graph.add(ForwardingRule("listener", "nlb", 80, default_target="missing"))
    with raises(DanglingReferenceError) as err:
        graph.validate()
    assert err.value.descriptor == "listener"
    assert err.value.field == "default_target"
    assert err.value.target == "missing"
    assert "listener.default_target" in str(err.value)


def test_dangling_group_peer() -> None:
    graph = ResourceGraph()
    graph.add(network("vpc", "10.0.0.0/24"))
    graph.add(AccessControlGroup("sg", "vpc", False, rules=[AccessRule.allow_from("nope", 80)]))
    with raises(DanglingReferenceError) as err:
        graph.validate()
    assert err.value.field == "rules[0].peer"


def test_reference_of_wrong_type() -> None:
    graph = ResourceGraph()
    graph.add(network("vpc", "10.0.0.0/24"))
    graph.add(LoadBalancer("nlb", "vpc", access_groups=["vpc"]))
    with raises(ReferenceTypeError):
        graph.validate()


def test_peer_outside_network() -> None:
    graph = ResourceGraph()
    graph.add(network("a", "10.0.0.0/24"))
    graph.add(network("b", "192.168.0.0/24"))
    graph.add(AccessControlGroup("sg_a", "a", True))
    graph.add(AccessControlGroup("sg_b", "b", False, rules=[AccessRule.allow_from("sg_a", 80)]))
    with raises(PeerScopeError) as err:
        graph.validate()
    assert err.value.descriptor == "sg_b"


def test_explicit_range_peer_may_be_external() -> None:
    graph = ResourceGraph()
    graph.add(network("b", "192.168.0.0/24"))
    graph.add(AccessControlGroup("sg_b", "b", False, rules=[AccessRule.allow_from("10.0.0.0/24", 80)]))
    graph.validate()


def test_groups_allowing_each_other_are_acyclic() -> None:
    graph = ResourceGraph()
    graph.add(network("vpc", "10.0.0.0/24"))
    graph.add(AccessControlGroup("lb", "vpc", False, rules=[AccessRule.allow_to("app", 80)]))
    graph.add(AccessControlGroup("app", "vpc", True, rules=[AccessRule.allow_from("lb", 80)]))
    order = graph.apply_order()
    assert order == ["vpc", "lb", "app"]


def test_cycle() -> None:
    graph = ResourceGraph()
    graph.add(Link("a", "b"))
    graph.add(Link("b", "c"))
    graph.add(Link("c", "a"))
    with raises(CyclicReferenceError) as err:
        graph.validate()
    assert set(err.value.cycle) == {"a", "b", "c"}
    assert err.value.cycle[0] == err.value.cycle[-1]


def test_get_with_kind() -> None:
    graph = ResourceGraph()
    graph.add(network("vpc", "10.0.0.0/24"))
    assert graph.get("vpc", NetworkSpace).cidr == "10.0.0.0/24"
    assert "vpc" in graph
    with raises(ResourceKindError):
        graph.get("vpc", LoadBalancer)
    with raises(UnknownResourceError) as err:
        graph.get("other")
    assert err.value.name == "other"
    assert isinstance(err.value, TopologyError)


def test_attachment_of_unknown_endpoint() -> None:
    with raises(UnknownResourceError):
        ResourceGraph().endpoint_attachment("missing")


def two_networks() -> ResourceGraph:
    graph = ResourceGraph()
    graph.add(network("a", "10.0.0.0/24"))
    graph.add(network("b", "192.168.0.0/24"))
    graph.add(IdentityGrant("role", "ec2.amazonaws.com", ["AmazonSSMManagedInstanceCore"]))
    graph.add(AccessControlGroup("sg_a", "a", True))
    graph.add(AccessControlGroup("sg_b", "b", True))
    return graph


def node(name: str, net: str, groups: list) -> ComputeNode:
    return ComputeNode(name, net, "t2.small", ("ap-northeast-1", "ami-02a405b3302affc24"), "role", groups)


def test_node_with_group_of_other_network() -> None:
    graph = two_networks()
    graph.add(node("vm", "a", ["sg_b"]))
    with raises(PeerScopeError) as err:
        graph.validate()
    assert err.value.descriptor == "vm"
    assert err.value.field == "access_groups[0]"


def test_node_without_access_group() -> None:
    graph = two_networks()
    graph.add(node("vm", "a", []))
    with raises(MissingAccessGroupError) as err:
        graph.validate()
    assert err.value.descriptor == "vm"
    assert err.value.field == "access_groups"


def test_balancer_and_endpoint_with_group_of_other_network() -> None:
    graph = two_networks()
    graph.add(LoadBalancer("nlb", "b", access_groups=["sg_a"]))
    with raises(PeerScopeError) as err:
        graph.validate()
    assert err.value.descriptor == "nlb"

    graph = two_networks()
    graph.add(LoadBalancer("nlb", "b", access_groups=["sg_b"]))
    graph.add(EndpointService("svc", ["nlb"]))
    graph.add(ConsumerEndpoint("ep", "a", "svc", access_groups=["sg_b"]))
    with raises(PeerScopeError) as err:
        graph.validate()
    assert err.value.descriptor == "ep"
    assert err.value.field == "access_groups[0]"


def test_target_pool_with_target_of_other_network() -> None:
    graph = two_networks()
    graph.add(node("vm", "a", ["sg_a"]))
    graph.add(TargetPool("pool", "b", Protocol.tcp, 80, TargetType.instance, HealthCheck(), targets=["vm"]))
    with raises(PeerScopeError) as err:
        graph.validate()
    assert err.value.descriptor == "pool"
    assert err.value.field == "targets[0]"
