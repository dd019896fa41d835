from __future__ import annotations

import json
import logging
from enum import Enum
from itertools import combinations
from typing import Any, Dict, Iterator, List, Optional, Type, TypeVar

import networkx
from attrs import asdict
from networkx.algorithms.dag import is_directed_acyclic_graph

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
    UnknownResourceError,
)
from nlb_private_link.resources import (
    AccessControlGroup,
    ComputeNode,
    ConsumerEndpoint,
    EndpointAttachment,
    EndpointService,
    NetworkSpace,
    Reference,
    Resource,
)

log = logging.getLogger(__name__)

R = TypeVar("R", bound=Resource)
Json = Dict[str, Any]


def _serialize(inst: Any, attribute: Any, value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class ResourceGraph:
    """
    Named resource descriptors and the references between them.

    Descriptors are kept in declaration order. Nothing is resolved on `add`:
    `validate` runs the lookup pass over all references and checks the
    authoring invariants, so a graph can be assembled in any order and is
    checked as a whole before it is handed to CDK.
    """

    def __init__(self) -> None:
        self._resources: Dict[str, Resource] = {}

    def add(self, resource: R) -> R:
        if resource.name in self._resources:
            raise DuplicateResourceError(resource.name)
        self._resources[resource.name] = resource
        log.debug(f"Declared {resource.kind} {resource.name}")
        return resource

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._resources.values())

    def __len__(self) -> int:
        return len(self._resources)

    def __contains__(self, name: object) -> bool:
        return name in self._resources

    def get(self, name: str, kind: Optional[Type[R]] = None) -> R:
        resource = self._resources.get(name)
        if resource is None:
            raise UnknownResourceError(name)
        if kind is not None and not isinstance(resource, kind):
            raise ResourceKindError(name, kind.__name__, resource.kind)
        return resource  # type: ignore

    def of_kind(self, kind: Type[R]) -> List[R]:
        return [r for r in self._resources.values() if isinstance(r, kind)]

    def _resolve(self, owner: Resource, ref: Reference) -> Resource:
        target = self._resources.get(ref.target)
        if target is None:
            raise DanglingReferenceError(owner.name, ref.field, ref.target)
        if not isinstance(target, ref.kind):
            raise ReferenceTypeError(owner.name, ref.field, ref.target, ref.kind.__name__, target.kind)
        return target

    def dependency_graph(self) -> networkx.DiGraph:
        """
        Edges point from a resource to the resources depending on it.
        The rules of an access group are a node of their own (`<group>/rules`),
        so two groups allowing traffic to each other do not form a cycle.
        """
        graph = networkx.DiGraph()
        for resource in self._resources.values():
            graph.add_node(resource.name)
            for ref in resource.references():
                self._resolve(resource, ref)
                graph.add_edge(ref.target, resource.name)
            if isinstance(resource, AccessControlGroup) and resource.rules:
                graph.add_edge(resource.name, resource.rules_key)
                for ref in resource.rule_references():
                    self._resolve(resource, ref)
                    graph.add_edge(ref.target, resource.rules_key)
        return graph

    def validate(self) -> ResourceGraph:
        log.debug(f"Validating resource graph with {len(self)} resources")
        graph = self.dependency_graph()
        self._check_ranges()
        self._check_peers()
        self._check_attachments()
        if not is_directed_acyclic_graph(graph):
            cycle = networkx.algorithms.cycles.find_cycle(graph)
            raise CyclicReferenceError([edge[0] for edge in cycle] + [cycle[-1][1]])
        return self

    def _check_ranges(self) -> None:
        networks = self.of_kind(NetworkSpace)
        for network in networks:
            for subnet in network.subnets:
                if not network.network.prefixlen <= subnet.cidr_mask <= 32:
                    raise SubnetRangeError(
                        network.name, f"subnets.{subnet.name}", f"/{subnet.cidr_mask} does not fit into {network.cidr}"
                    )
        for first, second in combinations(networks, 2):
            if first.network.overlaps(second.network):
                raise OverlappingRangeError(first.name, second.name, first.cidr, second.cidr)

    def _check_peers(self) -> None:
        for group in self.of_kind(AccessControlGroup):
            for idx, rule in enumerate(group.rules):
                if rule.peer_is_range:
                    continue
                peer = self._resolve(group, Reference(f"rules[{idx}].peer", rule.peer, AccessControlGroup))
                if peer.network != group.network:  # type: ignore
                    raise PeerScopeError(group.name, f"rules[{idx}].peer", rule.peer)

    def _check_attachments(self) -> None:
        """Access groups and targets have to live in the network of the resource using them."""
        for resource in self._resources.values():
            if isinstance(resource, ComputeNode) and not resource.access_groups:
                raise MissingAccessGroupError(resource.name, "access_groups")
            if isinstance(resource, NetworkSpace) or not hasattr(resource, "network"):
                continue
            for ref in resource.references():
                if ref.kind not in (AccessControlGroup, ComputeNode):
                    continue
                target = self._resolve(resource, ref)
                if target.network != resource.network:  # type: ignore
                    raise PeerScopeError(resource.name, ref.field, ref.target)

    def apply_order(self) -> List[str]:
        """Resource names in an order where every resource follows everything it references."""
        self.validate()
        position = {name: idx for idx, name in enumerate(self._resources)}
        graph = self.dependency_graph()
        ordered = networkx.lexicographical_topological_sort(
            graph, key=lambda n: (position.get(n.split("/")[0], len(position)), n)
        )
        return [name for name in ordered if name in self._resources]

    def endpoint_attachment(self, name: str) -> EndpointAttachment:
        endpoint = self.get(name, ConsumerEndpoint)
        service = self._resolve(endpoint, Reference("service", endpoint.service, EndpointService))
        return EndpointAttachment(
            endpoint=endpoint.name,
            service=service.name,
            requires_approval=service.acceptance_required,  # type: ignore
            load_balancers=service.load_balancers,  # type: ignore
        )

    def to_dict(self) -> Json:
        return {
            name: {"kind": resource.kind, **asdict(resource, value_serializer=_serialize)}
            for name, resource in sorted(self._resources.items())
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, indent=2)
