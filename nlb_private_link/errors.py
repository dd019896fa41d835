from typing import Sequence


class TopologyError(Exception):
    pass


class ConfigError(TopologyError):
    def __init__(self, field: str, message: str):
        super().__init__(f"Invalid configuration {field}: {message}")
        self.field = field


class DuplicateResourceError(TopologyError):
    def __init__(self, name: str):
        super().__init__(f"Resource {name} is declared more than once")
        self.name = name


class DanglingReferenceError(TopologyError):
    def __init__(self, descriptor: str, field: str, target: str):
        super().__init__(f"{descriptor}.{field} references undeclared resource {target}")
        self.descriptor = descriptor
        self.field = field
        self.target = target


class ReferenceTypeError(TopologyError):
    def __init__(self, descriptor: str, field: str, target: str, expected: str, actual: str):
        super().__init__(f"{descriptor}.{field} references {target} of type {actual}, expected {expected}")
        self.descriptor = descriptor
        self.field = field
        self.target = target


class OverlappingRangeError(TopologyError):
    def __init__(self, first: str, second: str, first_range: str, second_range: str):
        super().__init__(f"{first}.cidr {first_range} overlaps {second}.cidr {second_range}")
        self.first = first
        self.second = second


class SubnetRangeError(TopologyError):
    def __init__(self, descriptor: str, field: str, message: str):
        super().__init__(f"{descriptor}.{field}: {message}")
        self.descriptor = descriptor
        self.field = field


class PeerScopeError(TopologyError):
    def __init__(self, descriptor: str, field: str, peer: str):
        super().__init__(f"{descriptor}.{field} peer {peer} is outside the network of {descriptor}")
        self.descriptor = descriptor
        self.field = field
        self.peer = peer


class CyclicReferenceError(TopologyError):
    def __init__(self, cycle: Sequence[str]):
        super().__init__(f"Cyclic reference: {' -> '.join(cycle)}")
        self.cycle = list(cycle)


class UnknownResourceError(TopologyError, KeyError):
    def __init__(self, name: str):
        super().__init__(f"No resource with name {name}")
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


class ResourceKindError(TopologyError, TypeError):
    def __init__(self, name: str, expected: str, actual: str):
        super().__init__(f"{name} is a {actual}, not a {expected}")
        self.name = name


class MissingAccessGroupError(TopologyError):
    def __init__(self, descriptor: str, field: str):
        super().__init__(f"{descriptor}.{field} must name at least one access group")
        self.descriptor = descriptor
        self.field = field
