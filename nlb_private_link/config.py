"""
Configuration for the private link topology.

Every literal of the declared infrastructure (address ranges, image ids, ports)
is an attribute of `TopologyConfig` with a documented default. Values are
validated when the config is created, so a bad override fails before any
resource is declared. Overrides come from CDK context, e.g.
``cdk synth -c consumer_cidr=10.1.0.0/24``.
"""

import ipaddress
import logging
import re
from typing import Any, Callable, Dict, Optional, Tuple

from attrs import field, fields, frozen
from constructs import Node

from nlb_private_link.errors import ConfigError

log = logging.getLogger(__name__)

MAX_SUBNET_MASK = 28


def _cidr(instance: Any, attribute: Any, value: str) -> None:
    try:
        ipaddress.IPv4Network(value)
    except ValueError as e:
        raise ConfigError(attribute.name, f"{value!r} is not an IPv4 network ({e})") from e


def _positive(instance: Any, attribute: Any, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise ConfigError(attribute.name, f"{value!r} must be a positive integer")


def _port(instance: Any, attribute: Any, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 < value < 65536:
        raise ConfigError(attribute.name, f"{value!r} is not a valid port")


def _image_id(instance: Any, attribute: Any, value: str) -> None:
    if not re.fullmatch(r"ami-[0-9a-f]{8,17}", value or ""):
        raise ConfigError(attribute.name, f"{value!r} is not a machine image id")


def _non_empty(instance: Any, attribute: Any, value: Any) -> None:
    if not value:
        raise ConfigError(attribute.name, "must not be empty")


def _echo_text(instance: Any, attribute: Any, value: str) -> None:
    _non_empty(instance, attribute, value)
    # the text ends up inside a double quoted echo of the boot script
    if any(c in value for c in '"$`\\\n\r'):
        raise ConfigError(attribute.name, f"{value!r} must not contain quotes, $, backticks, backslashes or newlines")


def _path(instance: Any, attribute: Any, value: str) -> None:
    if not isinstance(value, str) or not value.startswith("/"):
        raise ConfigError(attribute.name, f"{value!r} must start with /")


def _as_tuple(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return tuple(v.strip() for v in value.split(",") if v.strip())
    return tuple(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@frozen
class TopologyConfig:
    consumer_cidr: str = field(default="10.0.0.0/24", validator=_cidr)
    provider_cidr: str = field(default="192.168.0.0/24", validator=_cidr)
    subnet_mask: int = field(default=MAX_SUBNET_MASK, validator=_positive)
    max_azs: int = field(default=1, validator=_positive)
    instance_type: str = field(default="t2.small", validator=_non_empty)
    image_region: str = field(default="ap-northeast-1", validator=_non_empty)
    image_id: str = field(default="ami-02a405b3302affc24", validator=_image_id)
    service_port: int = field(default=80, validator=_port)
    response_body: str = field(default="hello private link", validator=_echo_text)
    trusted_service: str = field(default="ec2.amazonaws.com", validator=_non_empty)
    managed_policies: Tuple[str, ...] = field(
        default=("AmazonSSMManagedInstanceCore",), converter=_as_tuple, validator=_non_empty
    )
    acceptance_required: bool = field(default=False, converter=_as_bool)
    contributor_insights: bool = field(default=False, converter=_as_bool)
    # security groups of the balancer also apply to traffic arriving through the endpoint
    enforce_private_link_rules: bool = field(default=True, converter=_as_bool)
    health_check_path: str = field(default="/", validator=_path)
    healthy_http_codes: str = field(default="200", validator=_non_empty)

    def __attrs_post_init__(self) -> None:
        for name in ("consumer_cidr", "provider_cidr"):
            prefix = ipaddress.IPv4Network(getattr(self, name)).prefixlen
            if not prefix <= self.subnet_mask <= MAX_SUBNET_MASK:
                raise ConfigError(
                    "subnet_mask",
                    f"/{self.subnet_mask} does not fit into {name} /{prefix} (allowed /{prefix} to /{MAX_SUBNET_MASK})",
                )

    @staticmethod
    def from_context(node: Node) -> "TopologyConfig":
        """Read overrides from CDK context, everything not set keeps its default."""
        casts: Dict[str, Callable[[Any], Any]] = {"subnet_mask": int, "max_azs": int, "service_port": int}
        overrides: Dict[str, Any] = {}
        for attribute in fields(TopologyConfig):
            value = node.try_get_context(attribute.name)
            if value is None:
                continue
            cast = casts.get(attribute.name)
            if cast is not None:
                try:
                    value = cast(value)
                except (TypeError, ValueError) as e:
                    raise ConfigError(attribute.name, f"{value!r} is not a number") from e
            overrides[attribute.name] = value
        if overrides:
            log.info(f"Topology overrides from context: {sorted(overrides)}")
        return TopologyConfig(**overrides)


@frozen
class GlobalOptions:
    """Deployment context handed to CDK as is."""

    account: Optional[str] = None
    region: Optional[str] = None
    tags: Dict[str, str] = field(factory=dict)

    @staticmethod
    def from_context(node: Node) -> "GlobalOptions":
        tags = node.try_get_context("tags") or {}
        if not isinstance(tags, dict):
            raise ConfigError("tags", f"{tags!r} must be a mapping of tag names to values")
        return GlobalOptions(
            account=node.try_get_context("account"),
            region=node.try_get_context("region"),
            tags={str(k): str(v) for k, v in tags.items()},
        )
