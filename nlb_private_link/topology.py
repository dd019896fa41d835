"""
Declaration of the private link topology as a resource graph.

Traffic path: InstanceA (consumer VPC) -> Endpoint -> EndpointService -> NLB
-> InstanceB (provider VPC). The two VPCs are never peered; the endpoint
service is the only way across, for a single port.
"""

import logging
from typing import List, Optional

from nlb_private_link.config import TopologyConfig
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
    Subnet,
    SubnetVisibility,
    TargetPool,
    TargetType,
)

log = logging.getLogger(__name__)

CONSUMER_VPC = "VpcA"
PROVIDER_VPC = "VpcB"
INSTANCE_ROLE = "Role"
CONSUMER_INSTANCE_SG = "InstanceSgA"
ENDPOINT_SG = "VpceSg"
BALANCER_SG = "NlbSg"
PROVIDER_INSTANCE_SG = "InstanceSgB"
CONSUMER_INSTANCE = "InstanceA"
PROVIDER_INSTANCE = "InstanceB"
LOAD_BALANCER = "NLB"
TARGET_POOL = "TargetGroup"
LISTENER = "Listener"
ENDPOINT_SERVICE = "EndpointService"
ENDPOINT = "Endpoint"


def add_networks(graph: ResourceGraph, config: TopologyConfig) -> None:
    for name, cidr in ((CONSUMER_VPC, config.consumer_cidr), (PROVIDER_VPC, config.provider_cidr)):
        graph.add(
            NetworkSpace(
                name=name,
                cidr=cidr,
                subnets=[Subnet("compute", config.subnet_mask, SubnetVisibility.public)],
                internet_gateway=True,
                max_azs=config.max_azs,
                restrict_default_group=False,
            )
        )


def add_identity(graph: ResourceGraph, config: TopologyConfig) -> None:
    graph.add(IdentityGrant(INSTANCE_ROLE, config.trusted_service, config.managed_policies))


def add_access_groups(graph: ResourceGraph, config: TopologyConfig) -> None:
    port = config.service_port
    # no inbound rules: InstanceA only talks to the endpoint
    graph.add(AccessControlGroup(CONSUMER_INSTANCE_SG, CONSUMER_VPC, allow_all_outbound=True))
    graph.add(
        AccessControlGroup(
            ENDPOINT_SG,
            CONSUMER_VPC,
            allow_all_outbound=False,
            rules=[AccessRule.allow_from(CONSUMER_INSTANCE_SG, port)],
        )
    )
    graph.add(
        AccessControlGroup(
            BALANCER_SG,
            PROVIDER_VPC,
            allow_all_outbound=False,
            rules=[
                AccessRule.allow_from(config.consumer_cidr, port),
                AccessRule.allow_to(PROVIDER_INSTANCE_SG, port),
            ],
        )
    )
    graph.add(
        AccessControlGroup(
            PROVIDER_INSTANCE_SG,
            PROVIDER_VPC,
            allow_all_outbound=True,
            rules=[AccessRule.allow_from(BALANCER_SG, port)],
        )
    )


def startup_commands(config: TopologyConfig) -> List[str]:
    return [
        "dnf update -y",
        "dnf install httpd -y",
        f'echo "{config.response_body}" > /var/www/html/index.html',
        "systemctl start httpd",
        "systemctl enable httpd",
    ]


def add_compute_nodes(graph: ResourceGraph, config: TopologyConfig) -> None:
    image = (config.image_region, config.image_id)
    graph.add(
        ComputeNode(
            name=CONSUMER_INSTANCE,
            network=CONSUMER_VPC,
            size_class=config.instance_type,
            image=image,
            identity=INSTANCE_ROLE,
            access_groups=[CONSUMER_INSTANCE_SG],
        )
    )
    graph.add(
        ComputeNode(
            name=PROVIDER_INSTANCE,
            network=PROVIDER_VPC,
            size_class=config.instance_type,
            image=image,
            identity=INSTANCE_ROLE,
            access_groups=[PROVIDER_INSTANCE_SG],
            startup_script=startup_commands(config),
        )
    )


def add_load_balancing(graph: ResourceGraph, config: TopologyConfig) -> None:
    graph.add(
        LoadBalancer(
            LOAD_BALANCER,
            PROVIDER_VPC,
            access_groups=[BALANCER_SG],
            enforce_private_link_rules=config.enforce_private_link_rules,
        )
    )
    graph.add(
        TargetPool(
            name=TARGET_POOL,
            network=PROVIDER_VPC,
            protocol=Protocol.tcp,
            port=config.service_port,
            target_type=TargetType.instance,
            health_check=HealthCheck(
                protocol=Protocol.http,
                path=config.health_check_path,
                healthy_http_codes=config.healthy_http_codes,
                enabled=True,
            ),
            targets=[PROVIDER_INSTANCE],
        )
    )
    graph.add(ForwardingRule(LISTENER, LOAD_BALANCER, config.service_port, default_target=TARGET_POOL))


def add_private_connectivity(graph: ResourceGraph, config: TopologyConfig) -> None:
    graph.add(
        EndpointService(
            ENDPOINT_SERVICE,
            load_balancers=[LOAD_BALANCER],
            acceptance_required=config.acceptance_required,
            contributor_insights=config.contributor_insights,
        )
    )
    graph.add(ConsumerEndpoint(ENDPOINT, CONSUMER_VPC, ENDPOINT_SERVICE, access_groups=[ENDPOINT_SG]))


def build_topology(config: Optional[TopologyConfig] = None) -> ResourceGraph:
    """
    Declare the complete topology and validate it.
    Every call returns a new graph; identical configs give identical graphs.
    """
    config = config or TopologyConfig()
    graph = ResourceGraph()
    add_networks(graph, config)
    add_identity(graph, config)
    add_access_groups(graph, config)
    add_compute_nodes(graph, config)
    add_load_balancing(graph, config)
    add_private_connectivity(graph, config)
    graph.validate()
    log.debug(f"Declared topology with {len(graph)} resources")
    return graph
