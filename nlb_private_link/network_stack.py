from typing import Dict

from aws_cdk import Stack, aws_ec2 as ec2
from constructs import Construct

from nlb_private_link.graph import ResourceGraph
from nlb_private_link.resources import NetworkSpace, SubnetVisibility

SUBNET_TYPES = {
    SubnetVisibility.public: ec2.SubnetType.PUBLIC,
    SubnetVisibility.private: ec2.SubnetType.PRIVATE_ISOLATED,
}


class NetworkStack(Stack):
    def __init__(self, scope: Construct, construct_id: str, graph: ResourceGraph, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # One VPC per network space, no peering between them
        self.vpcs: Dict[str, ec2.Vpc] = {
            network.name: self._create_vpc(network) for network in graph.of_kind(NetworkSpace)
        }

    def _create_vpc(self, network: NetworkSpace) -> ec2.Vpc:
        return ec2.Vpc(
            self, network.name,
            create_internet_gateway=network.internet_gateway,
            ip_addresses=ec2.IpAddresses.cidr(network.cidr),
            restrict_default_security_group=network.restrict_default_group,
            max_azs=network.max_azs,
            nat_gateways=0,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name=subnet.name,
                    subnet_type=SUBNET_TYPES[subnet.visibility],
                    cidr_mask=subnet.cidr_mask
                )
                for subnet in network.subnets
            ]
        )
