from typing import Dict

from aws_cdk import (
    Stack, CfnOutput, Fn,
    aws_ec2 as ec2,
    aws_elasticloadbalancingv2 as elbv2,
    aws_elasticloadbalancingv2_targets as targets
)
from constructs import Construct

from nlb_private_link.graph import ResourceGraph
from nlb_private_link.resources import (
    ConsumerEndpoint, EndpointService, ForwardingRule, LoadBalancer, Protocol, TargetPool, TargetType
)

PROTOCOLS = {
    Protocol.tcp: elbv2.Protocol.TCP,
    Protocol.http: elbv2.Protocol.HTTP,
}

TARGET_TYPES = {
    TargetType.instance: elbv2.TargetType.INSTANCE,
    TargetType.ip: elbv2.TargetType.IP,
}


class PrivateLinkStack(Stack):
    def __init__(self, scope: Construct, construct_id: str, graph: ResourceGraph,
                 vpcs: Dict[str, ec2.IVpc], security_groups: Dict[str, ec2.ISecurityGroup],
                 instances: Dict[str, ec2.Instance], **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.vpcs = vpcs
        self.security_groups = security_groups
        self.instances = instances

        # Network Load Balancers
        self.load_balancers: Dict[str, elbv2.NetworkLoadBalancer] = {
            lb.name: self._create_load_balancer(lb) for lb in graph.of_kind(LoadBalancer)
        }

        # Target groups and listeners
        self.target_groups: Dict[str, elbv2.NetworkTargetGroup] = {
            pool.name: self._create_target_group(pool) for pool in graph.of_kind(TargetPool)
        }
        self.listener_ports: Dict[str, int] = {}
        for rule in graph.of_kind(ForwardingRule):
            self._create_listener(rule)
            self.listener_ports.setdefault(rule.load_balancer, rule.port)

        # Endpoint services in front of the balancers
        self.endpoint_services: Dict[str, ec2.VpcEndpointService] = {
            svc.name: self._create_endpoint_service(svc) for svc in graph.of_kind(EndpointService)
        }

        # Interface endpoints on the consumer side
        self.endpoints: Dict[str, ec2.InterfaceVpcEndpoint] = {
            ep.name: self._create_endpoint(ep, graph.get(ep.service, EndpointService))
            for ep in graph.of_kind(ConsumerEndpoint)
        }

        # Outputs
        for name, nlb in self.load_balancers.items():
            CfnOutput(self, f"{name}DnsName", value=nlb.load_balancer_dns_name)
        for name, svc in self.endpoint_services.items():
            CfnOutput(self, f"{name}Name", value=svc.vpc_endpoint_service_name)
        for name, ep in self.endpoints.items():
            # entries look like "<hosted zone id>:<dns name>"
            first_entry = Fn.select(0, ep.vpc_endpoint_dns_entries)
            CfnOutput(self, f"{name}DnsName", value=Fn.select(1, Fn.split(":", first_entry)))

    def _create_load_balancer(self, lb: LoadBalancer) -> elbv2.NetworkLoadBalancer:
        # When enforced, the security groups also filter traffic arriving through PrivateLink
        return elbv2.NetworkLoadBalancer(
            self, lb.name,
            vpc=self.vpcs[lb.network],
            security_groups=[self.security_groups[name] for name in lb.access_groups],
            enforce_security_group_inbound_rules_on_private_link_traffic=lb.enforce_private_link_rules
        )

    def _create_target_group(self, pool: TargetPool) -> elbv2.NetworkTargetGroup:
        check = pool.health_check
        return elbv2.NetworkTargetGroup(
            self, pool.name,
            port=pool.port,
            protocol=PROTOCOLS[pool.protocol],
            target_type=TARGET_TYPES[pool.target_type],
            vpc=self.vpcs[pool.network],
            health_check=elbv2.HealthCheck(
                enabled=check.enabled,
                healthy_http_codes=check.healthy_http_codes,
                path=check.path,
                protocol=PROTOCOLS[check.protocol]
            ),
            targets=[
                targets.InstanceIdTarget(self.instances[name].instance_id)
                for name in pool.targets
            ]
        )

    def _create_listener(self, rule: ForwardingRule) -> elbv2.NetworkListener:
        return elbv2.NetworkListener(
            self, rule.name,
            load_balancer=self.load_balancers[rule.load_balancer],
            port=rule.port,
            default_action=elbv2.NetworkListenerAction.forward([self.target_groups[rule.default_target]])
        )

    def _create_endpoint_service(self, svc: EndpointService) -> ec2.VpcEndpointService:
        return ec2.VpcEndpointService(
            self, svc.name,
            vpc_endpoint_service_load_balancers=[self.load_balancers[name] for name in svc.load_balancers],
            acceptance_required=svc.acceptance_required,
            contributor_insights=svc.contributor_insights
        )

    def _create_endpoint(self, ep: ConsumerEndpoint, svc: EndpointService) -> ec2.InterfaceVpcEndpoint:
        ports = [self.listener_ports[name] for name in svc.load_balancers if name in self.listener_ports]
        # open=False keeps the endpoint group limited to its declared rules
        return ec2.InterfaceVpcEndpoint(
            self, ep.name,
            vpc=self.vpcs[ep.network],
            service=ec2.InterfaceVpcEndpointService(
                self.endpoint_services[svc.name].vpc_endpoint_service_name, ports[0] if ports else None
            ),
            security_groups=[self.security_groups[name] for name in ep.access_groups],
            open=False
        )

