from typing import Dict

from aws_cdk import Stack, CfnOutput, aws_ec2 as ec2, aws_iam as iam
from constructs import Construct

from nlb_private_link.graph import ResourceGraph
from nlb_private_link.resources import AccessControlGroup, AccessRule, ComputeNode, Direction, IdentityGrant


class ComputeStack(Stack):
    def __init__(self, scope: Construct, construct_id: str, graph: ResourceGraph,
                 vpcs: Dict[str, ec2.IVpc], **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.vpcs = vpcs

        # Instance roles
        self.roles: Dict[str, iam.Role] = {
            grant.name: self._create_role(grant) for grant in graph.of_kind(IdentityGrant)
        }

        # Security groups first, rules may point at groups declared later
        groups = graph.of_kind(AccessControlGroup)
        self.security_groups: Dict[str, ec2.SecurityGroup] = {
            group.name: self._create_security_group(group) for group in groups
        }
        for group in groups:
            for rule in group.rules:
                self._add_rule(self.security_groups[group.name], rule)

        # EC2 instances
        self.instances: Dict[str, ec2.Instance] = {
            node.name: self._create_instance(node) for node in graph.of_kind(ComputeNode)
        }

        for name, instance in self.instances.items():
            CfnOutput(self, f"{name}Id", value=instance.instance_id)

    def _create_role(self, grant: IdentityGrant) -> iam.Role:
        return iam.Role(
            self, grant.name,
            assumed_by=iam.ServicePrincipal(grant.trusted_service),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(policy)
                for policy in grant.managed_policies
            ]
        )

    def _create_security_group(self, group: AccessControlGroup) -> ec2.SecurityGroup:
        return ec2.SecurityGroup(
            self, group.name,
            vpc=self.vpcs[group.network],
            allow_all_outbound=group.allow_all_outbound
        )

    def _add_rule(self, sg: ec2.SecurityGroup, rule: AccessRule) -> None:
        peer = ec2.Peer.ipv4(rule.peer) if rule.peer_is_range else self.security_groups[rule.peer]
        port = ec2.Port.tcp(rule.port)
        if rule.direction == Direction.ingress:
            sg.add_ingress_rule(peer, port)
        else:
            sg.add_egress_rule(peer, port)

    def _create_instance(self, node: ComputeNode) -> ec2.Instance:
        user_data = None
        if node.startup_script:
            # Runs once at first boot, failures only show up in the instance console
            user_data = ec2.UserData.for_linux(shebang=node.shebang)
            user_data.add_commands(*node.startup_script)

        region, image_id = node.image
        first_group, *other_groups = [self.security_groups[name] for name in node.access_groups]
        instance = ec2.Instance(
            self, node.name,
            instance_type=ec2.InstanceType(node.size_class),
            machine_image=ec2.GenericLinuxImage({region: image_id}),
            vpc=self.vpcs[node.network],
            role=self.roles[node.identity],
            security_group=first_group,
            user_data=user_data
        )
        for sg in other_groups:
            instance.add_security_group(sg)
        return instance
