#!/usr/bin/env python3
import logging
import os

import aws_cdk as cdk

from nlb_private_link.config import GlobalOptions, TopologyConfig
from nlb_private_link.network_stack import NetworkStack
from nlb_private_link.compute_stack import ComputeStack
from nlb_private_link.private_link_stack import PrivateLinkStack
from nlb_private_link.topology import build_topology

log = logging.getLogger("nlb_private_link")


def create_app(app: cdk.App, prefix: str = "NlbPrivateLink") -> cdk.App:
    options = GlobalOptions.from_context(app.node)
    # Authoring errors are raised here, before any construct exists
    graph = build_topology(TopologyConfig.from_context(app.node))
    log.info(f"Resource apply order: {', '.join(graph.apply_order())}")

    env = cdk.Environment(account=options.account, region=options.region)

    # Deploy stacks in dependency order
    network_stack = NetworkStack(app, f"{prefix}NetworkStack", graph=graph, env=env)
    compute_stack = ComputeStack(
        app, f"{prefix}ComputeStack",
        graph=graph,
        vpcs=network_stack.vpcs,
        env=env
    )
    private_link_stack = PrivateLinkStack(
        app, f"{prefix}PrivateLinkStack",
        graph=graph,
        vpcs=network_stack.vpcs,
        security_groups=compute_stack.security_groups,
        instances=compute_stack.instances,
        env=env
    )

    # Stack dependencies
    compute_stack.add_dependency(network_stack)
    private_link_stack.add_dependency(compute_stack)

    for key, value in sorted(options.tags.items()):
        cdk.Tags.of(app).add(key, value)
    return app


if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    create_app(cdk.App()).synth()
