from typing import Dict

from aws_cdk import Stack
from pytest import fixture

from nlb_private_link.config import TopologyConfig
from nlb_private_link.graph import ResourceGraph
from nlb_private_link.topology import build_topology
from tests.helpers import synth_stacks


@fixture
def config() -> TopologyConfig:
    return TopologyConfig()


@fixture
def graph(config: TopologyConfig) -> ResourceGraph:
    return build_topology(config)


@fixture(scope="module")
def stacks() -> Dict[str, Stack]:
    return synth_stacks()
