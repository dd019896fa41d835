from nlb_private_link.config import GlobalOptions, TopologyConfig
from nlb_private_link.graph import ResourceGraph
from nlb_private_link.topology import build_topology

__all__ = ["GlobalOptions", "TopologyConfig", "ResourceGraph", "build_topology"]
