"""Graph construction components: identities, merging, communities, filtering."""

from .builder import build_graph, filter_edges, select_ego_network
from .communities import detect_communities, group_members, partition_modularity
from .identity import IdentityMap, build_identity_map, normalize_identifier
from .merge import merge_edges, sentiment_label

__all__ = [
    "IdentityMap",
    "build_graph",
    "build_identity_map",
    "detect_communities",
    "filter_edges",
    "group_members",
    "merge_edges",
    "normalize_identifier",
    "partition_modularity",
    "select_ego_network",
    "sentiment_label",
]
