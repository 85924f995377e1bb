"""Entity graph construction.

Two builders:
- Forward synthesis from a root key: hop-by-hop successors generated from the
  root's seed (ownership chains, exposure paths).
- Backward traversal over declared adjacency: dataset lineage following each
  source's parent dataset.

Both return a ``Graph`` of ``GraphNode`` and ``GraphEdge`` values; services
map them onto their own response shapes.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from seed import derive_seed
from synth import Stream

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphNode:
    """A node reached while building a graph.

    Attributes:
        id: Node identifier
        depth: Hop distance from the root (root itself is never emitted)
        attributes: Extra per-node fields (risk level, data points, ...)
    """

    id: str
    depth: int
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GraphEdge:
    """Directed, typed edge carrying a contribution and its hop index."""

    source: str
    target: str
    relationship: str
    contribution: float
    hop: int


@dataclass(frozen=True)
class Graph:
    nodes: tuple[GraphNode, ...] = ()
    edges: tuple[GraphEdge, ...] = ()

    @property
    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]


@dataclass(frozen=True)
class ForwardShape:
    """Shape parameters for forward synthesis.

    Attributes:
        relationships: Pool of edge relationship labels
        max_fanout: Upper bound on successors generated per hop (>= 1)
        vary_depth: Derive the hop count from the seed (capped at max_depth)
            instead of always building max_depth hops
        node_levels: Optional pool for a per-node ``level`` attribute
        id_prefix: Prefix for generated node ids
        id_length: Number of hex characters after the prefix
    """

    relationships: tuple[str, ...]
    max_fanout: int = 1
    vary_depth: bool = True
    node_levels: tuple[str, ...] = ()
    id_prefix: str = "0x"
    id_length: int = 40


# ---------------------------------------------------------------------------
# Forward synthesis
# ---------------------------------------------------------------------------

def build_forward_graph(
    root: str,
    max_depth: int,
    threshold: float = 0.0,
    shape: Optional[ForwardShape] = None,
) -> Graph:
    """Synthesize a bounded graph outward from ``root``.

    Each hop ``h`` draws from its own stream (root seed re-seeded at ``h``).
    Edges from hop 1 start at ``root`` itself; later edges start at nodes of
    the previous hop. Generated ids that collide with an existing node are
    skipped.

    Args:
        root: Root key (also the source id of hop-1 edges)
        max_depth: Maximum hop count; <= 0 yields an empty graph
        threshold: Minimum edge contribution to keep; <= 0 keeps everything
        shape: Relationship pool and fan-out settings

    Returns:
        Graph with nodes in generation order
    """
    if shape is None:
        shape = ForwardShape(relationships=("link",))
    max_depth = int(max_depth)
    if max_depth <= 0:
        return Graph()

    stream = Stream(derive_seed(root))
    if shape.vary_depth:
        hops = min(max_depth, 1 + int(stream.draw("hops") * max_depth))
    else:
        hops = max_depth

    nodes: list[GraphNode] = []
    edges: list[GraphEdge] = []
    seen = {root}
    frontier = [root]
    for hop in range(1, hops + 1):
        hop_stream = stream.at_hop(hop)
        fanout = 1 + hop_stream.count("fanout", max(shape.max_fanout, 1) - 1)
        next_frontier: list[str] = []
        for j in range(fanout):
            node_id = shape.id_prefix + hop_stream.hex(f"node:{j}", shape.id_length)
            if node_id in seen:
                continue
            seen.add(node_id)
            attributes: dict[str, Any] = {}
            if shape.node_levels:
                attributes["level"] = hop_stream.choice(f"level:{j}", shape.node_levels)
            nodes.append(GraphNode(id=node_id, depth=hop, attributes=attributes))
            edges.append(GraphEdge(
                source=frontier[j % len(frontier)],
                target=node_id,
                relationship=hop_stream.choice(f"relationship:{j}", shape.relationships),
                contribution=hop_stream.uniform(f"contribution:{j}", 0, 100, 2),
                hop=hop,
            ))
            next_frontier.append(node_id)
        if not next_frontier:
            break
        frontier = next_frontier

    return filter_by_threshold(Graph(nodes=tuple(nodes), edges=tuple(edges)), threshold)


def filter_by_threshold(graph: Graph, threshold: float) -> Graph:
    """Keep edges whose contribution is at least ``threshold``.

    A threshold of 0 (or below) returns the graph untouched.
    """
    if threshold <= 0:
        return graph
    kept = tuple(e for e in graph.edges if e.contribution >= threshold)
    referenced = {e.source for e in kept} | {e.target for e in kept}
    return Graph(
        nodes=tuple(n for n in graph.nodes if n.id in referenced),
        edges=kept,
    )


# ---------------------------------------------------------------------------
# Backward traversal (lineage)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SourceRecord:
    """A declared input of a dataset.

    Attributes:
        source_id: Source identifier
        type: Source kind (api, database, derived, ...)
        updated_at: ISO-8601 instant of the last update
        data_points: Number of observations supplied
        parent_dataset_id: Dataset this source was derived from, if any
        transform_type: How the source feeds the dataset (ingest, etl, ...)
    """

    source_id: str
    type: str
    updated_at: str
    data_points: int
    parent_dataset_id: Optional[str] = None
    transform_type: Optional[str] = None


@dataclass(frozen=True)
class DatasetRecord:
    dataset_id: str
    sources: tuple[SourceRecord, ...]
    content: str
    last_updated: str


def traverse_lineage(records: Iterable[DatasetRecord], root_id: str, max_depth: int) -> Graph:
    """Walk declared sources backward from ``root_id``.

    Breadth-first over datasets, so each dataset is expanded at its shortest
    distance from the root. A dataset is expanded at most once, a source node
    appears at most once, and cycles terminate.

    Args:
        records: Known dataset records
        root_id: Dataset to start from
        max_depth: Number of dataset levels to expand; <= 0 yields nothing

    Returns:
        Graph whose edges run source -> dataset; unknown root gives an empty graph
    """
    index: dict[str, DatasetRecord] = {}
    for record in records:
        index.setdefault(record.dataset_id, record)

    nodes: list[GraphNode] = []
    edges: list[GraphEdge] = []
    node_ids: set[str] = set()
    visited: set[str] = set()
    queue = deque([(root_id, 1)])
    while queue:
        dataset_id, level = queue.popleft()
        if level > max_depth or dataset_id in visited:
            continue
        visited.add(dataset_id)
        record = index.get(dataset_id)
        if record is None:
            if dataset_id != root_id:
                logger.debug("Lineage parent %s has no record", dataset_id)
            continue
        for source in record.sources:
            if source.source_id not in node_ids:
                node_ids.add(source.source_id)
                nodes.append(GraphNode(
                    id=source.source_id,
                    depth=level,
                    attributes={
                        "type": source.type,
                        "updatedAt": source.updated_at,
                        "dataPoints": source.data_points,
                    },
                ))
            edges.append(GraphEdge(
                source=source.source_id,
                target=dataset_id,
                relationship=source.transform_type or "unknown",
                contribution=float(source.data_points),
                hop=level,
            ))
            if source.parent_dataset_id:
                queue.append((source.parent_dataset_id, level + 1))

    return Graph(nodes=tuple(nodes), edges=tuple(edges))
