from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

import numpy as np

from polisim.data.regions import Region

# similarity blend: weight factor = floor + (1 - floor) * ratio
POP_SIMILARITY_FLOOR = 0.7
GDP_SIMILARITY_FLOOR = 0.7
POLITICAL_SIMILARITY_FLOOR = 0.5

SAME_LEADER_SIMILARITY = 1.0
DIFFERENT_LEADER_SIMILARITY = 0.3
UNKNOWN_POLITICAL_SIMILARITY = 0.5


@dataclass
class RegionNode:
    name: str
    population: float = 0.0
    gdp_per_capita: Optional[float] = None
    leading_party: Optional[str] = None
    region_id: Optional[str] = None


def _ratio(a: float, b: float) -> float:
    hi = max(a, b)
    if hi <= 0:
        return 1.0
    return min(a, b) / hi


def political_similarity(leader1: Optional[str], leader2: Optional[str]) -> float:
    if not leader1 or not leader2:
        return UNKNOWN_POLITICAL_SIMILARITY
    return SAME_LEADER_SIMILARITY if leader1 == leader2 else DIFFERENT_LEADER_SIMILARITY


class RegionGraph:
    """
    Undirected region graph. Nodes are keyed by region name; every edge carries
    a similarity weight in roughly [0, 1] (higher = more alike).
    """

    def __init__(self):
        self.nodes: Dict[str, RegionNode] = {}
        self.edges: Dict[str, Set[str]] = {}
        self.weights: Dict[Tuple[str, str], float] = {}

    # ----------------------------
    # Construction
    # ----------------------------
    def add_node(self, name: str, node: Optional[RegionNode] = None, **attrs) -> RegionNode:
        if node is None:
            node = RegionNode(name=name, **attrs)
        self.nodes[name] = node
        self.edges.setdefault(name, set())
        return node

    def add_edge(self, a: str, b: str, weight: float = 1.0) -> bool:
        if a not in self.nodes or b not in self.nodes or a == b:
            return False
        self.edges[a].add(b)
        self.edges[b].add(a)
        self.weights[(a, b)] = float(weight)
        self.weights[(b, a)] = float(weight)
        return True

    def get_neighbors(self, name: str) -> List[str]:
        return list(self.edges.get(name, ()))

    def get_weight(self, a: str, b: str) -> float:
        return self.weights.get((a, b), 0.0)

    def calculate_smart_weights(self) -> None:
        """Recompute every edge weight from population, economic and political similarity."""
        for a, nbrs in self.edges.items():
            n1 = self.nodes[a]
            for b in nbrs:
                if a > b:
                    continue
                n2 = self.nodes[b]

                weight = POP_SIMILARITY_FLOOR + (1 - POP_SIMILARITY_FLOOR) * _ratio(n1.population, n2.population)

                if n1.gdp_per_capita and n2.gdp_per_capita:
                    weight *= GDP_SIMILARITY_FLOOR + (1 - GDP_SIMILARITY_FLOOR) * _ratio(
                        n1.gdp_per_capita, n2.gdp_per_capita
                    )

                if n1.leading_party and n2.leading_party:
                    sim = political_similarity(n1.leading_party, n2.leading_party)
                    weight *= POLITICAL_SIMILARITY_FLOOR + (1 - POLITICAL_SIMILARITY_FLOOR) * sim

                self.add_edge(a, b, weight)

    # ----------------------------
    # Traversal
    # ----------------------------
    def find_connected_components(self) -> List[List[str]]:
        """Connected components, in node insertion order of their first member."""
        seen: Set[str] = set()
        comps: List[List[str]] = []
        for start in self.nodes:
            if start in seen:
                continue
            seen.add(start)
            comp = []
            q = deque([start])
            while q:
                x = q.popleft()
                comp.append(x)
                for y in self.edges[x]:
                    if y not in seen:
                        seen.add(y)
                        q.append(y)
            comps.append(comp)
        return comps

    def shortest_path(self, start: str, end: str) -> Optional[List[str]]:
        """BFS path start..end inclusive, or None when no path exists (different components)."""
        if start not in self.nodes or end not in self.nodes:
            return None
        if start == end:
            return [start]

        parent: Dict[str, Optional[str]] = {start: None}
        q = deque([start])
        while q:
            x = q.popleft()
            for y in self.edges[x]:
                if y in parent:
                    continue
                parent[y] = x
                if y == end:
                    path = [y]
                    cur = x
                    while cur is not None:
                        path.append(cur)
                        cur = parent[cur]
                    path.reverse()
                    return path
                q.append(y)
        return None

    def bfs_hops(self, start: str) -> Dict[str, int]:
        dist = {start: 0}
        q = deque([start])
        while q:
            x = q.popleft()
            for y in self.edges[x]:
                if y not in dist:
                    dist[y] = dist[x] + 1
                    q.append(y)
        return dist

    def select_distributed_seeds(self, num_seeds: int) -> List[str]:
        """
        Highest-population region first, then repeatedly the region farthest (in
        hops) from its nearest chosen seed. Unreachable regions count as
        infinitely far, so islands get their own seed early. Ties go to the
        first candidate in population order.
        """
        # stable: equal populations keep insertion order
        ordered = sorted(self.nodes, key=lambda n: -self.nodes[n].population)
        if num_seeds <= 0:
            return []
        if num_seeds >= len(ordered):
            return ordered

        index = {name: i for i, name in enumerate(ordered)}
        seeds = [ordered[0]]
        min_d = np.full(len(ordered), np.inf)

        def absorb(seed: str) -> None:
            hops = self.bfs_hops(seed)
            d = np.full(len(ordered), np.inf)
            for name, h in hops.items():
                d[index[name]] = h
            np.minimum(min_d, d, out=min_d)

        absorb(seeds[0])
        chosen = np.zeros(len(ordered), dtype=bool)
        chosen[0] = True

        while len(seeds) < num_seeds:
            masked = np.where(chosen, -1.0, min_d)
            # argmax returns the first maximum, which is the tie-break we want
            idx = int(np.argmax(masked))
            seeds.append(ordered[idx])
            chosen[idx] = True
            absorb(ordered[idx])

        return seeds


def build_region_graph(regions: Iterable[Region], adjacency: Optional[Mapping[str, Iterable[str]]]) -> RegionGraph:
    """Nodes for every region, edges from the adjacency map, then similarity weights."""
    graph = RegionGraph()
    for r in regions:
        graph.add_node(
            r.name,
            population=float(r.population),
            gdp_per_capita=r.gdp_per_capita,
            leading_party=r.leading_party,
            region_id=r.region_id,
        )

    if adjacency:
        for name, nbrs in adjacency.items():
            if name not in graph.nodes:
                continue
            for nbr in nbrs:
                graph.add_edge(name, nbr)

    graph.calculate_smart_weights()
    return graph
