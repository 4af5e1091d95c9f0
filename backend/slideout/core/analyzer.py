"""Blocking dependency graph and depth analysis."""
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Sequence, Union

from ..models.level import Block, DepthStats
from .blocking import Bounds, DirectionDetector
from .simulator import BoardView, greedy_peel

logger = logging.getLogger(__name__)


@dataclass
class DependencyNode:
    """One block in the dependency graph."""
    id: int
    index: int
    block: Block
    blocked_by: List[int] = field(default_factory=list)
    blocking: List[int] = field(default_factory=list)
    depth: Optional[int] = None  # None means unresolved (part of, or behind, a cycle)
    removed: bool = False

    @property
    def in_degree(self) -> int:
        return len(self.blocked_by)

    @property
    def out_degree(self) -> int:
        return len(self.blocking)

    @property
    def is_removable(self) -> bool:
        return not self.removed and not self.blocked_by

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "index": self.index,
            "blocked_by": list(self.blocked_by),
            "blocking": list(self.blocking),
            "depth": self.depth,
        }


class DependencyGraph:
    """Directed graph with an edge blocker -> target for every obstructor.

    An obstructor is any active block with a cell on the target's exit lane,
    beyond its front, whatever that block's own axis. Cross-axis blocks are
    included: the target cannot leave until they are gone, even when the
    nearest same-lane block would not hold it. The rules match
    ``DirectionDetector.is_blocked``, so in-degree zero means "removable now"
    and the longest path to a node is the number of removal rounds before it.
    """

    def __init__(self, nodes: Dict[int, DependencyNode], bounds: Bounds):
        self.nodes = nodes
        self.bounds = bounds
        self._calculate_depths()

    @classmethod
    def build(
        cls,
        blocks: Sequence[Block],
        bounds: Bounds,
        detector: Optional[DirectionDetector] = None,
    ) -> "DependencyGraph":
        """Build the graph over the active blocks of a board.

        Raises:
            ValueError: If two active blocks share an id.
        """
        detector = detector or DirectionDetector()
        active = [b for b in blocks if b.is_active]
        nodes: Dict[int, DependencyNode] = {}
        for index, block in enumerate(active):
            if block.id in nodes:
                raise ValueError(f"Duplicate block id {block.id}")
            nodes[block.id] = DependencyNode(id=block.id, index=index, block=block)

        for block in active:
            target = nodes[block.id]
            obstructors, escapes = detector.find_obstructors(block, active, bounds)
            for other in obstructors:
                if other.id not in target.blocked_by:
                    target.blocked_by.append(other.id)
                    nodes[other.id].blocking.append(block.id)
            if not escapes:
                # Ray never left the screen: a self-loop keeps it unresolved.
                target.blocked_by.append(block.id)
                target.blocking.append(block.id)

        return cls(nodes, bounds)

    def __len__(self) -> int:
        return len(self.nodes)

    def _calculate_depths(self) -> None:
        """Longest-path layering from the in-degree-zero nodes (Kahn)."""
        remaining = {nid: node.in_degree for nid, node in self.nodes.items()}
        queue = deque()
        for nid, degree in remaining.items():
            node = self.nodes[nid]
            node.depth = None
            if degree == 0:
                node.depth = 0
                queue.append(nid)

        while queue:
            current = self.nodes[queue.popleft()]
            for blocked_id in current.blocking:
                blocked = self.nodes[blocked_id]
                candidate = current.depth + 1
                if blocked.depth is None or blocked.depth < candidate:
                    blocked.depth = candidate
                remaining[blocked_id] -= 1
                if remaining[blocked_id] == 0:
                    queue.append(blocked_id)

        # Nodes that never reached in-degree zero keep a provisional depth
        # from a partial pass; clear it so they read as unresolved.
        for nid, degree in remaining.items():
            if degree > 0:
                self.nodes[nid].depth = None

    def get_node(self, node_id: int) -> Optional[DependencyNode]:
        return self.nodes.get(node_id)

    def removable_nodes(self) -> List[DependencyNode]:
        return [n for n in self.nodes.values() if n.is_removable]

    def get_stats(self) -> DepthStats:
        n = len(self.nodes)
        resolved = [node.depth for node in self.nodes.values() if node.depth is not None]
        removable = sum(1 for node in self.nodes.values() if node.in_degree == 0)
        return DepthStats(
            depths=[node.depth if node.depth is not None else -1 for node in self.nodes.values()],
            avg_depth=sum(resolved) / len(resolved) if resolved else 0.0,
            max_depth=max(resolved, default=0),
            removable_count=removable,
            removable_ratio=removable / n if n else 0.0,
            unresolved=[nid for nid, node in self.nodes.items() if node.depth is None],
        )

    def detect_cycle(self) -> List[int]:
        """Ids along one blocking cycle, or an empty list if the graph is acyclic."""
        WHITE, GREY, BLACK = 0, 1, 2
        state = {nid: WHITE for nid in self.nodes}

        for root in self.nodes:
            if state[root] != WHITE:
                continue
            path: List[int] = [root]
            iters = [iter(self.nodes[root].blocking)]
            state[root] = GREY
            while iters:
                nxt = next(iters[-1], None)
                if nxt is None:
                    state[path.pop()] = BLACK
                    iters.pop()
                    continue
                if state[nxt] == GREY:
                    return path[path.index(nxt):]
                if state[nxt] == WHITE:
                    state[nxt] = GREY
                    path.append(nxt)
                    iters.append(iter(self.nodes[nxt].blocking))
        return []

    def topological_sort(self) -> Optional[List[int]]:
        """A valid removal order of node ids, or None if a cycle exists."""
        remaining = {nid: node.in_degree for nid, node in self.nodes.items()}
        queue = deque(nid for nid, degree in remaining.items() if degree == 0)
        order = []
        while queue:
            nid = queue.popleft()
            order.append(nid)
            for blocked_id in self.nodes[nid].blocking:
                remaining[blocked_id] -= 1
                if remaining[blocked_id] == 0:
                    queue.append(blocked_id)
        if len(order) != len(self.nodes):
            return None
        return order

    def validate_solvability(self) -> Dict[str, Any]:
        if not self.nodes:
            return {"is_solvable": True, "reason": "empty"}
        cycle = self.detect_cycle()
        if cycle:
            return {"is_solvable": False, "reason": "cycle", "cycle_nodes": cycle}
        order = self.topological_sort()
        if order is None:
            return {"is_solvable": False, "reason": "no_topological_order"}
        return {"is_solvable": True, "reason": "valid", "solution_order": order}

    def get_solution_path(self) -> Optional[List[int]]:
        """Block indices in a valid removal order, or None when deadlocked."""
        order = self.topological_sort()
        if order is None:
            return None
        return [self.nodes[nid].index for nid in order]

    def get_hint(self) -> Optional[DependencyNode]:
        """Shallowest currently removable node.

        Edges never change as blocks leave, so on an acyclic graph every
        removable node is a safe move.
        """
        candidates = self.removable_nodes()
        if not candidates:
            return None
        return min(candidates, key=lambda n: (n.depth if n.depth is not None else 0, -n.out_degree, n.id))

    def update_after_removal(self, node_id: int) -> None:
        """Drop a removed block's outgoing edges."""
        node = self.nodes.get(node_id)
        if node is None or node.removed:
            return
        node.removed = True
        node.block.is_removed = True
        for blocked_id in node.blocking:
            blocked = self.nodes.get(blocked_id)
            if blocked is not None and node_id in blocked.blocked_by:
                blocked.blocked_by.remove(node_id)

    def analyze_difficulty(self) -> Dict[str, Any]:
        """Graph-only difficulty breakdown."""
        stats = self.get_stats()
        cycle = self.detect_cycle()
        distribution: Dict[Union[int, str], int] = {}
        for node in self.nodes.values():
            key = node.depth if node.depth is not None else "deadlock"
            distribution[key] = distribution.get(key, 0) + 1

        branching = [n.out_degree for n in self.nodes.values() if n.out_degree > 0]
        avg_branch = sum(branching) / len(branching) if branching else 0.0

        if cycle:
            score = 100
        else:
            score = min(40, stats.max_depth * 4)
            score += min(25, stats.avg_depth * 5)
            score += min(20, (1 - stats.removable_ratio) * 20)
            score += min(15, avg_branch * 5)
            score = round(min(100, score))

        return {
            "block_count": len(self.nodes),
            "max_depth": stats.max_depth,
            "avg_depth": round(stats.avg_depth, 3),
            "removable_count": stats.removable_count,
            "removable_ratio": round(stats.removable_ratio, 3),
            "has_cycle": bool(cycle),
            "cycle_nodes": cycle,
            "is_solvable": not cycle,
            "depth_distribution": {str(k): v for k, v in sorted(distribution.items(), key=_depth_sort_key)},
            "avg_branch_factor": round(avg_branch, 3),
            "graph_score": score,
        }


def _depth_sort_key(item):
    key = item[0]
    return (1, 0) if isinstance(key, str) else (0, key)


def calculate_block_depths(
    blocks: Sequence[Block],
    bounds: Bounds,
    view: Optional[BoardView] = None,
) -> DepthStats:
    """Depth by simulated peeling: layer k holds blocks removable after k rounds.

    Blocks that never become removable sit behind a cycle. They get the depth one
    past the round where peeling stalled and are listed in ``unresolved``.
    """
    n = len(blocks)
    if n == 0:
        return DepthStats()
    view = view or BoardView(blocks, bounds)
    layers = greedy_peel(view)

    depths = [-1] * n
    for depth, layer in enumerate(layers):
        for index in layer:
            depths[index] = depth

    unresolved = [blocks[i].id for i in range(n) if depths[i] < 0]
    if unresolved:
        logger.warning(
            "Depth peel left %d of %d blocks unresolved (blocking cycle): %s",
            len(unresolved), n, unresolved[:10],
        )
        fill = len(layers) + 1
        depths = [d if d >= 0 else fill for d in depths]

    removable = len(layers[0]) if layers else 0
    return DepthStats(
        depths=depths,
        avg_depth=sum(depths) / n,
        max_depth=max(depths),
        removable_count=removable,
        removable_ratio=removable / n,
        unresolved=unresolved,
    )
