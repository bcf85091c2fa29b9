"""Graph utilities over id-keyed adjacency maps.

Contains utilities for:
- checking reachability between two tasks (used to reject edges that would close a cycle),
- walking a parent map up to the root (used for hierarchy cycle checks),
- listing every cycle of a dependency graph (integrity checks).

Graphs are plain dicts ``{node_id: [neighbour_id, ...]}``; no task objects
are held, so nothing here touches the database.
"""

from collections import deque
from typing import Dict, Iterable, List, Mapping, Optional, Sequence


def path_exists(graph: Mapping[int, Sequence[int]], start: int, target: int) -> bool:
    """Return True if ``target`` can be reached from ``start`` following edges outward.

    Breadth-first with a visited set, so each node and edge is expanded at most once.
    """
    if start == target:
        return True
    visited = {start}
    queue = deque([start])
    while queue:
        node = queue.popleft()
        for neighbour in graph.get(node, ()):
            if neighbour == target:
                return True
            if neighbour not in visited:
                visited.add(neighbour)
                queue.append(neighbour)
    return False


def ancestors(parent_map: Mapping[int, Optional[int]], task_id: int) -> List[int]:
    """Return the ancestor chain of ``task_id``, nearest first.

    Stops if the chain loops back on itself, which a valid hierarchy never does.
    """
    chain: List[int] = []
    seen = {task_id}
    current = parent_map.get(task_id)
    while current is not None and current not in seen:
        chain.append(current)
        seen.add(current)
        current = parent_map.get(current)
    return chain


def build_adjacency(edges: Iterable[Sequence[int]]) -> Dict[int, List[int]]:
    """Build ``{predecessor: [successors]}`` from (predecessor, successor) pairs, deduped."""
    graph: Dict[int, List[int]] = {}
    for predecessor, successor in edges:
        successors = graph.setdefault(predecessor, [])
        if successor not in successors:
            successors.append(successor)
    return graph


def detect_cycles(graph: Mapping[int, Sequence[int]]) -> List[List[int]]:
    """Detect cycles in a dependency graph.

    Returns:
        A list of cycles. Each cycle is the node path closing on its first node,
        rotated so the smallest id comes first (e.g. [1, 1] for a self-loop,
        [1, 2, 3, 1] for a 3-node cycle).
    """
    visited = set()            # permanently visited nodes
    stack: List[int] = []      # current DFS path
    on_stack = set()
    cycles: List[List[int]] = []
    seen_cycles = set()        # canonical tuples, for dedupe

    def dfs(node: int) -> None:
        visited.add(node)
        stack.append(node)
        on_stack.add(node)
        for neighbour in graph.get(node, ()):
            if neighbour in on_stack:
                # back edge
                cycle = stack[stack.index(neighbour):]
                min_idx = cycle.index(min(cycle))
                ordered = cycle[min_idx:] + cycle[:min_idx]
                ordered.append(ordered[0])
                key = tuple(ordered)
                if key not in seen_cycles:
                    seen_cycles.add(key)
                    cycles.append(ordered)
            elif neighbour not in visited:
                dfs(neighbour)
        stack.pop()
        on_stack.discard(node)

    for node in list(graph.keys()):
        if node not in visited:
            dfs(node)

    return cycles
