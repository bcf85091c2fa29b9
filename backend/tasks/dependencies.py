"""Dependency graph engine.

Maintains the predecessor -> successor edges between one owner's tasks,
keeps that graph acyclic, and decides whether a task may enter a status
given its incoming edges.
"""

from typing import Dict, List, Optional

import structlog

from .errors import Conflict, InvalidArgument, NotFound
from .graph import path_exists
from .models import DependencyType, Task, TaskDependency, TaskStatus
from .store import TaskStore

logger = structlog.get_logger(__name__)

# Which edge types hold the successor back until the predecessor is Completed.
# Start-based types are recorded but not enforced.
GATES_ON_PREDECESSOR_FINISH: Dict[DependencyType, bool] = {
    DependencyType.FINISH_TO_START: True,
    DependencyType.FINISH_TO_FINISH: True,
    DependencyType.START_TO_START: False,
    DependencyType.START_TO_FINISH: False,
}


def edge_blocks(edge: TaskDependency) -> bool:
    """True if ``edge`` currently prevents its successor from progressing."""
    try:
        gates = GATES_ON_PREDECESSOR_FINISH[DependencyType(edge.dependency_type)]
    except (KeyError, ValueError):
        raise InvalidArgument(f"Unknown dependency type: {edge.dependency_type!r}")
    return gates and edge.predecessor.status != TaskStatus.COMPLETED


class DependencyGraphEngine:
    def __init__(self, store: Optional[TaskStore] = None):
        self.store = store or TaskStore()

    def create_dependency(
        self,
        owner_id: int,
        predecessor_id: int,
        successor_id: int,
        dependency_type: str = DependencyType.FINISH_TO_START,
        lag: Optional[int] = None,
    ) -> TaskDependency:
        """Add the edge predecessor -> successor.

        Raises:
            NotFound: either task is missing or owned by someone else.
            InvalidArgument: self-dependency, negative lag, unknown type, or the edge would close a cycle.
            Conflict: the ordered pair already has an edge.
        """
        try:
            dependency_type = DependencyType(dependency_type)
        except ValueError:
            raise InvalidArgument(f"Unknown dependency type: {dependency_type!r}")
        if lag is not None and lag < 0:
            raise InvalidArgument("lag must be a non-negative number of hours")

        with self.store.transaction(owner_id):
            predecessor = self.store.get(owner_id, predecessor_id)
            successor = self.store.get(owner_id, successor_id)

            if predecessor.pk == successor.pk:
                raise InvalidArgument("self-dependency")
            if self.store.edge_exists(predecessor.pk, successor.pk):
                raise Conflict("duplicate dependency")

            # the new edge closes a cycle iff the predecessor is already downstream of the successor
            if path_exists(self.store.adjacency(owner_id), successor.pk, predecessor.pk):
                logger.info(
                    "dependency_cycle_rejected",
                    owner_id=owner_id,
                    predecessor_id=predecessor.pk,
                    successor_id=successor.pk,
                )
                raise InvalidArgument("would create cycle")

            edge = self.store.add_edge(predecessor, successor, dependency_type, lag)

        logger.info(
            "dependency_created",
            owner_id=owner_id,
            dependency_id=edge.pk,
            predecessor_id=predecessor.pk,
            successor_id=successor.pk,
            dependency_type=dependency_type.value,
            lag=lag,
        )
        return edge

    def list_dependencies(self, owner_id: int, task_id: int) -> Dict[str, List[TaskDependency]]:
        task = self.store.get(owner_id, task_id)
        return {
            "predecessors": self.store.incoming_edges(task.pk),
            "successors": self.store.outgoing_edges(task.pk),
        }

    def delete_dependency(self, owner_id: int, dependency_id: int) -> None:
        with self.store.transaction(owner_id):
            edge = self.store.get_edge(dependency_id)
            if (
                edge is None
                or self.store.owner_of(edge.predecessor_id) != owner_id
                or self.store.owner_of(edge.successor_id) != owner_id
            ):
                raise NotFound("Dependency not found")
            self.store.remove_edge(edge)

        logger.info("dependency_removed", owner_id=owner_id, dependency_id=dependency_id)

    def blocking_predecessors(self, task_id: int) -> List[TaskDependency]:
        """Incoming edges that keep ``task_id`` out of InProgress/Completed."""
        return [edge for edge in self.store.incoming_edges(task_id) if edge_blocks(edge)]

    def can_transition_status(self, task_id: int, proposed_status: str) -> bool:
        try:
            proposed_status = TaskStatus(proposed_status)
        except ValueError:
            raise InvalidArgument(f"Unknown status: {proposed_status!r}")
        # reverting is always allowed
        if proposed_status == TaskStatus.TODO:
            return True
        return not self.blocking_predecessors(task_id)

    def is_blocked(self, task: Task) -> bool:
        return not self.can_transition_status(task.pk, TaskStatus.IN_PROGRESS)
