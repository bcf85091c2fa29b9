"""Owner-scoped access to task and dependency rows.

The engines never query the ORM directly; they go through TaskStore, which
hands out id-keyed maps (parent map, adjacency list) instead of object
graphs, and owns the per-owner transaction boundary.
"""

from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from django.db import IntegrityError, transaction
from django.db.models import F, Q

from .errors import Conflict, NotFound
from .graph import build_adjacency
from .models import Task, TaskDependency, TaskGraphVersion


class TaskStore:

    # ------------------------------------------------------------------
    # transaction boundary
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self, owner_id: int) -> Iterator[None]:
        """Atomic block serialized per owner through the TaskGraphVersion row.

        Nested use joins the outer transaction (as a savepoint) and keeps
        the lock already held.
        """
        with transaction.atomic():
            self._lock_owner(owner_id)
            yield
            TaskGraphVersion.objects.filter(owner_id=owner_id).update(version=F("version") + 1)

    def _lock_owner(self, owner_id: int) -> None:
        TaskGraphVersion.objects.get_or_create(owner_id=owner_id)
        # SELECT ... FOR UPDATE; a no-op on SQLite whose writer lock serializes anyway
        TaskGraphVersion.objects.select_for_update().get(owner_id=owner_id)

    def graph_version(self, owner_id: int) -> int:
        row = TaskGraphVersion.objects.filter(owner_id=owner_id).first()
        return row.version if row else 0

    # ------------------------------------------------------------------
    # tasks
    # ------------------------------------------------------------------

    def get(self, owner_id: int, task_id: int) -> Task:
        task = Task.objects.filter(pk=task_id, owner_id=owner_id).first()
        if task is None:
            raise NotFound("Task not found")
        return task

    def get_by_id(self, task_id: int) -> Optional[Task]:
        return Task.objects.filter(pk=task_id).first()

    def owner_of(self, task_id: int) -> Optional[int]:
        return Task.objects.filter(pk=task_id).values_list("owner_id", flat=True).first()

    def children_of(self, parent_id: int) -> List[Task]:
        return list(Task.objects.filter(parent_id=parent_id).order_by("created_at", "id"))

    def child_statuses(self, parent_id: int) -> List[str]:
        return list(Task.objects.filter(parent_id=parent_id).values_list("status", flat=True))

    def parent_map(self, owner_id: int) -> Dict[int, Optional[int]]:
        """task id -> parent id for every task of the owner."""
        return dict(Task.objects.filter(owner_id=owner_id).values_list("id", "parent_id"))

    def subtree_ids(self, owner_id: int, root_id: int) -> List[int]:
        """root_id followed by all of its descendants, breadth first."""
        children: Dict[int, List[int]] = {}
        for task_id, parent_id in self.parent_map(owner_id).items():
            if parent_id is not None:
                children.setdefault(parent_id, []).append(task_id)

        ordered = [root_id]
        seen = {root_id}
        i = 0
        while i < len(ordered):
            for child in children.get(ordered[i], []):
                if child not in seen:
                    seen.add(child)
                    ordered.append(child)
            i += 1
        return ordered

    def query(self, owner_id: int):
        return Task.objects.filter(owner_id=owner_id)

    def insert(self, task: Task) -> Task:
        task.save(force_insert=True)
        return task

    def save(self, task: Task, fields: Iterable[str]) -> Task:
        fields = list(fields)
        if fields:
            task.save(update_fields=[*fields, "updated_at"])
        return task

    def detach_children(self, parent_id: int) -> int:
        return Task.objects.filter(parent_id=parent_id).update(parent=None)

    def delete(self, task_ids: Iterable[int]) -> int:
        deleted, _ = Task.objects.filter(pk__in=list(task_ids)).delete()
        return deleted

    # ------------------------------------------------------------------
    # dependency edges
    # ------------------------------------------------------------------

    def adjacency(self, owner_id: int) -> Dict[int, List[int]]:
        """predecessor id -> successor ids, over the owner's edges."""
        rows = TaskDependency.objects.filter(predecessor__owner_id=owner_id).values_list(
            "predecessor_id", "successor_id"
        )
        return build_adjacency(rows)

    def incoming_edges(self, task_id: int) -> List[TaskDependency]:
        return list(
            TaskDependency.objects.filter(successor_id=task_id)
            .select_related("predecessor", "successor")
            .order_by("created_at", "id")
        )

    def outgoing_edges(self, task_id: int) -> List[TaskDependency]:
        return list(
            TaskDependency.objects.filter(predecessor_id=task_id)
            .select_related("predecessor", "successor")
            .order_by("created_at", "id")
        )

    def get_edge(self, dependency_id: int) -> Optional[TaskDependency]:
        return (
            TaskDependency.objects.filter(pk=dependency_id)
            .select_related("predecessor", "successor")
            .first()
        )

    def edge_exists(self, predecessor_id: int, successor_id: int) -> bool:
        return TaskDependency.objects.filter(predecessor_id=predecessor_id, successor_id=successor_id).exists()

    def add_edge(self, predecessor: Task, successor: Task, dependency_type: str, lag: Optional[int]) -> TaskDependency:
        try:
            # inner atomic block keeps an IntegrityError local to this insert
            with transaction.atomic():
                return TaskDependency.objects.create(
                    predecessor=predecessor,
                    successor=successor,
                    dependency_type=dependency_type,
                    lag=lag,
                )
        except IntegrityError:
            raise Conflict("duplicate dependency")

    def remove_edge(self, edge: TaskDependency) -> None:
        edge.delete()

    def remove_edges_touching(self, task_ids: Iterable[int]) -> int:
        task_ids = list(task_ids)
        deleted, _ = TaskDependency.objects.filter(
            Q(predecessor_id__in=task_ids) | Q(successor_id__in=task_ids)
        ).delete()
        return deleted
