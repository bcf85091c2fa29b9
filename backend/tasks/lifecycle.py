"""Task lifecycle coordinator.

Entry point for the API layer on task create/update/delete. Each operation
runs in a single per-owner transaction that spans validation, the mutation
and the parent roll-up, so a task is never persisted without its parent's
aggregate.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

import structlog
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db.models import Q
from django.utils import timezone

from .dependencies import DependencyGraphEngine
from .errors import InvalidArgument
from .hierarchy import HierarchyEngine
from .models import Task, TaskPriority, TaskStatus
from .store import TaskStore

logger = structlog.get_logger(__name__)

# plain attributes, copied as given
DATA_FIELDS = ("title", "description", "priority", "due_date", "reminder_time", "category_id", "tags")


class SubtaskDeletePolicy(str, Enum):
    CASCADE = "cascade"   # delete the whole subtree
    ORPHAN = "orphan"     # keep direct children as top-level tasks


def configured_delete_policy() -> SubtaskDeletePolicy:
    value = getattr(settings, "TASKS_SUBTASK_DELETE_POLICY", SubtaskDeletePolicy.CASCADE.value)
    try:
        return SubtaskDeletePolicy(value)
    except ValueError:
        raise ImproperlyConfigured(
            f"TASKS_SUBTASK_DELETE_POLICY must be one of "
            f"{[p.value for p in SubtaskDeletePolicy]}, got {value!r}"
        )


def _as_status(value: Any) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        raise InvalidArgument(f"Unknown status: {value!r}")


class TaskLifecycleCoordinator:
    def __init__(
        self,
        store: Optional[TaskStore] = None,
        graph: Optional[DependencyGraphEngine] = None,
        hierarchy: Optional[HierarchyEngine] = None,
        delete_policy: Optional[SubtaskDeletePolicy] = None,
    ):
        self.store = store or TaskStore()
        self.graph = graph or DependencyGraphEngine(self.store)
        self.hierarchy = hierarchy or HierarchyEngine(self.store)
        self.delete_policy = SubtaskDeletePolicy(delete_policy) if delete_policy else configured_delete_policy()

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def get_task(self, owner_id: int, task_id: int) -> Task:
        return self.store.get(owner_id, task_id)

    def list_tasks(
        self,
        owner_id: int,
        status: Optional[str] = None,
        category_id: Optional[int] = None,
        search: Optional[str] = None,
        parent_id: Optional[int] = None,
    ):
        """Owner's tasks, newest first, optionally filtered."""
        qs = self.store.query(owner_id)
        if status:
            qs = qs.filter(status=_as_status(status))
        if category_id is not None:
            qs = qs.filter(category_id=category_id)
        if parent_id is not None:
            qs = qs.filter(parent_id=parent_id)
        if search:
            qs = qs.filter(Q(title__icontains=search) | Q(description__icontains=search))
        return qs.order_by("-created_at", "-id")

    # ------------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------------

    def create_task(self, owner_id: int, data: Dict[str, Any]) -> Task:
        fields = {f: data[f] for f in DATA_FIELDS if f in data}
        if "priority" in fields:
            try:
                fields["priority"] = TaskPriority(fields["priority"])
            except ValueError:
                raise InvalidArgument(f"Unknown priority: {fields['priority']!r}")

        with self.store.transaction(owner_id):
            parent = None
            if data.get("parent_id") is not None:
                parent = self.hierarchy.validate_parent(owner_id, data["parent_id"])

            task = Task(owner_id=owner_id, parent=parent, status=TaskStatus.TODO, progress=0, **fields)
            self.store.insert(task)
            if parent is not None:
                self.hierarchy.roll_up(parent.pk)

        logger.info("task_created", owner_id=owner_id, task_id=task.pk, parent_id=task.parent_id)
        return task

    def update_task(self, owner_id: int, task_id: int, patch: Dict[str, Any]) -> Task:
        """Apply ``patch`` to the task.

        ``patch`` may carry any of DATA_FIELDS plus ``status`` and ``parent_id``;
        a ``parent_id`` of None detaches the task from its parent. Raises
        InvalidArgument("blocked by dependency") when an incomplete predecessor
        gates the requested status.
        """
        with self.store.transaction(owner_id):
            task = self.store.get(owner_id, task_id)
            changed: List[str] = []

            for field in DATA_FIELDS:
                if field in patch and getattr(task, field) != patch[field]:
                    setattr(task, field, patch[field])
                    changed.append(field)

            status_changed = False
            if "status" in patch:
                new_status = _as_status(patch["status"])
                if new_status != task.status:
                    if new_status != TaskStatus.TODO and not self.graph.can_transition_status(task.pk, new_status):
                        logger.info(
                            "status_transition_blocked",
                            owner_id=owner_id,
                            task_id=task.pk,
                            from_status=task.status,
                            to_status=new_status.value,
                        )
                        raise InvalidArgument("blocked by dependency")
                    if new_status == TaskStatus.COMPLETED:
                        task.completed_at = timezone.now()
                    elif task.status == TaskStatus.COMPLETED:
                        task.completed_at = None
                    task.status = new_status
                    changed.extend(["status", "completed_at"])
                    status_changed = True

            old_parent_id = task.parent_id
            parent_changed = False
            if "parent_id" in patch and patch["parent_id"] != old_parent_id:
                new_parent_id = patch["parent_id"]
                if new_parent_id is None:
                    task.parent = None
                else:
                    task.parent = self.hierarchy.validate_parent(owner_id, new_parent_id, child_id=task.pk)
                changed.append("parent")
                parent_changed = True

            self.store.save(task, changed)

            if parent_changed:
                if old_parent_id is not None:
                    self.hierarchy.roll_up(old_parent_id)
                if task.parent_id is not None:
                    self.hierarchy.roll_up(task.parent_id)
            elif status_changed and task.parent_id is not None:
                self.hierarchy.roll_up(task.parent_id)

        if changed:
            logger.info("task_updated", owner_id=owner_id, task_id=task.pk, fields=changed)
        return task

    def delete_task(self, owner_id: int, task_id: int) -> List[int]:
        """Delete the task, its dependency edges and, per policy, its subtree.

        Returns the ids of the deleted tasks.
        """
        with self.store.transaction(owner_id):
            task = self.store.get(owner_id, task_id)
            parent_id = task.parent_id

            if self.delete_policy == SubtaskDeletePolicy.CASCADE:
                doomed = self.store.subtree_ids(owner_id, task.pk)
            else:
                self.store.detach_children(task.pk)
                doomed = [task.pk]

            edges = self.store.remove_edges_touching(doomed)
            self.store.delete(doomed)

            if parent_id is not None:
                self.hierarchy.roll_up(parent_id)

        logger.info(
            "task_deleted",
            owner_id=owner_id,
            task_id=task_id,
            deleted_tasks=len(doomed),
            deleted_dependencies=edges,
            policy=self.delete_policy.value,
        )
        return doomed
