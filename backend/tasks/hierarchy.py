"""Parent/sub-task hierarchy engine.

A parent with at least one child gets its progress, status and completion
stamp derived from its direct children. Roll-up covers one level per call
unless TASKS_RECURSIVE_ROLLUP is enabled, in which case it continues up to
the root.
"""

from typing import List, Optional, Tuple

import structlog
from django.conf import settings
from django.utils import timezone

from .errors import InvalidArgument
from .graph import ancestors
from .models import Task, TaskStatus
from .store import TaskStore

logger = structlog.get_logger(__name__)


def rollup_progress(completed: int, total: int) -> int:
    """Percentage of completed children, rounded half up (2/3 -> 67, 1/8 -> 13)."""
    return (200 * completed + total) // (2 * total)


def derive_status(completed: int, total: int) -> TaskStatus:
    if completed == total:
        return TaskStatus.COMPLETED
    if completed > 0:
        return TaskStatus.IN_PROGRESS
    return TaskStatus.TODO


def aggregate(statuses: List[str]) -> Tuple[int, TaskStatus]:
    """(progress, status) for a non-empty list of child statuses."""
    total = len(statuses)
    completed = sum(1 for s in statuses if s == TaskStatus.COMPLETED)
    return rollup_progress(completed, total), derive_status(completed, total)


class HierarchyEngine:
    def __init__(self, store: Optional[TaskStore] = None, recursive: Optional[bool] = None):
        self.store = store or TaskStore()
        if recursive is None:
            recursive = getattr(settings, "TASKS_RECURSIVE_ROLLUP", False)
        self.recursive = recursive

    def validate_parent(self, owner_id: int, parent_id: int, child_id: Optional[int] = None) -> Task:
        """Return the parent task if ``child_id`` may be placed under it.

        Raises NotFound for a missing or foreign parent, InvalidArgument when the
        parent is the child itself or one of its descendants.
        """
        parent = self.store.get(owner_id, parent_id)
        if child_id is None:
            return parent
        if parent.pk == child_id:
            raise InvalidArgument("task cannot be its own parent")
        if child_id in ancestors(self.store.parent_map(owner_id), parent.pk):
            logger.info("hierarchy_cycle_rejected", owner_id=owner_id, task_id=child_id, parent_id=parent.pk)
            raise InvalidArgument("would create hierarchy cycle")
        return parent

    def attach_child(self, owner_id: int, child_id: int, parent_id: int) -> Task:
        with self.store.transaction(owner_id):
            child = self.store.get(owner_id, child_id)
            parent = self.validate_parent(owner_id, parent_id, child_id=child.pk)
            old_parent_id = child.parent_id
            if old_parent_id == parent.pk:
                return child
            child.parent = parent
            self.store.save(child, ["parent"])
            if old_parent_id is not None:
                self.roll_up(old_parent_id)
            self.roll_up(parent.pk)
        return child

    def sub_tasks(self, owner_id: int, parent_id: int) -> List[Task]:
        parent = self.store.get(owner_id, parent_id)
        return self.store.children_of(parent.pk)

    def recompute_parent_aggregate(self, parent_id: int) -> Optional[Task]:
        """Overwrite the parent's progress/status/completed_at from its direct children.

        Returns the parent, or None when it does not exist or has no children
        (childless tasks are left alone).
        """
        parent = self.store.get_by_id(parent_id)
        if parent is None:
            return None
        statuses = self.store.child_statuses(parent.pk)
        if not statuses:
            return None

        progress, status = aggregate(statuses)
        changed = []
        if parent.progress != progress:
            parent.progress = progress
            changed.append("progress")
        if status == TaskStatus.COMPLETED:
            if parent.status != TaskStatus.COMPLETED or parent.completed_at is None:
                parent.completed_at = timezone.now()
                changed.append("completed_at")
        elif parent.completed_at is not None:
            parent.completed_at = None
            changed.append("completed_at")
        if parent.status != status:
            parent.status = status
            changed.append("status")

        if changed:
            self.store.save(parent, changed)
            logger.info(
                "parent_rolled_up",
                task_id=parent.pk,
                progress=progress,
                status=status.value,
                children=len(statuses),
            )
        return parent

    def roll_up(self, parent_id: Optional[int]) -> List[Task]:
        """Recompute ``parent_id`` and, in recursive mode, each ancestor above it."""
        updated: List[Task] = []
        seen = set()
        current = parent_id
        while current is not None and current not in seen:
            seen.add(current)
            parent = self.recompute_parent_aggregate(current)
            if parent is None:
                break
            updated.append(parent)
            if not self.recursive:
                break
            current = parent.parent_id
        return updated
