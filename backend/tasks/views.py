# views.py
from typing import Optional

from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from .errors import InvalidArgument
from .lifecycle import TaskLifecycleCoordinator
from .serializers import (
    DependencyInputSerializer,
    DependencySerializer,
    TaskInputSerializer,
    TaskSerializer,
    TaskSummarySerializer,
    TaskUpdateSerializer,
)


def _int_param(request, name: str) -> Optional[int]:
    """Parse an optional integer query parameter, 400 on garbage."""
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError({name: "A valid integer is required."})


def render_task(coordinator: TaskLifecycleCoordinator, task) -> dict:
    task.refresh_from_db()
    return TaskSerializer(task, context={"graph": coordinator.graph}).data


class TaskListView(APIView):
    """
    GET  /api/tasks/   the caller's tasks, newest first
                       (filters: status, category_id, parent_task_id, search)
    POST /api/tasks/   create a task, optionally under a parent
    """

    def get(self, request):
        coordinator = TaskLifecycleCoordinator()
        tasks = coordinator.list_tasks(
            request.user.id,
            status=request.query_params.get("status") or None,
            category_id=_int_param(request, "category_id"),
            search=request.query_params.get("search") or None,
            parent_id=_int_param(request, "parent_task_id"),
        )
        data = TaskSerializer(tasks, many=True, context={"graph": coordinator.graph}).data
        return Response(data, status=status.HTTP_200_OK)

    def post(self, request):
        serializer = TaskInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        coordinator = TaskLifecycleCoordinator()
        task = coordinator.create_task(request.user.id, serializer.validated_data)
        return Response(render_task(coordinator, task), status=status.HTTP_201_CREATED)


class TaskDetailView(APIView):
    """
    GET    /api/tasks/<id>/
    PATCH  /api/tasks/<id>/   partial update, status changes are dependency-gated
    DELETE /api/tasks/<id>/   removes the task, its dependencies and (by default) its sub-tasks
    """

    def get(self, request, task_id: int):
        coordinator = TaskLifecycleCoordinator()
        task = coordinator.get_task(request.user.id, task_id)
        return Response(render_task(coordinator, task), status=status.HTTP_200_OK)

    def patch(self, request, task_id: int):
        serializer = TaskUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        coordinator = TaskLifecycleCoordinator()
        task = coordinator.update_task(request.user.id, task_id, serializer.validated_data)
        return Response(render_task(coordinator, task), status=status.HTTP_200_OK)

    def delete(self, request, task_id: int):
        TaskLifecycleCoordinator().delete_task(request.user.id, task_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class SubTaskListView(APIView):
    """GET /api/tasks/<id>/subtasks/   direct children of a task, oldest first."""

    def get(self, request, task_id: int):
        coordinator = TaskLifecycleCoordinator()
        children = coordinator.hierarchy.sub_tasks(request.user.id, task_id)
        return Response(TaskSummarySerializer(children, many=True).data, status=status.HTTP_200_OK)


class TaskDependencyListView(APIView):
    """
    GET  /api/tasks/<id>/dependencies/   {"predecessors": [...], "successors": [...]}
    POST /api/tasks/<id>/dependencies/   add an edge involving this task; an omitted
                                         predecessor/successor id defaults to this task
    """

    def get(self, request, task_id: int):
        graph = TaskLifecycleCoordinator().graph
        edges = graph.list_dependencies(request.user.id, task_id)
        return Response(
            {
                "predecessors": DependencySerializer(edges["predecessors"], many=True).data,
                "successors": DependencySerializer(edges["successors"], many=True).data,
            },
            status=status.HTTP_200_OK,
        )

    def post(self, request, task_id: int):
        serializer = DependencyInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        predecessor_id = data.get("predecessor_task_id", task_id)
        successor_id = data.get("successor_task_id", task_id)
        if task_id not in (predecessor_id, successor_id):
            raise InvalidArgument(f"dependency must involve task {task_id}")

        graph = TaskLifecycleCoordinator().graph
        edge = graph.create_dependency(
            request.user.id,
            predecessor_id,
            successor_id,
            dependency_type=data["dependency_type"],
            lag=data.get("lag"),
        )
        return Response(DependencySerializer(edge).data, status=status.HTTP_201_CREATED)


class DependencyDetailView(APIView):
    """DELETE /api/dependencies/<id>/"""

    def delete(self, request, dependency_id: int):
        TaskLifecycleCoordinator().graph.delete_dependency(request.user.id, dependency_id)
        return Response(status=status.HTTP_204_NO_CONTENT)
