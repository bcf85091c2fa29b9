from typing import List

from rest_framework import serializers

from .dependencies import DependencyGraphEngine
from .models import DependencyType, Task, TaskDependency, TaskPriority, TaskStatus


class TaskInputSerializer(serializers.Serializer):
    """Payload for creating a task; with partial=True it validates a PATCH."""

    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True)
    priority = serializers.ChoiceField(choices=TaskPriority.choices, required=False)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    reminder_time = serializers.DateTimeField(required=False, allow_null=True)
    category_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    parent_task_id = serializers.IntegerField(source="parent_id", required=False, allow_null=True)
    tags = serializers.ListField(child=serializers.CharField(max_length=50), required=False)

    def validate_title(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Title may not be blank.")
        return value

    def validate_tags(self, value: List[str]) -> List[str]:
        # keep first occurrence, drop blanks
        tags: List[str] = []
        for tag in value:
            tag = tag.strip()
            if tag and tag not in tags:
                tags.append(tag)
        return tags


class TaskUpdateSerializer(TaskInputSerializer):
    status = serializers.ChoiceField(choices=TaskStatus.choices, required=False)


class DependencyInputSerializer(serializers.Serializer):
    predecessor_task_id = serializers.IntegerField(required=False)
    successor_task_id = serializers.IntegerField(required=False)
    dependency_type = serializers.ChoiceField(
        choices=DependencyType.choices, default=DependencyType.FINISH_TO_START
    )
    lag = serializers.IntegerField(required=False, allow_null=True, min_value=0)

    def validate(self, attrs):
        if "predecessor_task_id" not in attrs and "successor_task_id" not in attrs:
            raise serializers.ValidationError("predecessor_task_id or successor_task_id is required.")
        return attrs


class TaskSummarySerializer(serializers.ModelSerializer):
    parent_task_id = serializers.IntegerField(source="parent_id", read_only=True)

    class Meta:
        model = Task
        fields = ["id", "title", "status", "priority", "progress", "parent_task_id"]
        read_only_fields = fields


class DependencySerializer(serializers.ModelSerializer):
    predecessor_task_id = serializers.IntegerField(source="predecessor_id", read_only=True)
    successor_task_id = serializers.IntegerField(source="successor_id", read_only=True)
    predecessor_task = TaskSummarySerializer(source="predecessor", read_only=True)
    successor_task = TaskSummarySerializer(source="successor", read_only=True)

    class Meta:
        model = TaskDependency
        fields = [
            "id",
            "dependency_type",
            "lag",
            "created_at",
            "predecessor_task_id",
            "successor_task_id",
            "predecessor_task",
            "successor_task",
        ]
        read_only_fields = fields


class TaskSerializer(serializers.ModelSerializer):
    """Full task view: sub-tasks, both dependency directions and the blocked flag."""

    parent_task_id = serializers.IntegerField(source="parent_id", read_only=True)
    sub_tasks = serializers.SerializerMethodField()
    predecessor_dependencies = serializers.SerializerMethodField()
    successor_dependencies = serializers.SerializerMethodField()
    blocked = serializers.SerializerMethodField()

    class Meta:
        model = Task
        fields = [
            "id",
            "title",
            "description",
            "status",
            "priority",
            "progress",
            "due_date",
            "reminder_time",
            "category_id",
            "tags",
            "parent_task_id",
            "sub_tasks",
            "predecessor_dependencies",
            "successor_dependencies",
            "blocked",
            "created_at",
            "updated_at",
            "completed_at",
        ]
        read_only_fields = fields

    def _graph(self) -> DependencyGraphEngine:
        graph = self.context.get("graph")
        if graph is None:
            graph = self.context["graph"] = DependencyGraphEngine()
        return graph

    def get_sub_tasks(self, task: Task):
        children = self._graph().store.children_of(task.pk)
        return TaskSummarySerializer(children, many=True).data

    def get_predecessor_dependencies(self, task: Task):
        return DependencySerializer(self._graph().store.incoming_edges(task.pk), many=True).data

    def get_successor_dependencies(self, task: Task):
        return DependencySerializer(self._graph().store.outgoing_edges(task.pk), many=True).data

    def get_blocked(self, task: Task) -> bool:
        return self._graph().is_blocked(task)
