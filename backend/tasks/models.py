from django.conf import settings
from django.db import models


class TaskStatus(models.TextChoices):
    TODO = "todo", "Todo"
    IN_PROGRESS = "in_progress", "In progress"
    COMPLETED = "completed", "Completed"


class TaskPriority(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"


class DependencyType(models.TextChoices):
    FINISH_TO_START = "finish_to_start", "Finish to start"
    START_TO_START = "start_to_start", "Start to start"
    FINISH_TO_FINISH = "finish_to_finish", "Finish to finish"
    START_TO_FINISH = "start_to_finish", "Start to finish"


class Task(models.Model):
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="tasks")
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    status = models.CharField(max_length=20, choices=TaskStatus.choices, default=TaskStatus.TODO)
    priority = models.CharField(max_length=10, choices=TaskPriority.choices, default=TaskPriority.MEDIUM)
    # derived from sub_tasks, only managed once the task has children
    progress = models.FloatField(default=0)
    parent = models.ForeignKey(
        "self", null=True, blank=True, on_delete=models.CASCADE, related_name="sub_tasks"
    )
    category_id = models.PositiveIntegerField(null=True, blank=True)
    tags = models.JSONField(default=list, blank=True)  # tag names, resolved by the tagging service
    due_date = models.DateTimeField(null=True, blank=True)
    reminder_time = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["owner", "status"], name="task_owner_status_idx"),
        ]

    def __str__(self):
        return self.title


class TaskDependency(models.Model):
    predecessor = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="successor_dependencies")
    successor = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="predecessor_dependencies")
    dependency_type = models.CharField(
        max_length=20, choices=DependencyType.choices, default=DependencyType.FINISH_TO_START
    )
    lag = models.PositiveIntegerField(null=True, blank=True)  # hours, advisory
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["predecessor", "successor"], name="unique_task_dependency"),
        ]

    def __str__(self):
        return f"{self.predecessor_id} -> {self.successor_id} ({self.dependency_type})"


class TaskGraphVersion(models.Model):
    """Per-owner lock row; graph and hierarchy mutations take it FOR UPDATE."""

    owner = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="task_graph_version"
    )
    version = models.PositiveBigIntegerField(default=0)

    def __str__(self):
        return f"{self.owner_id}@{self.version}"
